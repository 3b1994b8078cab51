"""Orchestrator package - intake and upload workflows."""
from .core import UploadOrchestrator
from .intake import FileIntake
from .models import BatchResult, IntakeResult

__all__ = ["UploadOrchestrator", "FileIntake", "BatchResult", "IntakeResult"]
