"""Utilities for mediaintake."""
from .events import EventEmitter

__all__ = ["EventEmitter"]
