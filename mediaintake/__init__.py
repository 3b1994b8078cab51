"""
mediaintake - client-side media intake pipeline.

Validates dropped/picked files, keeps their previews and lifecycle state,
lets the user crop/rotate an image before submission and drives batched
uploads through an injected upload function.

Usage:
    from mediaintake import create_intake, setup_logging

    setup_logging(log_level="env")
    intake = create_intake(upload, env_file=".env")   # MEDIA_INTAKE_* settings

or wired by hand:
    from mediaintake import (
        FileEntryStore, FileIntake, IntakeConfig, SourceFile, UploadOrchestrator,
    )

    config = IntakeConfig(accept="image/*,.pdf", max_files=5, enable_crop=True)
    store = FileEntryStore(config.max_files)
    orchestrator = UploadOrchestrator(store, upload, config, on_progress=print)
    intake = FileIntake(store, orchestrator, config)

    result = await intake.handle_drop([SourceFile.from_path("photo.jpg")])
    if intake.crop_session:
        intake.update_crop(rotation=90)
        await intake.commit_crop()
"""
from .config import config_from_env, load_env_file, parse_env_text
from .console import BatchProgressDisplay, format_file_size, render_entries, render_notification
from .exceptions import (
    ConfigError,
    CropFailed,
    DecodeError,
    EntryNotFoundError,
    MediaIntakeError,
    UploadError,
    UploaderBusyError,
    ValidationError,
)
from .models import (
    CropArea,
    CropState,
    EntryStatus,
    FileEntry,
    IntakeConfig,
    Rejection,
    RejectionReason,
    SourceFile,
    ValidationResult,
)
from .orchestrator import BatchResult, FileIntake, IntakeResult, UploadOrchestrator
from .services import (
    CropSession,
    CropTransformEngine,
    HTTPUploadSink,
    Notification,
    Notifier,
    PreviewHandle,
    PreviewService,
    StaticIconRef,
    ValidationPolicy,
)
from .factory import create_intake
from .logging_config import setup_logging
from .store import FileEntryStore

__version__ = "0.1.0"
__all__ = [
    # Main
    "create_intake",
    "FileIntake",
    "UploadOrchestrator",
    "FileEntryStore",
    # Models
    "BatchResult",
    "CropArea",
    "CropState",
    "EntryStatus",
    "FileEntry",
    "IntakeConfig",
    "IntakeResult",
    "Rejection",
    "RejectionReason",
    "SourceFile",
    "ValidationResult",
    # Services
    "CropSession",
    "CropTransformEngine",
    "HTTPUploadSink",
    "Notification",
    "Notifier",
    "PreviewHandle",
    "PreviewService",
    "StaticIconRef",
    "ValidationPolicy",
    # Host helpers
    "BatchProgressDisplay",
    "config_from_env",
    "format_file_size",
    "load_env_file",
    "parse_env_text",
    "render_entries",
    "render_notification",
    "setup_logging",
    # Errors
    "ConfigError",
    "CropFailed",
    "DecodeError",
    "EntryNotFoundError",
    "MediaIntakeError",
    "UploadError",
    "UploaderBusyError",
    "ValidationError",
]
