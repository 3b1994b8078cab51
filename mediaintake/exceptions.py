"""Exception hierarchy for mediaintake."""
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import RejectionReason


class MediaIntakeError(Exception):
    """Base class for all mediaintake errors."""


class ConfigError(MediaIntakeError, ValueError):
    """Raised when an intake option or env value cannot be parsed."""


class ValidationError(MediaIntakeError):
    """A candidate file violates the size/type/count policy."""

    def __init__(self, reason: "RejectionReason", message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or reason.value)


class DecodeError(MediaIntakeError):
    """Source image could not be decoded when opening a crop session."""


class CropFailed(MediaIntakeError):
    """Crop commit produced no raster output."""


class UploadError(MediaIntakeError):
    """The upload sink rejected a batch."""


class UploaderBusyError(MediaIntakeError):
    """A batch is already in flight."""


class EntryNotFoundError(MediaIntakeError, KeyError):
    """No entry with the given id exists in the store."""

    def __str__(self) -> str:
        return f"Entry not found: {self.args[0] if self.args else '?'}"
