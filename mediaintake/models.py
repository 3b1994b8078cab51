"""
Models for mediaintake.

Immutable dataclasses for configuration and payloads; FileEntry is the one
mutable record and is only mutated through FileEntryStore.
"""
import mimetypes
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple, Union

from .exceptions import ConfigError

MB = 1024 * 1024

CROP_SCOPES = ("first", "all")


class EntryStatus(Enum):
    """Lifecycle status of a FileEntry."""
    QUEUED = "queued"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (EntryStatus.SUCCESS, EntryStatus.ERROR)


class RejectionReason(Enum):
    """Why ValidationPolicy refused a candidate file."""
    SIZE_EXCEEDED = "size_exceeded"
    INVALID_TYPE = "invalid_type"
    COUNT_EXCEEDED = "count_exceeded"


@dataclass(frozen=True)
class SourceFile:
    """Immutable raw file payload as handed over by a drop or picker."""
    name: str
    data: bytes = field(repr=False)
    mime_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    @classmethod
    def from_path(cls, path: Union[str, Path], mime_type: Optional[str] = None) -> "SourceFile":
        """Load a file from disk, guessing its mime type from the extension."""
        path = Path(path)
        if mime_type is None:
            mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            data=path.read_bytes(),
            mime_type=mime_type or "application/octet-stream",
        )


@dataclass(frozen=True)
class Rejection:
    """One refused candidate and the reason for it."""
    file: SourceFile
    reason: RejectionReason
    message: str


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of ValidationPolicy.validate."""
    accepted: Tuple[SourceFile, ...] = ()
    rejected: Tuple[Rejection, ...] = ()

    @property
    def all_accepted(self) -> bool:
        return not self.rejected


@dataclass(frozen=True)
class CropArea:
    """Crop rectangle in source pixel space (pre-rotation)."""
    x: int
    y: int
    width: int
    height: int

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height


@dataclass(frozen=True)
class CropState:
    """Snapshot of a crop session, kept on the entry while it is being cropped."""
    source_size: Tuple[int, int]
    area: CropArea
    zoom: float
    rotation: float
    aspect_ratio: float


@dataclass
class FileEntry:
    """
    One submitted file and its lifecycle state.

    Mutated only by FileEntryStore; everything else reads it.
    """
    file: SourceFile
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    preview: Any = None  # PreviewHandle or StaticIconRef
    transform: Optional[CropState] = None
    status: EntryStatus = EntryStatus.QUEUED
    progress: int = 0
    error: Optional[str] = None

    @property
    def name(self) -> str:
        return self.file.name

    @property
    def size(self) -> int:
        return self.file.size

    @property
    def mime_type(self) -> str:
        return self.file.mime_type

    @property
    def is_image(self) -> bool:
        return self.file.is_image


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off", ""}:
        return False
    raise ConfigError(f"{key}: expected a boolean, got {value!r}")


def _coerce_number(key: str, value: Any, kind):
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key}: expected {kind.__name__}, got {value!r}") from exc


@dataclass(frozen=True)
class IntakeConfig:
    """Immutable configuration for the intake pipeline."""
    accept: str = "image/*"
    max_size: int = 5 * MB
    max_files: int = 5
    multiple: bool = True
    enable_crop: bool = False
    aspect_ratio: float = 1.0
    disabled: bool = False
    crop_scope: str = "first"
    tick_interval: float = 0.1  # seconds between progress ticks
    progress_step: int = 10
    jpeg_quality: int = 95

    _OPTION_NAMES = {
        "accept": ("accept", str),
        "maxSize": ("max_size", int),
        "maxFiles": ("max_files", int),
        "multiple": ("multiple", bool),
        "enableCrop": ("enable_crop", bool),
        "aspectRatio": ("aspect_ratio", float),
        "disabled": ("disabled", bool),
        "cropScope": ("crop_scope", str),
        "tickInterval": ("tick_interval", float),
    }

    def __post_init__(self):
        if self.max_size <= 0:
            raise ConfigError("max_size must be positive")
        if self.max_files < 1:
            raise ConfigError("max_files must be at least 1")
        if self.aspect_ratio <= 0:
            raise ConfigError("aspect_ratio must be positive")
        if self.crop_scope not in CROP_SCOPES:
            raise ConfigError(f"crop_scope must be one of {CROP_SCOPES}, got {self.crop_scope!r}")
        if self.tick_interval < 0:
            raise ConfigError("tick_interval cannot be negative")
        if not 1 <= self.progress_step <= 100:
            raise ConfigError("progress_step must be within 1..100")
        if not 1 <= self.jpeg_quality <= 100:
            raise ConfigError("jpeg_quality must be within 1..100")

    @property
    def accept_patterns(self) -> List[str]:
        """Comma-separated accept string split into normalized patterns."""
        return [p.strip().lower() for p in self.accept.split(",") if p.strip()]

    @property
    def max_size_mb(self) -> float:
        return self.max_size / MB

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "IntakeConfig":
        """
        Build config from host option names.

        Recognizes accept, maxSize, maxFiles, multiple, enableCrop,
        aspectRatio, disabled, cropScope, tickInterval. Unknown keys are
        rejected so typos do not silently fall back to defaults.
        """
        kwargs = {}
        for key, value in options.items():
            if key not in cls._OPTION_NAMES:
                raise ConfigError(f"Unknown option: {key}")
            attr, kind = cls._OPTION_NAMES[key]
            if value is None:
                continue
            if kind is bool:
                kwargs[attr] = _coerce_bool(key, value)
            elif kind is str:
                kwargs[attr] = str(value)
            else:
                kwargs[attr] = _coerce_number(key, value, kind)
        return cls(**kwargs)
