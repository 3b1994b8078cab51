"""
Preview Service - Single Responsibility: create and release preview handles.

Image files get a revocable handle backed by an ephemeral temp file
(the local equivalent of an object URL). Other files get a static icon
reference that nobody owns and nobody revokes.
"""
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Set, Union

from ..models import SourceFile
from ..protocols import IPreviewGenerator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StaticIconRef:
    """Type-based icon reference for non-image files."""
    icon: str = "document"


class PreviewHandle:
    """
    Revocable preview resource.

    Owned by exactly one FileEntry; released by the store on removal,
    replacement or clear. revoke() may be called any number of times.
    """

    def __init__(self, path: Path, on_revoke: Optional[Callable[["PreviewHandle"], None]] = None):
        self._path = Path(path)
        self._on_revoke = on_revoke
        self._revoked = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def url(self) -> str:
        return self._path.as_uri()

    @property
    def revoked(self) -> bool:
        return self._revoked

    def read_bytes(self) -> bytes:
        if self._revoked:
            raise ValueError("Preview handle already revoked")
        return self._path.read_bytes()

    def revoke(self) -> None:
        if self._revoked:
            return
        self._revoked = True
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"[preview] Could not delete {self._path}: {e}")
        if self._on_revoke:
            self._on_revoke(self)

    def __enter__(self) -> "PreviewHandle":
        return self

    def __exit__(self, *args) -> None:
        self.revoke()

    def __repr__(self) -> str:
        state = "revoked" if self._revoked else "live"
        return f"PreviewHandle({self._path.name!r}, {state})"


Preview = Union[PreviewHandle, StaticIconRef]


class PreviewService(IPreviewGenerator):
    """Generates preview handles and keeps count of the live ones."""

    def __init__(self, temp_dir: Optional[Path] = None):
        """
        Args:
            temp_dir: Directory for preview files (default: system temp dir)
        """
        self._temp_dir = Path(temp_dir) if temp_dir else None
        self._active: Set[PreviewHandle] = set()

    @property
    def active_count(self) -> int:
        """Number of handles generated and not yet revoked."""
        return len(self._active)

    def generate(self, file: SourceFile) -> Preview:
        if not file.is_image:
            return StaticIconRef("document")

        if self._temp_dir:
            self._temp_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            prefix="preview_",
            suffix=file.extension or ".img",
            dir=self._temp_dir,
            delete=False,
        ) as tmp:
            tmp.write(file.data)
            path = Path(tmp.name)

        handle = PreviewHandle(path, on_revoke=self._active.discard)
        self._active.add(handle)
        logger.debug(f"[preview] Created {handle.url} for {file.name}")
        return handle

    def revoke(self, handle: Optional[Preview]) -> None:
        if isinstance(handle, PreviewHandle):
            handle.revoke()

    def revoke_all(self) -> None:
        """Release every live handle (teardown safety net)."""
        for handle in list(self._active):
            handle.revoke()
