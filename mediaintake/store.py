"""
FileEntryStore - the ordered collection of FileEntry records.

The store is the single piece of mutable shared state in the pipeline. It
is passed explicitly to the components that need it and owns the release
of every preview handle it holds: an entry's handle is revoked exactly once,
when the entry is removed, its content is replaced, or the store is
cleared or closed.
"""
import logging
from typing import Dict, Iterator, List, Optional, Tuple

from .exceptions import EntryNotFoundError, ValidationError
from .models import CropState, EntryStatus, FileEntry, RejectionReason, SourceFile
from .services.preview import PreviewHandle

logger = logging.getLogger(__name__)

_TRANSITIONS = {
    EntryStatus.QUEUED: {EntryStatus.UPLOADING},
    EntryStatus.UPLOADING: {EntryStatus.SUCCESS, EntryStatus.ERROR},
    EntryStatus.SUCCESS: set(),
    EntryStatus.ERROR: {EntryStatus.QUEUED},
}


def _release(preview) -> None:
    if isinstance(preview, PreviewHandle):
        preview.revoke()


class FileEntryStore:
    """Ordered, capacity-bounded FileEntry collection."""

    def __init__(self, max_files: int):
        if max_files < 1:
            raise ValueError("max_files must be at least 1")
        self._max_files = max_files
        self._entries: Dict[str, FileEntry] = {}

    @property
    def max_files(self) -> int:
        return self._max_files

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[FileEntry]:
        return iter(list(self._entries.values()))

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._entries

    @property
    def entries(self) -> Tuple[FileEntry, ...]:
        return tuple(self._entries.values())

    @property
    def remaining(self) -> int:
        return self._max_files - len(self._entries)

    def get(self, entry_id: str) -> FileEntry:
        try:
            return self._entries[entry_id]
        except KeyError:
            raise EntryNotFoundError(entry_id) from None

    def find(self, entry_id: str) -> Optional[FileEntry]:
        return self._entries.get(entry_id)

    def by_status(self, status: EntryStatus) -> List[FileEntry]:
        return [e for e in self._entries.values() if e.status is status]

    # -- membership ---------------------------------------------------------

    def add(self, entry: FileEntry) -> FileEntry:
        if entry.id in self._entries:
            raise ValueError(f"Duplicate entry id: {entry.id}")
        if len(self._entries) >= self._max_files:
            raise ValidationError(
                RejectionReason.COUNT_EXCEEDED,
                f"Maximum {self._max_files} files allowed",
            )
        self._entries[entry.id] = entry
        logger.debug("Added entry %s (%s)", entry.id, entry.name)
        return entry

    def remove(self, entry_id: str) -> FileEntry:
        """Remove an entry and revoke its preview. An in-flight upload is not aborted."""
        entry = self._entries.pop(entry_id, None)
        if entry is None:
            raise EntryNotFoundError(entry_id)
        _release(entry.preview)
        logger.debug("Removed entry %s (%s)", entry.id, entry.name)
        return entry

    def clear(self) -> int:
        """Remove every entry, revoking all previews. Returns how many were removed."""
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            _release(entry.preview)
        if entries:
            logger.debug("Cleared %d entries", len(entries))
        return len(entries)

    def close(self) -> None:
        self.clear()

    def __enter__(self) -> "FileEntryStore":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # -- content ------------------------------------------------------------

    def replace(self, entry_id: str, file: SourceFile, preview=None) -> FileEntry:
        """
        Substitute an entry's payload (after a crop commit).

        The previous preview is revoked, the original bytes are dropped and
        the entry is back to QUEUED with no progress.
        """
        entry = self.get(entry_id)
        if entry.status is EntryStatus.UPLOADING:
            raise ValueError(f"Cannot replace entry {entry_id} while uploading")
        old_preview = entry.preview
        entry.file = file
        entry.preview = preview
        entry.transform = None
        entry.status = EntryStatus.QUEUED
        entry.progress = 0
        entry.error = None
        if old_preview is not preview:
            _release(old_preview)
        logger.debug("Replaced content of entry %s with %s", entry_id, file.name)
        return entry

    def set_transform(self, entry_id: str, state: Optional[CropState]) -> FileEntry:
        entry = self.get(entry_id)
        entry.transform = state
        return entry

    # -- status / progress --------------------------------------------------

    def _transition(self, entry: FileEntry, status: EntryStatus) -> None:
        if status not in _TRANSITIONS[entry.status]:
            raise ValueError(
                f"Invalid status transition for {entry.id}: {entry.status.value} -> {status.value}"
            )
        entry.status = status

    def mark_uploading(self, entry_id: str) -> FileEntry:
        entry = self.get(entry_id)
        self._transition(entry, EntryStatus.UPLOADING)
        entry.progress = 0
        entry.error = None
        return entry

    def update_progress(self, entry_id: str, percent: int) -> FileEntry:
        entry = self.get(entry_id)
        if entry.status is not EntryStatus.UPLOADING:
            raise ValueError(f"Entry {entry_id} is not uploading")
        percent = int(percent)
        if not 0 <= percent <= 100:
            raise ValueError(f"Progress out of range: {percent}")
        if percent < entry.progress:
            raise ValueError(f"Progress cannot decrease ({entry.progress} -> {percent})")
        entry.progress = percent
        return entry

    def mark_success(self, entry_id: str) -> FileEntry:
        entry = self.get(entry_id)
        self._transition(entry, EntryStatus.SUCCESS)
        entry.progress = 100
        entry.error = None
        return entry

    def mark_error(self, entry_id: str, message: str) -> FileEntry:
        entry = self.get(entry_id)
        self._transition(entry, EntryStatus.ERROR)
        entry.error = message
        return entry

    def requeue(self, entry_id: str) -> FileEntry:
        """Put a failed entry back in the queue for a manual retry."""
        entry = self.get(entry_id)
        self._transition(entry, EntryStatus.QUEUED)
        entry.progress = 0
        entry.error = None
        return entry
