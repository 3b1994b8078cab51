"""Orchestrator data models."""
from dataclasses import dataclass
from typing import Optional, Tuple

from ..models import EntryStatus, FileEntry, Rejection


@dataclass
class BatchResult:
    """Result of one UploadOrchestrator.submit call."""
    success: bool
    entry_ids: Tuple[str, ...]
    error: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.entry_ids)

    @property
    def status(self) -> EntryStatus:
        return EntryStatus.SUCCESS if self.success else EntryStatus.ERROR


@dataclass
class IntakeResult:
    """Result of FileIntake.handle_drop."""
    accepted: Tuple[FileEntry, ...] = ()
    rejected: Tuple[Rejection, ...] = ()
    crop_session: object = None  # CropSession opened for this drop, if any
    batch: Optional[BatchResult] = None
    refused: Optional[str] = None  # whole drop refused (disabled / busy)

    @property
    def accepted_ids(self) -> Tuple[str, ...]:
        return tuple(e.id for e in self.accepted)
