"""File intake (dropzone controller): validate, register, route to crop or upload."""
import asyncio
import logging
from collections import deque
from typing import Deque, Iterable, List, Optional, Sequence, Tuple

from ..exceptions import CropFailed, DecodeError
from ..models import FileEntry, IntakeConfig, SourceFile
from ..protocols import INotifier, IPreviewGenerator
from ..services.crop import CropSession, CropTransformEngine
from ..services.preview import PreviewService
from ..services.validation import ValidationPolicy
from ..store import FileEntryStore
from .core import UploadOrchestrator
from .models import BatchResult, IntakeResult

logger = logging.getLogger(__name__)

DISABLED_MESSAGE = "File upload is disabled"
BUSY_MESSAGE = "Please wait for the current upload to finish"


class FileIntake:
    """
    Receives dropped or picked files and feeds the pipeline.

    Accepted images are routed into crop sessions when cropping is enabled
    (the first image of each drop, or every image with crop_scope="all");
    everything else goes straight to the orchestrator as one batch. Only
    one crop session is open at a time; further images wait in line.
    """

    def __init__(
        self,
        store: FileEntryStore,
        orchestrator: UploadOrchestrator,
        config: Optional[IntakeConfig] = None,
        previews: Optional[IPreviewGenerator] = None,
        crop_engine: Optional[CropTransformEngine] = None,
        notifier: Optional[INotifier] = None,
    ):
        self._config = config or IntakeConfig()
        self._store = store
        self._orchestrator = orchestrator
        self._previews = previews or PreviewService()
        self._crop = crop_engine or CropTransformEngine(
            aspect_ratio=self._config.aspect_ratio,
            quality=self._config.jpeg_quality,
        )
        self._validator = ValidationPolicy(self._config)
        self._notifier = notifier or orchestrator.notifier
        self._pending: Deque[str] = deque()
        self._session: Optional[CropSession] = None
        self._committing: Optional[CropSession] = None
        self._open_lock: Optional[asyncio.Lock] = None

    @property
    def config(self) -> IntakeConfig:
        return self._config

    @property
    def store(self) -> FileEntryStore:
        return self._store

    @property
    def orchestrator(self) -> UploadOrchestrator:
        return self._orchestrator

    @property
    def crop_session(self) -> Optional[CropSession]:
        return self._session

    @property
    def pending_crops(self) -> Tuple[str, ...]:
        return tuple(self._pending)

    # -- intake -------------------------------------------------------------

    async def handle_drop(self, files: Iterable[SourceFile]) -> IntakeResult:
        """Process one drop / picker event."""
        files = list(files)
        if self._config.disabled:
            await self._notifier.error(DISABLED_MESSAGE)
            return IntakeResult(refused=DISABLED_MESSAGE)
        if self._orchestrator.is_uploading:
            await self._notifier.error(BUSY_MESSAGE)
            return IntakeResult(refused=BUSY_MESSAGE)

        validation = self._validator.validate(files, self._store.size())
        for rejection in validation.rejected:
            logger.info("Rejected %s: %s", rejection.file.name, rejection.reason.value)
            await self._notifier.error(rejection.message)

        entries = [self._register(file) for file in validation.accepted]

        crop_ids = self._crop_targets(entries)
        direct = [e for e in entries if e.id not in crop_ids]
        self._pending.extend(crop_ids)
        if self._session is None:
            await self.open_next_crop()

        batch: Optional[BatchResult] = None
        if direct:
            batch = await self._submit_when_idle([e.id for e in direct])

        session = self._session if self._session and self._session.entry_id in crop_ids else None
        return IntakeResult(
            accepted=tuple(entries),
            rejected=validation.rejected,
            crop_session=session,
            batch=batch,
        )

    def _register(self, file: SourceFile) -> FileEntry:
        preview = self._previews.generate(file)
        try:
            return self._store.add(FileEntry(file=file, preview=preview))
        except Exception:
            self._previews.revoke(preview)
            raise

    async def _submit_when_idle(self, entry_ids: Sequence[str]) -> Optional[BatchResult]:
        """
        Submit once no other batch is in flight.

        Entries removed while waiting are dropped; returns None when none remain.
        """
        while self._orchestrator.is_uploading:
            await self._orchestrator.wait_idle()
        remaining = [entry_id for entry_id in entry_ids if entry_id in self._store]
        if not remaining:
            logger.debug("All %d entries removed before upload, nothing to submit", len(entry_ids))
            return None
        return await self._orchestrator.submit(remaining)

    def _crop_targets(self, entries: List[FileEntry]) -> List[str]:
        if not self._config.enable_crop:
            return []
        images = [e.id for e in entries if e.is_image]
        if self._config.crop_scope == "first":
            return images[:1]
        return images

    # -- crop ---------------------------------------------------------------

    async def open_next_crop(self) -> Optional[CropSession]:
        """Open a session for the next waiting image, skipping removed or undecodable ones."""
        if self._open_lock is None:
            self._open_lock = asyncio.Lock()
        # Decoding yields; concurrent callers must not open two sessions.
        async with self._open_lock:
            while self._pending and self._session is None:
                entry_id = self._pending.popleft()
                entry = self._store.find(entry_id)
                if entry is None:
                    continue
                try:
                    session = await self._crop.open(entry.file, entry_id=entry_id)
                except DecodeError as e:
                    logger.warning(f"Crop session for {entry.name} aborted: {e}")
                    await self._notifier.error(f"{entry.name}: {e}")
                    continue
                if entry_id not in self._store:
                    session.cancel()
                    continue
                self._session = session
                self._store.set_transform(entry_id, session.snapshot())
        return self._session

    def _require_session(self) -> CropSession:
        if self._session is None:
            raise RuntimeError("No crop session is open")
        return self._session

    def update_crop(
        self,
        zoom: Optional[float] = None,
        rotation: Optional[float] = None,
        pan: Optional[Tuple[float, float]] = None,
        area: Optional[Tuple[int, int, int, int]] = None,
    ) -> CropSession:
        """Adjust the open session and refresh the entry's transform snapshot."""
        session = self._require_session()
        if zoom is not None:
            session.set_zoom(zoom)
        if rotation is not None:
            session.set_rotation(rotation)
        if pan is not None:
            session.set_pan(*pan)
        if area is not None:
            session.set_crop_area(*area)
        if session.entry_id in self._store:
            self._store.set_transform(session.entry_id, session.snapshot())
        return session

    def _close_session(self, session: CropSession) -> None:
        session.cancel()
        if session.entry_id in self._store:
            self._store.set_transform(session.entry_id, None)
        if self._session is session:
            self._session = None

    async def cancel_crop(self) -> None:
        """Discard the open session; its entry stays queued with its original content."""
        session = self._require_session()
        logger.debug("Crop cancelled for entry %s", session.entry_id)
        self._close_session(session)
        await self.open_next_crop()

    async def commit_crop(self) -> Optional[BatchResult]:
        """
        Render the open session, substitute the result into its entry and
        upload it as its own batch.

        Returns None when the crop failed (the entry stays queued) or the
        entry was removed meanwhile.
        """
        session = self._require_session()
        if session is self._committing:
            raise RuntimeError("Crop session is already being committed")
        entry_id = session.entry_id
        self._committing = session
        try:
            cropped = await self._crop.commit(session)
        except (CropFailed, DecodeError) as e:
            self._close_session(session)
            if entry_id in self._store:
                logger.warning(f"Crop failed for entry {entry_id}: {e}")
                await self._notifier.error(str(e))
            await self.open_next_crop()
            return None
        finally:
            self._committing = None

        # remove() may have detached this session and opened the next one meanwhile.
        if self._session is session:
            self._session = None
        if entry_id not in self._store:
            logger.debug("Entry %s removed before crop commit, discarding result", entry_id)
            await self.open_next_crop()
            return None

        preview = self._previews.generate(cropped)
        try:
            self._store.replace(entry_id, cropped, preview)
        except Exception:
            self._previews.revoke(preview)
            raise

        await self.open_next_crop()
        return await self._submit_when_idle([entry_id])

    # -- removal ------------------------------------------------------------

    async def remove(self, entry_id: str) -> FileEntry:
        """Remove one entry; an open crop session on it is discarded."""
        if entry_id in self._pending:
            self._pending.remove(entry_id)
        session = self._session
        reopen = session is not None and session.entry_id == entry_id
        if reopen and session is self._committing:
            # the pending commit closes the session and discards its output
            self._session = None
        elif reopen:
            self._close_session(session)
        entry = self._store.remove(entry_id)
        if reopen:
            await self.open_next_crop()
        return entry

    def clear_all(self) -> int:
        """Drop every entry and any crop work."""
        self._pending.clear()
        if self._session is self._committing:
            self._session = None
        elif self._session is not None:
            self._close_session(self._session)
        return self._store.clear()

    def close(self) -> None:
        """Component teardown: release sessions and every preview."""
        self.clear_all()

    def __enter__(self) -> "FileIntake":
        return self

    def __exit__(self, *args) -> None:
        self.close()
