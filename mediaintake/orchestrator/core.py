"""Upload orchestrator - drives a batch of entries through the upload sink."""
import asyncio
import inspect
import logging
from typing import Callable, List, Optional, Sequence, Tuple, Union

from ..exceptions import EntryNotFoundError, UploaderBusyError
from ..models import EntryStatus, FileEntry, IntakeConfig, SourceFile
from ..protocols import INotifier, IUploadSink
from ..services.notifier import Notifier
from ..store import FileEntryStore
from ..utils.events import ERROR, PROGRESS, EventEmitter
from .models import BatchResult

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Upload cancelled"
DEFAULT_ERROR_MESSAGE = "Upload failed"


def success_message(count: int) -> str:
    noun = "file" if count == 1 else "files"
    return f"{count} {noun} uploaded successfully"


class UploadOrchestrator:
    """
    Drives entries through QUEUED -> UPLOADING -> SUCCESS/ERROR.

    One batch at a time: while a batch is in flight, submit() raises
    UploaderBusyError. Every entry of a batch shares the same progress
    cadence and the same outcome.

    Usage:
        orchestrator = UploadOrchestrator(store, sink, on_progress=print)
        result = await orchestrator.submit(store.by_status(EntryStatus.QUEUED))
    """

    def __init__(
        self,
        store: FileEntryStore,
        upload: IUploadSink,
        config: Optional[IntakeConfig] = None,
        notifier: Optional[INotifier] = None,
        events: Optional[EventEmitter] = None,
        on_progress: Optional[Callable[[int], object]] = None,
        on_error: Optional[Callable[[str], object]] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            store: Entry store shared with the intake
            upload: Upload sink called with the batch's payloads
            config: Intake configuration (tick interval, progress step)
            notifier: User-facing notification channel
            events: Emitter for `progress` and `error` observers
            on_progress: Shortcut for events.on("progress", ...)
            on_error: Shortcut for events.on("error", ...)
        """
        self._store = store
        self._upload = upload
        self._config = config or IntakeConfig()
        self._notifier = notifier or Notifier()
        self.events = events or EventEmitter()
        self._task: Optional[asyncio.Task] = None

        if on_progress:
            self.events.on(PROGRESS, on_progress)
        if on_error:
            self.events.on(ERROR, on_error)

    @property
    def is_uploading(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def notifier(self) -> INotifier:
        return self._notifier

    def _ticks(self) -> List[int]:
        step = self._config.progress_step
        ticks = list(range(0, 100, step))
        ticks.append(100)
        return ticks

    async def submit(self, batch: Sequence[Union[FileEntry, str]]) -> BatchResult:
        """
        Upload a batch of queued entries.

        Raises:
            UploaderBusyError: another batch is still in flight
            ValueError: empty batch or an entry that is not QUEUED
            asyncio.CancelledError: the batch was cancelled
        """
        if self.is_uploading:
            raise UploaderBusyError("An upload is already in progress")

        # a repeated entry is uploaded once, at its first position
        ids = tuple(dict.fromkeys(item if isinstance(item, str) else item.id for item in batch))
        if not ids:
            raise ValueError("Cannot submit an empty batch")
        for entry_id in ids:
            entry = self._store.get(entry_id)
            if entry.status is not EntryStatus.QUEUED:
                raise ValueError(f"Entry {entry.name} is {entry.status.value}, expected queued")

        self._task = asyncio.ensure_future(self._run(ids))
        return await self._task

    async def wait_idle(self) -> None:
        """Wait until the in-flight batch (if any) has settled."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait([task])

    def cancel(self) -> bool:
        """Cancel the in-flight batch. Returns False when nothing is uploading."""
        if not self.is_uploading:
            return False
        logger.info("Cancelling in-flight upload batch")
        self._task.cancel()
        return True

    def _each(self, ids: Tuple[str, ...], op: Callable, *args) -> None:
        # Entries removed mid-upload are skipped; the sink call still runs.
        for entry_id in ids:
            try:
                op(entry_id, *args)
            except EntryNotFoundError:
                logger.debug("Entry %s removed during upload, skipping", entry_id)

    async def _call_sink(self, files: List[SourceFile]) -> None:
        result = self._upload(files)
        if inspect.isawaitable(result):
            await result

    async def _run(self, ids: Tuple[str, ...]) -> BatchResult:
        self._each(ids, self._store.mark_uploading)
        entries = [self._store.find(entry_id) for entry_id in ids]
        files = [entry.file for entry in entries if entry is not None]
        logger.info("Uploading batch of %d file(s)", len(ids))

        try:
            for percent in self._ticks():
                await asyncio.sleep(self._config.tick_interval)
                self._each(ids, self._store.update_progress, percent)
                await self.events.emit(PROGRESS, percent)

            await self._call_sink(files)
        except asyncio.CancelledError:
            self._each(ids, self._store.mark_error, CANCELLED_MESSAGE)
            await self.events.emit(ERROR, CANCELLED_MESSAGE)
            await self._notifier.error(CANCELLED_MESSAGE)
            raise
        except Exception as e:
            message = str(e) or DEFAULT_ERROR_MESSAGE
            logger.error(f"Upload batch failed: {message}")
            self._each(ids, self._store.mark_error, message)
            await self.events.emit(ERROR, message)
            await self._notifier.error(message)
            return BatchResult(success=False, entry_ids=ids, error=message)

        self._each(ids, self._store.mark_success)
        await self._notifier.success(success_message(len(ids)))
        return BatchResult(success=True, entry_ids=ids)
