"""Host entry point: build a wired intake pipeline from config or environment."""
import functools
import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console

from .config import config_from_env, load_env_file
from .console import BatchProgressDisplay, render_notification
from .models import IntakeConfig
from .orchestrator import FileIntake, UploadOrchestrator
from .protocols import IPreviewGenerator, IUploadSink
from .services.notifier import Notifier
from .store import FileEntryStore
from .utils.events import NOTIFICATION, PROGRESS

logger = logging.getLogger(__name__)


def create_intake(
    upload: IUploadSink,
    config: Optional[IntakeConfig] = None,
    env_file: Optional[Union[str, Path]] = None,
    previews: Optional[IPreviewGenerator] = None,
    console: Optional[Console] = None,
    show_progress: bool = False,
) -> FileIntake:
    """
    Build store, notifier, orchestrator and intake around one config.

    Args:
        upload: Upload sink called with each batch's payloads
        config: Explicit configuration; defaults to MEDIA_INTAKE_* variables
        env_file: .env file applied to the environment before reading it
        previews: Preview generator (default: PreviewService in the temp dir)
        console: When given, notifications are printed to it
        show_progress: Also draw a progress bar for every batch (needs console)
    """
    if env_file is not None:
        load_env_file(env_file)
    if config is None:
        config = config_from_env()

    store = FileEntryStore(config.max_files)
    notifier = Notifier()
    orchestrator = UploadOrchestrator(store, upload, config, notifier=notifier)

    if console is not None:
        if show_progress:
            display = BatchProgressDisplay(console)
            orchestrator.events.on(PROGRESS, display.on_progress)
            notifier.events.on(NOTIFICATION, display.on_notification)
        else:
            notifier.events.on(NOTIFICATION, functools.partial(render_notification, console=console))

    logger.debug(
        "Intake ready: accept=%s max_files=%d crop=%s",
        config.accept, config.max_files, config.enable_crop,
    )
    return FileIntake(store, orchestrator, config, previews=previews)
