"""Shared fixtures for mediaintake tests."""
import io
from unittest.mock import AsyncMock

import pytest

from mediaintake.models import IntakeConfig, SourceFile
from mediaintake.orchestrator import FileIntake, UploadOrchestrator
from mediaintake.services.notifier import Notifier
from mediaintake.services.preview import PreviewService
from mediaintake.store import FileEntryStore

from helpers import gradient_image


@pytest.fixture
def make_image():
    """Factory for PNG SourceFiles."""
    def _make(name: str = "photo.png", width: int = 40, height: int = 20) -> SourceFile:
        buffer = io.BytesIO()
        gradient_image(width, height).save(buffer, format="PNG")
        return SourceFile(name=name, data=buffer.getvalue(), mime_type="image/png")
    return _make


@pytest.fixture
def pdf_file():
    return SourceFile(name="report.pdf", data=b"%PDF-1.4 fake", mime_type="application/pdf")


@pytest.fixture
def previews(tmp_path):
    return PreviewService(temp_dir=tmp_path / "previews")


@pytest.fixture
def sink():
    return AsyncMock(return_value=None)


@pytest.fixture
def build_pipeline(previews, sink):
    """Factory wiring store, orchestrator and intake around one config."""
    def _build(config: IntakeConfig = None, upload=None, **orchestrator_kwargs):
        config = config or IntakeConfig(tick_interval=0)
        store = FileEntryStore(config.max_files)
        notifier = Notifier()
        orchestrator = UploadOrchestrator(
            store, upload or sink, config, notifier=notifier, **orchestrator_kwargs
        )
        intake = FileIntake(store, orchestrator, config, previews=previews)
        return intake, orchestrator, store, notifier
    return _build
