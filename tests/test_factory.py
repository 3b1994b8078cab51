"""Tests for create_intake wiring."""
import io

import pytest
from rich.console import Console

from mediaintake import create_intake
from mediaintake.exceptions import ConfigError
from mediaintake.models import EntryStatus, IntakeConfig
from mediaintake.utils.events import PROGRESS


def _console():
    return Console(file=io.StringIO(), width=120, color_system=None)


@pytest.mark.asyncio
async def test_explicit_config(make_image, previews, sink):
    intake = create_intake(sink, IntakeConfig(max_files=3, tick_interval=0), previews=previews)

    result = await intake.handle_drop([make_image()])

    assert intake.config.max_files == 3
    assert intake.store.max_files == 3
    assert result.batch.success
    assert result.accepted[0].status is EntryStatus.SUCCESS
    sink.assert_awaited_once()


@pytest.mark.asyncio
async def test_config_from_env_file(tmp_path, monkeypatch, make_image, pdf_file, previews, sink):
    # registered so monkeypatch removes what the env file sets
    for name in ("ACCEPT", "MAX_FILES", "TICK_INTERVAL"):
        monkeypatch.setenv(f"MEDIA_INTAKE_{name}", "")
        monkeypatch.delenv(f"MEDIA_INTAKE_{name}")
    env_path = tmp_path / "intake.env"
    env_path.write_text(
        "MEDIA_INTAKE_ACCEPT=application/pdf  # documents only\n"
        "MEDIA_INTAKE_MAX_FILES=2\n"
        "MEDIA_INTAKE_TICK_INTERVAL=0\n",
        encoding="utf-8",
    )

    intake = create_intake(sink, env_file=env_path, previews=previews)
    result = await intake.handle_drop([make_image(), pdf_file])

    assert intake.config.accept == "application/pdf"
    assert intake.store.max_files == 2
    assert [e.name for e in result.accepted] == ["report.pdf"]
    sink.assert_awaited_once_with([pdf_file])


def test_bad_env_file(tmp_path, sink):
    with pytest.raises(ConfigError, match="not found"):
        create_intake(sink, env_file=tmp_path / "nope.env")


@pytest.mark.asyncio
async def test_notifications_printed_to_console(make_image, previews, sink):
    console = _console()
    intake = create_intake(
        sink, IntakeConfig(max_files=1, tick_interval=0), previews=previews, console=console
    )

    await intake.handle_drop([make_image("a.png"), make_image("b.png")])

    output = console.file.getvalue()
    assert "Error: b.png: Maximum 1 files allowed" in output
    assert "Success: 1 file uploaded successfully" in output


@pytest.mark.asyncio
async def test_progress_display(make_image, previews, sink):
    console = _console()
    seen = []
    intake = create_intake(
        sink, IntakeConfig(tick_interval=0), previews=previews, console=console, show_progress=True
    )
    intake.orchestrator.events.on(PROGRESS, seen.append)

    result = await intake.handle_drop([make_image()])

    assert result.batch.success
    assert seen and seen[-1] == 100
    assert "Success: 1 file uploaded successfully" in console.file.getvalue()
