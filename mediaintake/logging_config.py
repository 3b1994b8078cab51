"""Logging setup for hosts embedding mediaintake."""
import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .exceptions import ConfigError

PACKAGE_LOGGER = "mediaintake"
LEVEL_ENV_VARS = ("MEDIA_INTAKE_LOG_LEVEL", "LOG_LEVEL")


def _resolve_level(debug: bool, log_level: Optional[str]) -> Optional[int]:
    if debug:
        return logging.DEBUG
    if not log_level:
        return None
    name = log_level
    if name.lower() == "env":
        name = next((os.environ[var] for var in LEVEL_ENV_VARS if os.environ.get(var)), "INFO")
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log level: {name}")
    return level


def setup_logging(
    debug: bool = False,
    silent: bool = False,
    log_level: Optional[str] = None,
    console: Optional[Console] = None,
) -> str:
    """
    Route the package's log records to a rich handler.

    Only the `mediaintake` logger is configured; the host's root logging is
    left alone. Output is silent unless debug or log_level is given
    (log_level="env" reads MEDIA_INTAKE_LOG_LEVEL, then LOG_LEVEL).
    Calling it again replaces the previous handler.

    Returns the effective level name, or "silent".
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in [h for h in package_logger.handlers if isinstance(h, RichHandler)]:
        package_logger.removeHandler(handler)
    package_logger.propagate = False

    level = None if silent else _resolve_level(debug, log_level)
    if level is None:
        package_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    return logging.getLevelName(level)
