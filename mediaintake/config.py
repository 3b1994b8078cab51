"""Environment-based configuration for mediaintake."""
import logging
import os
import re
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from .exceptions import ConfigError
from .models import IntakeConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "MEDIA_INTAKE_"

# env suffix -> IntakeConfig.from_options key
_ENV_OPTIONS = {
    "ACCEPT": "accept",
    "MAX_SIZE": "maxSize",
    "MAX_FILES": "maxFiles",
    "MULTIPLE": "multiple",
    "ENABLE_CROP": "enableCrop",
    "ASPECT_RATIO": "aspectRatio",
    "DISABLED": "disabled",
    "CROP_SCOPE": "cropScope",
    "TICK_INTERVAL": "tickInterval",
}

_ASSIGNMENT = re.compile(
    r"""
    ^\s*(?:export\s+)?
    (?P<key>[A-Za-z_][A-Za-z0-9_]*)
    \s*=\s*
    (?:"(?P<double>[^"]*)"|'(?P<single>[^']*)'|(?P<bare>[^#]*?))
    \s*(?:\#.*)?$
    """,
    re.VERBOSE,
)


def parse_env_text(text: str) -> Dict[str, str]:
    """
    Parse .env content into a dict.

    Accepts `KEY=value`, `export KEY=value`, single or double quoted values
    and trailing `# comments` after unquoted or quoted values. Any other
    non-blank, non-comment line is a ConfigError.
    """
    values: Dict[str, str] = {}
    for lineno, line in enumerate(text.splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        match = _ASSIGNMENT.match(line)
        if match is None:
            raise ConfigError(f"line {lineno}: expected KEY=VALUE, got {stripped!r}")
        for group in ("double", "single", "bare"):
            if match.group(group) is not None:
                values[match.group("key")] = match.group(group)
                break
    return values


def load_env_file(path: Union[str, Path], override: bool = False) -> Dict[str, str]:
    """Apply a .env file to os.environ. Returns the variables actually set."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(f"env file not found: {path}") from exc
    except OSError as exc:
        raise ConfigError(f"could not read env file {path}: {exc}") from exc

    applied = {
        key: value
        for key, value in parse_env_text(text).items()
        if override or key not in os.environ
    }
    os.environ.update(applied)
    logger.debug("Loaded %d variable(s) from %s", len(applied), path)
    return applied


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> IntakeConfig:
    """
    Build IntakeConfig from MEDIA_INTAKE_* variables.

    Unset or blank variables keep their defaults; unparsable ones raise
    ConfigError.
    """
    environ = os.environ if environ is None else environ
    options = {
        option: environ[ENV_PREFIX + suffix].strip()
        for suffix, option in _ENV_OPTIONS.items()
        if environ.get(ENV_PREFIX + suffix, "").strip()
    }
    return IntakeConfig.from_options(options)
