"""
Validation Policy - Single Responsibility: size/type/count checks.

Pure: looks only at the candidates, the current entry count and the config.
"""
import logging
from typing import Iterable, List, Optional

from ..models import (
    IntakeConfig,
    Rejection,
    RejectionReason,
    SourceFile,
    ValidationResult,
)

logger = logging.getLogger(__name__)


def matches_accept(file: SourceFile, patterns: List[str]) -> bool:
    """
    Check a file against accept patterns.

    Patterns are `type/*`, exact `type/subtype` or `.ext`. No patterns
    means everything is accepted.
    """
    if not patterns:
        return True

    mime = (file.mime_type or "").lower()
    name = file.name.lower()
    for pattern in patterns:
        if pattern.startswith("."):
            if name.endswith(pattern):
                return True
        elif pattern.endswith("/*"):
            if mime.startswith(pattern[:-1]):
                return True
        elif pattern == "*" or pattern == "*/*":
            return True
        elif mime == pattern:
            return True
    return False


class ValidationPolicy:
    """Enforces size, type and count constraints on candidate files."""

    def __init__(self, config: Optional[IntakeConfig] = None):
        self._config = config or IntakeConfig()

    @property
    def config(self) -> IntakeConfig:
        return self._config

    def message_for(self, file: SourceFile, reason: RejectionReason) -> str:
        """Human-readable message naming the specific reason."""
        if reason is RejectionReason.SIZE_EXCEEDED:
            return f"{file.name}: File too large. Max size: {self._config.max_size_mb:.1f}MB"
        if reason is RejectionReason.INVALID_TYPE:
            return f"{file.name}: Invalid file type"
        if not self._config.multiple:
            return f"{file.name}: Only one file can be added at a time"
        return f"{file.name}: Maximum {self._config.max_files} files allowed"

    def _reject(self, file: SourceFile, reason: RejectionReason) -> Rejection:
        return Rejection(file=file, reason=reason, message=self.message_for(file, reason))

    def check_file(self, file: SourceFile) -> Optional[RejectionReason]:
        """Per-file checks only (size, then type)."""
        if file.size > self._config.max_size:
            return RejectionReason.SIZE_EXCEEDED
        if not matches_accept(file, self._config.accept_patterns):
            return RejectionReason.INVALID_TYPE
        return None

    def validate(self, candidates: Iterable[SourceFile], current_count: int = 0) -> ValidationResult:
        """
        Split candidates into accepted and rejected, in submission order.

        Files passing the per-file checks are accepted until
        current_count + accepted would exceed max_files; the overflow is
        rejected with COUNT_EXCEEDED. A multi-file drop on a single-file
        intake is refused as a whole.
        """
        candidates = list(candidates)
        accepted: List[SourceFile] = []
        rejected: List[Rejection] = []

        if not self._config.multiple and len(candidates) > 1:
            rejected = [self._reject(f, RejectionReason.COUNT_EXCEEDED) for f in candidates]
            logger.debug("Refused multi-file drop of %d files (multiple=False)", len(candidates))
            return ValidationResult(accepted=(), rejected=tuple(rejected))

        room = max(self._config.max_files - current_count, 0)
        for file in candidates:
            reason = self.check_file(file)
            if reason is None and len(accepted) >= room:
                reason = RejectionReason.COUNT_EXCEEDED
            if reason is None:
                accepted.append(file)
            else:
                rejected.append(self._reject(file, reason))

        logger.debug(
            "Validated %d candidates: %d accepted, %d rejected",
            len(candidates), len(accepted), len(rejected),
        )
        return ValidationResult(accepted=tuple(accepted), rejected=tuple(rejected))
