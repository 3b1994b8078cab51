"""
Protocols (Interfaces) for Dependency Inversion.

Small interfaces for the collaborators injected into the pipeline.
"""
from abc import ABC, abstractmethod
from typing import Any, Awaitable, List, Protocol, runtime_checkable

from .models import SourceFile


@runtime_checkable
class IUploadSink(Protocol):
    """Upload function supplied by the host. Raising fails the whole batch."""

    def __call__(self, files: List[SourceFile]) -> Awaitable[None]:
        ...


class IPreviewGenerator(ABC):
    """Interface for preview handle generation."""

    @abstractmethod
    def generate(self, file: SourceFile) -> Any:
        """Return a revocable handle for images, a static icon reference otherwise."""
        pass

    @abstractmethod
    def revoke(self, handle: Any) -> None:
        """Release a handle. Must be idempotent."""
        pass


@runtime_checkable
class INotifier(Protocol):
    """User-facing notification channel (toast analogue)."""

    async def success(self, message: str) -> Any:
        ...

    async def error(self, message: str) -> Any:
        ...
