"""Services for mediaintake."""
from .crop import CropSession, CropTransformEngine
from .http_sink import HTTPUploadSink
from .notifier import Notification, NotificationLevel, Notifier
from .preview import PreviewHandle, PreviewService, StaticIconRef
from .validation import ValidationPolicy

__all__ = [
    "CropSession",
    "CropTransformEngine",
    "HTTPUploadSink",
    "Notification",
    "NotificationLevel",
    "Notifier",
    "PreviewHandle",
    "PreviewService",
    "StaticIconRef",
    "ValidationPolicy",
]
