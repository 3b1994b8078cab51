"""
Notifier - Single Responsibility: user-facing notifications.

Each distinct outcome produces exactly one Notification. Notifications are
logged, kept in history and re-emitted to `notification` listeners (a
console renderer, a GUI toast, a test spy).
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..utils.events import NOTIFICATION, EventEmitter

logger = logging.getLogger(__name__)


class NotificationLevel(Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str
    created_at: float = field(default_factory=time.time)

    @property
    def is_error(self) -> bool:
        return self.level is NotificationLevel.ERROR


class Notifier:
    """Collects notifications and forwards them to listeners."""

    def __init__(self, events: Optional[EventEmitter] = None):
        self.events = events or EventEmitter()
        self.history: List[Notification] = []

    async def _publish(self, notification: Notification) -> Notification:
        self.history.append(notification)
        if notification.is_error:
            logger.warning("Notification: %s", notification.message)
        else:
            logger.info("Notification: %s", notification.message)
        await self.events.emit(NOTIFICATION, notification)
        return notification

    async def success(self, message: str) -> Notification:
        return await self._publish(Notification(NotificationLevel.SUCCESS, message))

    async def error(self, message: str) -> Notification:
        return await self._publish(Notification(NotificationLevel.ERROR, message))

    @property
    def errors(self) -> List[Notification]:
        return [n for n in self.history if n.is_error]

    @property
    def successes(self) -> List[Notification]:
        return [n for n in self.history if not n.is_error]

    def clear(self) -> None:
        self.history.clear()
