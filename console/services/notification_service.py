from __future__ import annotations

import asyncio
import logging
import os

from console.domain.errors import ConsoleError
from console.domain.models import Notification, NotificationType
from console.infra.events import NOTIFICATION_ADDED, NOTIFICATION_REMOVED, EventBus

TOAST_TTL_SECONDS = float(os.getenv("CONSOLE_TOAST_TTL_SECONDS", "4"))

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(self, bus: EventBus, *, ttl_seconds: float | None = TOAST_TTL_SECONDS) -> None:
        self._bus = bus
        self._ttl_seconds = ttl_seconds
        self._items: list[Notification] = []
        self._timers: dict[str, asyncio.TimerHandle] = {}

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    def add(self, type_: NotificationType, title: str, description: str | None = None) -> Notification:
        notification = Notification(type=type_, title=title, description=description)
        self._items = [*self._items, notification]
        self._schedule_dismiss(notification.id)
        self._bus.publish_dict(NOTIFICATION_ADDED, {"id": notification.id, "type": str(type_)})
        return notification

    def _schedule_dismiss(self, notification_id: str) -> None:
        if not self._ttl_seconds:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timers[notification_id] = loop.call_later(self._ttl_seconds, self.dismiss, notification_id)

    def dismiss(self, notification_id: str) -> None:
        timer = self._timers.pop(notification_id, None)
        if timer is not None:
            timer.cancel()
        remaining = [item for item in self._items if item.id != notification_id]
        if len(remaining) == len(self._items):
            return
        self._items = remaining
        self._bus.publish_dict(NOTIFICATION_REMOVED, {"id": notification_id})

    def clear(self) -> None:
        for item in list(self._items):
            self.dismiss(item.id)

    def success(self, title: str, description: str | None = None) -> Notification:
        return self.add(NotificationType.SUCCESS, title, description)

    def error(self, title: str, description: str | None = None) -> Notification:
        logger.info("error notification: %s", title)
        return self.add(NotificationType.ERROR, title, description)

    def info(self, title: str, description: str | None = None) -> Notification:
        return self.add(NotificationType.INFO, title, description)

    def warning(self, title: str, description: str | None = None) -> Notification:
        return self.add(NotificationType.WARNING, title, description)

    def from_error(self, title: str, exc: BaseException) -> Notification:
        detail = exc.message if isinstance(exc, ConsoleError) else str(exc) or None
        return self.error(title, detail)
