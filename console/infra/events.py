from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from console.domain.models import EventEnvelope

EventHandler = Callable[[EventEnvelope], None]

SESSION_CHANGED = "session.changed"
SCOPE_CHANGED = "scope.changed"
TENANTS_CHANGED = "tenants.changed"
NAV_CHANGED = "nav.changed"
JOBS_ENQUEUED = "jobs.enqueued"
NOTIFICATION_ADDED = "notification.added"
NOTIFICATION_REMOVED = "notification.removed"
API_STATUS_CHANGED = "api.status_changed"
PAGE_CHANGED = "page.changed"

logger = logging.getLogger(__name__)


def sync_event(view: str) -> str:
    return f"sync.{view}"


class EventBus:
    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> Callable[[], None]:
        self._subscribers[event_type].append(handler)

        def _unsubscribe() -> None:
            self.unsubscribe(event_type, handler)

        return _unsubscribe

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        if event_type in self._subscribers and handler in self._subscribers[event_type]:
            self._subscribers[event_type].remove(handler)

    def subscriber_count(self, event_type: str) -> int:
        return len(self._subscribers.get(event_type, []))

    def publish(self, event: EventEnvelope) -> None:
        handlers = [*self._subscribers.get(event.event_type, []), *self._subscribers.get("*", [])]
        for handler in handlers:
            handler(event)

    def publish_dict(self, event_type: str, payload: dict[str, Any] | None = None) -> EventEnvelope:
        event = EventEnvelope(event_type=event_type, payload=payload or {})
        logger.debug("event %s", event_type)
        self.publish(event)
        return event
