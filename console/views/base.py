from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import ClassVar, Generic, TypeVar

from console.domain.models import EventEnvelope
from console.domain.navigation import PageId
from console.domain.state_machine import SyncState
from console.infra.events import SCOPE_CHANGED
from console.services.sync_service import PollingSynchronizer, SyncSnapshot
from console.views.deps import ConsoleContext

T = TypeVar("T")

logger = logging.getLogger(__name__)


class PageView(Generic[T]):
    """Controller for one page: a synchronizer plus the bus topics that force a refetch."""

    page: ClassVar[PageId]
    poll_seconds: ClassVar[float | None] = None
    error_title: ClassVar[str] = "Error al cargar datos"
    refetch_on: ClassVar[tuple[str, ...]] = (SCOPE_CHANGED,)

    def __init__(self, ctx: ConsoleContext) -> None:
        self.ctx = ctx
        self.sync: PollingSynchronizer[T] = PollingSynchronizer(
            self.page.value,
            self.load,
            ctx.bus,
            interval_seconds=self.poll_seconds,
            notifier=ctx.notifier,
            error_title=self.error_title,
        )
        self._unsubscribers: list[Callable[[], None]] = []
        self._pending: set[asyncio.Task[SyncSnapshot[T]]] = set()

    async def load(self) -> T:
        raise NotImplementedError

    @property
    def snapshot(self) -> SyncSnapshot[T]:
        return self.sync.snapshot

    @property
    def data(self) -> T | None:
        return self.sync.data

    @property
    def state(self) -> SyncState:
        return self.sync.state

    @property
    def mounted(self) -> bool:
        return self.sync.mounted

    async def mount(self) -> PageView[T]:
        if not self._unsubscribers:
            self._unsubscribers = [self.ctx.bus.subscribe(topic, self._on_refetch_event) for topic in self.refetch_on]
        await self.sync.mount()
        return self

    def unmount(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self.sync.unmount()

    async def __aenter__(self) -> PageView[T]:
        return await self.mount()

    async def __aexit__(self, *_exc: object) -> None:
        self.unmount()

    async def refresh(self) -> SyncSnapshot[T]:
        return await self.sync.refresh()

    async def wait_pending(self) -> None:
        """Wait for refreshes scheduled from bus events."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def _on_refetch_event(self, event: EventEnvelope) -> None:
        if not self.sync.mounted:
            return
        if event.event_type == SCOPE_CHANGED and not _active_tenant_changed(event):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("%s: no running loop for %s, refetch skipped", self.page, event.event_type)
            return
        task = loop.create_task(self.sync.refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)


def _active_tenant_changed(event: EventEnvelope) -> bool:
    payload = event.payload
    return payload.get("active_tenant_id") != payload.get("previous_active_tenant_id")
