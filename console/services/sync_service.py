from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Generic, TypeVar

from console.domain.errors import PollingError
from console.domain.models import now_utc
from console.domain.state_machine import SyncState, can_sync_transition
from console.infra.events import EventBus, EventHandler, sync_event
from console.services.notification_service import Notifier

JOBS_POLL_SECONDS = float(os.getenv("CONSOLE_JOBS_POLL_SECONDS", "15"))
DASHBOARD_POLL_SECONDS = float(os.getenv("CONSOLE_DASHBOARD_POLL_SECONDS", "30"))
HEALTH_POLL_SECONDS = float(os.getenv("CONSOLE_HEALTH_POLL_SECONDS", "60"))

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncSnapshot(Generic[T]):
    view: str
    state: SyncState = SyncState.IDLE
    data: T | None = None
    error: str | None = None
    applied_seq: int = 0
    updated_at: datetime | None = None

    @property
    def has_data(self) -> bool:
        return self.data is not None


class ScopedTimer:
    """Repeating tick task owned by one mounted view.

    Ticks run one after another; a tick fetch that is still running when the
    timer is cancelled is shielded and finishes on its own.
    """

    def __init__(self, name: str, interval_seconds: float, callback: Callable[[], Awaitable[object]]) -> None:
        self._name = name
        self._interval_seconds = max(interval_seconds, 0.0)
        self._callback = callback
        self._task: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Future[object]] = set()

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def start(self) -> ScopedTimer:
        if not self.active:
            self._task = asyncio.get_running_loop().create_task(self._run(), name=f"poll:{self._name}")
        return self

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            tick = asyncio.ensure_future(self._callback())
            self._inflight.add(tick)
            tick.add_done_callback(self._inflight.discard)
            await asyncio.shield(tick)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def drain(self) -> None:
        """Wait for ticks that were running when the timer was cancelled."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)


class PollingSynchronizer(Generic[T]):
    """Keeps one view's data live through interval and on-demand fetches.

    Every fetch takes the next request sequence number. A result, success or
    failure, is applied only if no later request has completed yet, so a slow
    scheduled tick can never overwrite a newer forced refresh. Results that
    land after unmount are dropped.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[T]],
        bus: EventBus,
        *,
        interval_seconds: float | None,
        notifier: Notifier | None = None,
        error_title: str | None = None,
    ) -> None:
        self._name = name
        self._fetch = fetch
        self._bus = bus
        self._interval_seconds = interval_seconds
        self._notifier = notifier
        self._error_title = error_title or f"Error al actualizar {name}"
        self._snapshot: SyncSnapshot[T] = SyncSnapshot(view=name)
        self._issued_seq = 0
        self._completed_seq = 0
        self._pending: set[int] = set()
        self._mount_floor = 0
        self._alive = False
        self._timer: ScopedTimer | None = None
        self._last_error: PollingError | None = None
        self._failing = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def snapshot(self) -> SyncSnapshot[T]:
        return self._snapshot

    @property
    def state(self) -> SyncState:
        return self._snapshot.state

    @property
    def data(self) -> T | None:
        return self._snapshot.data

    @property
    def mounted(self) -> bool:
        return self._alive

    @property
    def last_error(self) -> PollingError | None:
        return self._last_error

    @property
    def issued_seq(self) -> int:
        return self._issued_seq

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        return self._bus.subscribe(sync_event(self._name), handler)

    def _transition(self, state: SyncState) -> SyncState:
        current = self._snapshot.state
        if not can_sync_transition(current, state):
            raise RuntimeError(f"{self._name}: invalid sync transition {current} -> {state}")
        return state

    def _publish(self) -> None:
        snapshot = self._snapshot
        self._bus.publish_dict(
            sync_event(self._name),
            {"state": str(snapshot.state), "seq": snapshot.applied_seq, "error": snapshot.error},
        )

    def _set(self, snapshot: SyncSnapshot[T]) -> None:
        if snapshot == self._snapshot:
            return
        self._snapshot = snapshot
        self._publish()

    async def mount(self) -> ScopedTimer | None:
        if self._alive:
            return self._timer
        self._alive = True
        self._mount_floor = self._issued_seq
        self._failing = False
        self._set(replace(self._snapshot, state=self._transition(SyncState.LOADING), error=None))
        timer = None
        if self._interval_seconds is not None:
            timer = ScopedTimer(self._name, self._interval_seconds, self.tick)
        self._timer = timer
        await self._run_fetch(self._next_seq())
        if timer is not None and self._alive and self._timer is timer:
            timer.start()
        return timer

    def unmount(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._alive:
            return
        self._alive = False
        self._set(replace(self._snapshot, state=self._transition(SyncState.IDLE)))

    @asynccontextmanager
    async def mounted_scope(self) -> AsyncIterator[PollingSynchronizer[T]]:
        timer = await self.mount()
        try:
            yield self
        finally:
            self.unmount()
            if timer is not None:
                await timer.drain()

    async def tick(self) -> SyncSnapshot[T]:
        return await self._refresh()

    async def refresh(self) -> SyncSnapshot[T]:
        """Out-of-band fetch for a manual refresh or right after a mutation."""
        return await self._refresh()

    async def _refresh(self) -> SyncSnapshot[T]:
        if not self._alive:
            return self._snapshot
        seq = self._next_seq()
        if self._snapshot.state in (SyncState.LIVE, SyncState.ERROR):
            self._set(replace(self._snapshot, state=self._transition(SyncState.REFRESHING)))
        await self._run_fetch(seq)
        return self._snapshot

    def _next_seq(self) -> int:
        self._issued_seq += 1
        return self._issued_seq

    async def _run_fetch(self, seq: int) -> None:
        self._pending.add(seq)
        try:
            data = await self._fetch()
        except Exception as exc:
            self._apply_failure(seq, exc)
            return
        finally:
            self._pending.discard(seq)
        self._apply_success(seq, data)

    def _accepts(self, seq: int) -> bool:
        if not self._alive:
            logger.debug("%s: dropping result #%s for unmounted view", self._name, seq)
            return False
        if seq <= self._mount_floor:
            logger.debug("%s: dropping result #%s from a previous mount", self._name, seq)
            return False
        if seq <= self._completed_seq:
            logger.debug("%s: dropping stale result #%s (completed #%s)", self._name, seq, self._completed_seq)
            return False
        self._completed_seq = seq
        return True

    def _newer_pending(self, seq: int) -> bool:
        return any(other > seq and other > self._mount_floor for other in self._pending)

    def _apply_success(self, seq: int, data: T) -> None:
        if not self._accepts(seq):
            return
        state = SyncState.REFRESHING if self._newer_pending(seq) else SyncState.LIVE
        self._last_error = None
        self._failing = False
        self._set(
            SyncSnapshot(
                view=self._name,
                state=self._transition(state),
                data=data,
                error=None,
                applied_seq=seq,
                updated_at=now_utc(),
            )
        )

    def _apply_failure(self, seq: int, exc: Exception) -> None:
        if not self._accepts(seq):
            return
        error = PollingError(self._name, exc)
        self._last_error = error
        logger.warning("poll failed: %s", error.message)
        entering_error = not self._failing
        self._failing = True
        self._set(replace(self._snapshot, state=self._transition(SyncState.ERROR), error=str(exc) or exc.__class__.__name__))
        if entering_error and self._notifier is not None:
            self._notifier.from_error(self._error_title, exc)
