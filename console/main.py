from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from typing import Any

from console.domain.errors import ConsoleError
from console.domain.models import ApiStatus, EventEnvelope, HealthStatus, Identity, SessionStatus
from console.domain.navigation import DEFAULT_PAGE, PageId
from console.domain.state_machine import SyncState
from console.infra.api_client import ApiClient
from console.infra.events import API_STATUS_CHANGED, PAGE_CHANGED
from console.infra.log import setup_logging
from console.infra.storage import STORAGE_PATH, JsonFileStorage
from console.services.sync_service import HEALTH_POLL_SECONDS, PollingSynchronizer
from console.views.base import PageView
from console.views.dashboard import DashboardView
from console.views.deps import ConsoleContext, build_context
from console.views.jobs import JobsView
from console.views.planes import PlanesView
from console.views.tenants import TenantsView

ViewFactory = Callable[[ConsoleContext, dict[str, str]], PageView[Any]]

VIEW_FACTORIES: dict[PageId, ViewFactory] = {
    PageId.DASHBOARD: lambda ctx, _params: DashboardView(ctx),
    PageId.JOBS: lambda ctx, _params: JobsView(ctx),
    PageId.TENANTS: lambda ctx, params: TenantsView(ctx, initial_tenant_id=params.get("id")),
    PageId.PLANES: lambda ctx, _params: PlanesView(ctx),
}

logger = logging.getLogger(__name__)


class ConsoleApp:
    """Shell of the console: session boot, page routing, and the API health probe."""

    def __init__(self, ctx: ConsoleContext, *, health_poll_seconds: float | None = HEALTH_POLL_SECONDS) -> None:
        self.ctx = ctx
        self.current_page: PageId = DEFAULT_PAGE
        self.params: dict[str, str] = {}
        self.view: PageView[Any] | None = None
        self._api_status = ApiStatus.CHECKING
        self.health: PollingSynchronizer[HealthStatus] = PollingSynchronizer(
            "health",
            ctx.api.health,
            ctx.bus,
            interval_seconds=health_poll_seconds,
        )
        self.health.subscribe(self._on_health_event)
        ctx.session_store.subscribe(self._on_session_changed)

    @property
    def api_status(self) -> ApiStatus:
        return self._api_status

    def _on_health_event(self, event: EventEnvelope) -> None:
        state = self.health.state
        if state == SyncState.LIVE:
            status = ApiStatus.OK
        elif state == SyncState.ERROR:
            status = ApiStatus.ERROR
        elif state in (SyncState.LOADING, SyncState.IDLE):
            status = ApiStatus.CHECKING
        else:
            return
        if status == self._api_status:
            return
        self._api_status = status
        self.ctx.bus.publish_dict(API_STATUS_CHANGED, {"status": str(status)})

    def _on_session_changed(self, event: EventEnvelope) -> None:
        if self.ctx.session_store.status == SessionStatus.ANONYMOUS:
            self._unmount_view()
            return
        if event.payload.get("identity_changed") and not self.ctx.nav.can_access(self.current_page):
            logger.info("page %s not allowed for the new identity", self.current_page)
            self._unmount_view()
            self._set_page(DEFAULT_PAGE, {})

    def _unmount_view(self) -> None:
        if self.view is not None:
            self.view.unmount()
            self.view = None

    def _set_page(self, page: PageId, params: dict[str, str]) -> None:
        previous = self.current_page
        self.current_page = page
        self.params = params
        self.ctx.bus.publish_dict(PAGE_CHANGED, {"page": str(page), "previous": str(previous)})

    async def boot(self) -> PageId:
        await self.health.mount()
        session = await self.ctx.session_store.restore()
        if not session.is_authenticated:
            return self.current_page
        await self._load_tenants()
        return await self.navigate(self.current_page, self.params)

    async def _load_tenants(self) -> None:
        try:
            await self.ctx.scope.refresh_tenants()
        except ConsoleError as exc:
            self.ctx.notifier.from_error("Error al cargar empresas", exc)

    async def navigate(self, page: PageId, params: dict[str, str] | None = None) -> PageId:
        target = self.ctx.nav.resolve_page(page)
        target_params = dict(params or {}) if target == page else {}
        if target != page:
            logger.info("page %s not allowed, falling back to %s", page, target)
        self._unmount_view()
        self._set_page(target, target_params)
        if not self.ctx.session_store.session.is_authenticated:
            return target
        factory = VIEW_FACTORIES.get(target)
        if factory is None:
            return target
        view = factory(self.ctx, target_params)
        self.view = view
        await view.mount()
        return target

    async def login(self, email: str, password: str) -> Identity:
        identity = await self.ctx.session_store.login(email, password)
        await self._load_tenants()
        await self.navigate(self.current_page, self.params)
        return identity

    async def logout(self) -> None:
        self._unmount_view()
        await self.ctx.session_store.logout()
        self._set_page(DEFAULT_PAGE, {})

    def select_tenant(self, tenant_id: str | None) -> None:
        self.ctx.scope.select_tenant(tenant_id)

    async def shutdown(self) -> None:
        self._unmount_view()
        self.health.unmount()
        await self.ctx.api.aclose()


async def _run() -> None:
    setup_logging()
    api = ApiClient()
    app = ConsoleApp(build_context(api, JsonFileStorage(STORAGE_PATH)))
    try:
        await app.boot()
        if not app.ctx.session_store.session.is_authenticated:
            email = os.getenv("CONSOLE_EMAIL", "")
            password = os.getenv("CONSOLE_PASSWORD", "")
            if not email or not password:
                raise RuntimeError("no stored session; set CONSOLE_EMAIL and CONSOLE_PASSWORD")
            await app.login(email, password)
        identity = app.ctx.session_store.identity
        view = app.view
        stats = view.stats if isinstance(view, DashboardView) else None
        print(
            f"console: api={app.api_status} user={identity.email if identity else '-'} "
            f"page={app.current_page} stats={stats}"
        )
    finally:
        await app.shutdown()


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
