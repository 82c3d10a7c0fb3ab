from __future__ import annotations

from dataclasses import dataclass

from console.domain.errors import PermissionDeniedError
from console.domain.navigation import PageId
from console.infra.api_client import ApiClient
from console.infra.events import EventBus
from console.infra.storage import ClientStorage, MemoryStorage
from console.services.navigation_service import NavigationGate
from console.services.notification_service import Notifier
from console.services.scope_service import TenantScopeResolver
from console.services.session_service import SessionStore


@dataclass
class ConsoleContext:
    """Everything a view controller reads from; one per running console."""

    api: ApiClient
    storage: ClientStorage
    bus: EventBus
    notifier: Notifier
    session_store: SessionStore
    scope: TenantScopeResolver
    nav: NavigationGate


def build_context(
    api: ApiClient,
    storage: ClientStorage | None = None,
    *,
    bus: EventBus | None = None,
    notifier: Notifier | None = None,
) -> ConsoleContext:
    bus = bus or EventBus()
    storage = storage if storage is not None else MemoryStorage()
    notifier = notifier or Notifier(bus)
    session_store = SessionStore(api, storage, bus, notifier)
    scope = TenantScopeResolver(api, session_store, bus)
    nav = NavigationGate(session_store, storage, bus)
    return ConsoleContext(
        api=api,
        storage=storage,
        bus=bus,
        notifier=notifier,
        session_store=session_store,
        scope=scope,
        nav=nav,
    )


def require_page(ctx: ConsoleContext, page: PageId) -> None:
    if not ctx.nav.can_access(page):
        raise PermissionDeniedError(f"Page {page} is not available for role {ctx.session_store.flags.role}")
