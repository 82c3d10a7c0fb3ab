from __future__ import annotations

import asyncio

from fake_backend import seeded_backend

from console.domain.models import EventEnvelope, RoleName
from console.domain.navigation import (
    NAV_DEFINITION,
    PAGE_ACCESS,
    NavGroup,
    NavItem,
    PageId,
    can_access_page,
    visible_items,
)
from console.infra.events import NAV_CHANGED, EventBus
from console.infra.storage import MemoryStorage
from console.services.navigation_service import NavigationGate, collapse_key
from console.services.session_service import SessionStore


def _ids(items: list[NavItem]) -> list[PageId]:
    return [item.id for item in items]


def test_visible_items_preserve_definition_order() -> None:
    primary = NAV_DEFINITION[NavGroup.PRIMARY]
    assert _ids(visible_items(primary, RoleName.SUPER_ADMIN)) == [
        PageId.DASHBOARD,
        PageId.TENANTS,
        PageId.JOBS,
        PageId.COMPROBANTES,
        PageId.METRICAS,
    ]
    assert _ids(visible_items(primary, RoleName.ADMIN_EMPRESA)) == [
        PageId.DASHBOARD,
        PageId.TENANTS,
        PageId.JOBS,
        PageId.COMPROBANTES,
    ]
    assert _ids(visible_items(primary, RoleName.READONLY)) == [
        PageId.DASHBOARD,
        PageId.JOBS,
        PageId.COMPROBANTES,
    ]


def test_admin_group_by_role() -> None:
    admin = NAV_DEFINITION[NavGroup.ADMIN]
    assert _ids(visible_items(admin, RoleName.SUPER_ADMIN)) == [PageId.USUARIOS, PageId.PLANES]
    assert _ids(visible_items(admin, RoleName.ADMIN_EMPRESA)) == [PageId.USUARIOS]
    assert visible_items(admin, RoleName.USUARIO_EMPRESA) == []


def test_page_access_table() -> None:
    assert PAGE_ACCESS[PageId.DASHBOARD] is None
    assert can_access_page(PageId.PLANES, RoleName.SUPER_ADMIN) is True
    assert can_access_page(PageId.PLANES, RoleName.ADMIN_EMPRESA) is False
    assert can_access_page(PageId.METRICAS, RoleName.ADMIN_EMPRESA) is False
    assert can_access_page(PageId.BILLING, RoleName.ADMIN_EMPRESA) is True
    assert can_access_page(PageId.AUDITORIA, RoleName.READONLY) is False
    assert can_access_page(PageId.JOBS, None) is True
    assert can_access_page(PageId.TENANTS, None) is False


def test_collapse_flags_load_before_first_menu_and_persist() -> None:
    backend = seeded_backend()
    storage = MemoryStorage({collapse_key(NavGroup.AUTOMATION): "1"})
    bus = EventBus()
    store = SessionStore(backend.client(), storage, bus)
    gate = NavigationGate(store, storage, bus)

    assert gate.is_collapsed(NavGroup.AUTOMATION) is True
    assert gate.is_collapsed(NavGroup.PRIMARY) is False
    assert storage.writes == 0

    events: list[EventEnvelope] = []
    bus.subscribe(NAV_CHANGED, events.append)
    assert gate.toggle(NavGroup.ADMIN) is True
    assert storage.get(collapse_key(NavGroup.ADMIN)) == "1"
    gate.set_collapsed(NavGroup.ADMIN, True)
    assert storage.writes == 1
    assert len(events) == 1

    reloaded = NavigationGate(store, storage, bus)
    assert reloaded.is_collapsed(NavGroup.ADMIN) is True
    assert reloaded.is_collapsed(NavGroup.AUTOMATION) is True


def test_menu_follows_session_identity() -> None:
    async def _run() -> None:
        backend = seeded_backend()
        storage = MemoryStorage()
        bus = EventBus()
        store = SessionStore(backend.client(), storage, bus)
        gate = NavigationGate(store, storage, bus)
        assert PageId.TENANTS not in _ids(gate.items(NavGroup.PRIMARY))

        await store.login("root@example.com", "secret")
        assert _ids(gate.items(NavGroup.ADMIN)) == [PageId.USUARIOS, PageId.PLANES]
        assert gate.resolve_page(PageId.PLANES) == PageId.PLANES

        await store.logout()
        await store.login("admin@t1.com", "secret")
        assert _ids(gate.items(NavGroup.ADMIN)) == [PageId.USUARIOS]
        assert gate.can_access(PageId.PLANES) is False
        assert gate.resolve_page(PageId.PLANES) == PageId.DASHBOARD

    asyncio.run(_run())
