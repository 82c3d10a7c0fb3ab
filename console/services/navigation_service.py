from __future__ import annotations

from collections.abc import Callable

from console.domain.models import EventEnvelope
from console.domain.navigation import (
    DEFAULT_PAGE,
    NAV_DEFINITION,
    NavGroup,
    NavItem,
    PageId,
    can_access_page,
    visible_items,
)
from console.infra.events import NAV_CHANGED, EventBus, EventHandler
from console.infra.storage import COLLAPSE_KEY_PREFIX, ClientStorage
from console.services.session_service import SessionStore


def collapse_key(group: NavGroup) -> str:
    return f"{COLLAPSE_KEY_PREFIX}{group.value}"


class NavigationGate:
    def __init__(
        self,
        session_store: SessionStore,
        storage: ClientStorage,
        bus: EventBus,
        nav_definition: dict[NavGroup, tuple[NavItem, ...]] | None = None,
    ) -> None:
        self._session_store = session_store
        self._storage = storage
        self._bus = bus
        self._nav_definition = nav_definition or NAV_DEFINITION
        # Collapse flags are read before the first menu is built.
        self._collapsed: dict[NavGroup, bool] = {
            group: self._storage.get(collapse_key(group)) == "1" for group in NavGroup
        }
        self._menu = self._compute_menu()
        session_store.subscribe(self._on_session_changed)

    def _compute_menu(self) -> dict[NavGroup, list[NavItem]]:
        role = self._session_store.flags.role
        return {group: visible_items(items, role) for group, items in self._nav_definition.items()}

    def _on_session_changed(self, event: EventEnvelope) -> None:
        menu = self._compute_menu()
        if menu == self._menu:
            return
        self._menu = menu
        self._bus.publish_dict(NAV_CHANGED, {"groups": {str(group): len(items) for group, items in menu.items()}})

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        return self._bus.subscribe(NAV_CHANGED, handler)

    def menu(self) -> dict[NavGroup, list[NavItem]]:
        return {group: list(items) for group, items in self._menu.items()}

    def items(self, group: NavGroup) -> list[NavItem]:
        return list(self._menu.get(group, []))

    def is_collapsed(self, group: NavGroup) -> bool:
        return self._collapsed[group]

    def set_collapsed(self, group: NavGroup, collapsed: bool) -> None:
        if self._collapsed[group] == collapsed:
            return
        self._collapsed[group] = collapsed
        self._storage.set(collapse_key(group), "1" if collapsed else "0")
        self._bus.publish_dict(NAV_CHANGED, {"group": str(group), "collapsed": collapsed})

    def toggle(self, group: NavGroup) -> bool:
        self.set_collapsed(group, not self._collapsed[group])
        return self._collapsed[group]

    def can_access(self, page: PageId) -> bool:
        return can_access_page(page, self._session_store.flags.role)

    def resolve_page(self, page: PageId) -> PageId:
        return page if self.can_access(page) else DEFAULT_PAGE
