from __future__ import annotations

import logging
from collections.abc import Callable

from console.domain.errors import ConsoleError
from console.domain.models import EventEnvelope, Identity, RoleName, TenantScope, TenantSummary
from console.domain.permissions import is_tenant_scoped
from console.infra.api_client import ApiClient
from console.infra.events import SCOPE_CHANGED, TENANTS_CHANGED, EventBus, EventHandler
from console.services.session_service import SessionStore

logger = logging.getLogger(__name__)


def resolve_scope(
    identity: Identity | None,
    tenant_list: list[TenantSummary],
    selected_tenant_id: str | None = None,
) -> TenantScope:
    if identity is None:
        return TenantScope()
    if is_tenant_scoped(identity.role):
        if identity.tenant_id is None:
            return TenantScope()
        return TenantScope(
            visible_tenant_ids=frozenset({identity.tenant_id}),
            active_tenant_id=identity.tenant_id,
            can_switch=False,
        )
    known_ids = frozenset(tenant.id for tenant in tenant_list)
    active = selected_tenant_id if selected_tenant_id in known_ids else None
    return TenantScope(visible_tenant_ids=known_ids, active_tenant_id=active, can_switch=True)


class TenantScopeResolver:
    """Tenant cache plus the in-memory active tenant choice of a super admin."""

    def __init__(self, api: ApiClient, session_store: SessionStore, bus: EventBus) -> None:
        self._api = api
        self._session_store = session_store
        self._bus = bus
        self._tenants: list[TenantSummary] = []
        self._selected_tenant_id: str | None = None
        self._identity: Identity | None = session_store.identity
        self._scope = resolve_scope(self._identity, self._tenants)
        self._load_seq = 0
        session_store.subscribe(self._on_session_changed)

    @property
    def scope(self) -> TenantScope:
        return self._scope

    @property
    def tenants(self) -> list[TenantSummary]:
        return list(self._tenants)

    @property
    def active_tenant(self) -> TenantSummary | None:
        active_id = self._scope.active_tenant_id
        if active_id is None:
            return None
        return next((tenant for tenant in self._tenants if tenant.id == active_id), None)

    def effective_tenant_filter(self) -> str | None:
        """Tenant id dependent views filter by; None means all tenants."""
        return self._scope.active_tenant_id

    def is_visible(self, tenant_id: str) -> bool:
        return tenant_id in self._scope.visible_tenant_ids

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        return self._bus.subscribe(SCOPE_CHANGED, handler)

    def _recompute(self) -> None:
        scope = resolve_scope(self._identity, self._tenants, self._selected_tenant_id)
        if scope.can_switch and self._selected_tenant_id != scope.active_tenant_id:
            if self._selected_tenant_id is not None:
                logger.info("active tenant %s no longer exists, falling back to all", self._selected_tenant_id)
            self._selected_tenant_id = scope.active_tenant_id
        previous = self._scope
        self._scope = scope
        if previous != scope:
            self._bus.publish_dict(
                SCOPE_CHANGED,
                {
                    "active_tenant_id": scope.active_tenant_id,
                    "previous_active_tenant_id": previous.active_tenant_id,
                },
            )

    def _on_session_changed(self, event: EventEnvelope) -> None:
        identity = self._session_store.identity
        if identity == self._identity:
            return
        self._identity = identity
        self._tenants = []
        self._selected_tenant_id = None
        self._load_seq += 1
        self._recompute()

    def select_tenant(self, tenant_id: str | None) -> TenantScope:
        identity = self._identity
        if identity is None or identity.role != RoleName.SUPER_ADMIN:
            return self._scope
        self._selected_tenant_id = tenant_id
        self._recompute()
        return self._scope

    def set_tenants(self, tenants: list[TenantSummary]) -> None:
        self._tenants = list(tenants)
        self._recompute()
        self._bus.publish_dict(TENANTS_CHANGED, {"count": len(self._tenants)})

    async def refresh_tenants(self) -> list[TenantSummary]:
        identity = self._identity
        if identity is None:
            self.set_tenants([])
            return []
        self._load_seq += 1
        seq = self._load_seq
        try:
            if is_tenant_scoped(identity.role) and identity.tenant_id:
                tenants: list[TenantSummary] = [await self._api.get_tenant(identity.tenant_id)]
            else:
                tenants = await self._api.list_tenants()
        except ConsoleError as exc:
            logger.warning("tenant list refresh failed: %s", exc.message)
            raise
        if seq != self._load_seq:
            return self.tenants
        self.set_tenants(tenants)
        return self.tenants
