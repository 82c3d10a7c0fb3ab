from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from console.domain.models import RoleName


class PageId(StrEnum):
    DASHBOARD = "dashboard"
    TENANTS = "tenants"
    JOBS = "jobs"
    COMPROBANTES = "comprobantes"
    METRICAS = "metricas"
    CLASIFICACION = "clasificacion"
    ALERTAS = "alertas"
    ANOMALIAS = "anomalias"
    WEBHOOKS = "webhooks"
    API_TOKENS = "api-tokens"
    NOTIFICACIONES = "notificaciones"
    CONCILIACION = "conciliacion"
    BILLING = "billing"
    AUDITORIA = "auditoria"
    USUARIOS = "usuarios"
    PLANES = "planes"


class NavGroup(StrEnum):
    PRIMARY = "primary"
    AUTOMATION = "automation"
    ADMIN = "admin"


@dataclass(frozen=True)
class NavItem:
    id: PageId
    label: str
    allowed_roles: frozenset[RoleName] | None = None


ADMINS = frozenset({RoleName.SUPER_ADMIN, RoleName.ADMIN_EMPRESA})
SUPER_ONLY = frozenset({RoleName.SUPER_ADMIN})

PRIMARY_NAV_ITEMS: tuple[NavItem, ...] = (
    NavItem(PageId.DASHBOARD, "Dashboard"),
    NavItem(PageId.TENANTS, "Empresas", ADMINS),
    NavItem(PageId.JOBS, "Jobs"),
    NavItem(PageId.COMPROBANTES, "Comprobantes"),
    NavItem(PageId.METRICAS, "Métricas", SUPER_ONLY),
)

AUTOMATION_NAV_ITEMS: tuple[NavItem, ...] = (
    NavItem(PageId.CLASIFICACION, "Clasificación"),
    NavItem(PageId.ALERTAS, "Alertas"),
    NavItem(PageId.ANOMALIAS, "Anomalías"),
    NavItem(PageId.WEBHOOKS, "Webhooks"),
    NavItem(PageId.API_TOKENS, "API Tokens"),
    NavItem(PageId.NOTIFICACIONES, "Notificaciones"),
    NavItem(PageId.CONCILIACION, "Conciliación"),
    NavItem(PageId.BILLING, "Billing", ADMINS),
    NavItem(PageId.AUDITORIA, "Auditoría", ADMINS),
)

ADMIN_NAV_ITEMS: tuple[NavItem, ...] = (
    NavItem(PageId.USUARIOS, "Usuarios", ADMINS),
    NavItem(PageId.PLANES, "Planes", SUPER_ONLY),
)

NAV_DEFINITION: dict[NavGroup, tuple[NavItem, ...]] = {
    NavGroup.PRIMARY: PRIMARY_NAV_ITEMS,
    NavGroup.AUTOMATION: AUTOMATION_NAV_ITEMS,
    NavGroup.ADMIN: ADMIN_NAV_ITEMS,
}

PAGE_ACCESS: dict[PageId, frozenset[RoleName] | None] = {
    item.id: item.allowed_roles for items in NAV_DEFINITION.values() for item in items
}

DEFAULT_PAGE = PageId.DASHBOARD


def is_item_visible(item: NavItem, role: RoleName | None) -> bool:
    if not item.allowed_roles:
        return True
    return role is not None and role in item.allowed_roles


def visible_items(nav_definition: tuple[NavItem, ...] | list[NavItem], role: RoleName | None) -> list[NavItem]:
    return [item for item in nav_definition if is_item_visible(item, role)]


def can_access_page(page: PageId, role: RoleName | None) -> bool:
    allowed = PAGE_ACCESS.get(page)
    if not allowed:
        return True
    return role is not None and role in allowed
