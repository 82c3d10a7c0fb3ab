from __future__ import annotations

from dataclasses import dataclass
from typing import assert_never

from console.domain.models import Identity, RoleName


def permission_key(resource: str, action: str) -> str:
    return f"{resource}:{action}"


def has_permission(identity: Identity | None, resource: str, action: str) -> bool:
    if identity is None:
        return False
    if identity.role == RoleName.SUPER_ADMIN:
        return True
    return permission_key(resource, action) in identity.permisos


def has_feature(identity: Identity | None, feature: str) -> bool:
    if identity is None:
        return False
    if identity.role == RoleName.SUPER_ADMIN:
        return True
    return identity.plan_features.get(feature) is True


def is_tenant_scoped(role: RoleName) -> bool:
    match role:
        case RoleName.SUPER_ADMIN:
            return False
        case RoleName.ADMIN_EMPRESA | RoleName.USUARIO_EMPRESA | RoleName.READONLY:
            return True
        case _:
            assert_never(role)


@dataclass(frozen=True)
class RoleFlags:
    role: RoleName | None = None
    is_super_admin: bool = False
    is_admin_empresa: bool = False
    is_usuario_empresa: bool = False
    is_readonly: bool = False

    @property
    def is_admin_empresa_only(self) -> bool:
        return self.is_admin_empresa and not self.is_super_admin


ANONYMOUS_FLAGS = RoleFlags()


def role_flags(identity: Identity | None) -> RoleFlags:
    if identity is None:
        return ANONYMOUS_FLAGS
    role = identity.role
    match role:
        case RoleName.SUPER_ADMIN:
            return RoleFlags(role=role, is_super_admin=True, is_admin_empresa=True)
        case RoleName.ADMIN_EMPRESA:
            return RoleFlags(role=role, is_admin_empresa=True)
        case RoleName.USUARIO_EMPRESA:
            return RoleFlags(role=role, is_usuario_empresa=True)
        case RoleName.READONLY:
            return RoleFlags(role=role, is_readonly=True)
        case _:
            assert_never(role)
