from __future__ import annotations

import pytest

from console.domain.models import Identity, RoleName
from console.domain.permissions import (
    ANONYMOUS_FLAGS,
    has_feature,
    has_permission,
    is_tenant_scoped,
    role_flags,
)


def _identity(role: RoleName, permisos: list[str] | None = None, **extra: object) -> Identity:
    return Identity.model_validate(
        {
            "id": f"user-{role}",
            "nombre": "Test",
            "rol": {"nombre": role.value},
            "permisos": permisos or [],
            "tenant_id": None if role == RoleName.SUPER_ADMIN else "T1",
            **extra,
        }
    )


@pytest.mark.parametrize(
    ("resource", "action"),
    [("tenants", "ver"), ("tenants", "delete"), ("planes", "editar"), ("anything", "at_all")],
)
def test_super_admin_passes_every_permission(resource: str, action: str) -> None:
    assert has_permission(_identity(RoleName.SUPER_ADMIN), resource, action) is True


def test_admin_empresa_without_permisos_is_denied() -> None:
    identity = _identity(RoleName.ADMIN_EMPRESA)
    assert has_permission(identity, "tenants", "delete") is False
    assert has_permission(identity, "tenants", "ver") is False


def test_permission_is_plain_membership_for_other_roles() -> None:
    identity = _identity(RoleName.USUARIO_EMPRESA, ["jobs:ver", "tenants:ver"])
    assert has_permission(identity, "jobs", "ver") is True
    assert has_permission(identity, "jobs", "crear") is False
    assert has_permission(None, "jobs", "ver") is False


def test_role_flags_are_derived_from_role() -> None:
    root = role_flags(_identity(RoleName.SUPER_ADMIN))
    assert root.is_super_admin and root.is_admin_empresa
    assert root.is_admin_empresa_only is False

    admin = role_flags(_identity(RoleName.ADMIN_EMPRESA))
    assert admin.is_admin_empresa and not admin.is_super_admin
    assert admin.is_admin_empresa_only is True

    readonly = role_flags(_identity(RoleName.READONLY))
    assert readonly.is_readonly and not readonly.is_usuario_empresa

    assert role_flags(None) == ANONYMOUS_FLAGS
    assert ANONYMOUS_FLAGS.role is None


def test_only_super_admin_is_unscoped() -> None:
    assert is_tenant_scoped(RoleName.SUPER_ADMIN) is False
    for role in (RoleName.ADMIN_EMPRESA, RoleName.USUARIO_EMPRESA, RoleName.READONLY):
        assert is_tenant_scoped(role) is True


def test_has_feature_uses_plan_features() -> None:
    identity = _identity(RoleName.ADMIN_EMPRESA, plan_features={"webhooks": True, "api_tokens": 1})
    assert has_feature(identity, "webhooks") is True
    assert has_feature(identity, "api_tokens") is False
    assert has_feature(identity, "alertas") is False
    assert has_feature(_identity(RoleName.SUPER_ADMIN), "alertas") is True
    assert has_feature(None, "webhooks") is False


def test_unknown_role_is_rejected_at_the_boundary() -> None:
    with pytest.raises(ValueError):
        _identity_from_wire("owner")


def _identity_from_wire(role: str) -> Identity:
    return Identity.model_validate({"id": "x", "nombre": "x", "rol": {"nombre": role}})
