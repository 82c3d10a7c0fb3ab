from __future__ import annotations

import asyncio

import pytest
from fake_backend import console_context, seeded_backend

from console.domain.errors import PermissionDeniedError, ValidationError
from console.domain.models import NotificationType
from console.views.planes import PlanesView


def test_super_admin_manages_plans_and_addons() -> None:
    async def _run() -> None:
        backend = seeded_backend()
        ctx = console_context(backend)
        await ctx.session_store.login("root@example.com", "secret")

        async with PlanesView(ctx) as view:
            assert view.data is not None
            assert [plan.nombre for plan in view.data.plans] == ["PRO"]
            assert [addon.nombre for addon in view.data.addons] == ["Webhooks"]

            plan = await view.create_plan({"nombre": "ENTERPRISE", "precio_mensual_pyg": 500000})
            assert plan is not None and plan.id == "plan-2"
            assert [item.nombre for item in view.data.plans] == ["PRO", "ENTERPRISE"]

            updated = await view.update_plan("plan-1", {"nombre": "PRO+", "limite_usuarios": 10})
            assert updated is not None and updated.limite_usuarios == 10

            assert await view.delete_plan("plan-2") is True
            assert [item.id for item in view.data.plans] == ["plan-1"]

            addon = await view.create_addon({"nombre": "Alertas", "codigo": "ALERTAS"})
            assert addon is not None
            assert await view.delete_addon(addon.id) is True

            titles = [item.title for item in ctx.notifier.items if item.type == NotificationType.SUCCESS]
            assert titles == ["Plan creado", "Plan actualizado", "Plan eliminado", "Add-on creado", "Add-on desactivado"]

    asyncio.run(_run())


def test_plan_mutations_validate_and_report_backend_errors() -> None:
    async def _run() -> None:
        backend = seeded_backend()
        ctx = console_context(backend)
        await ctx.session_store.login("root@example.com", "secret")

        async with PlanesView(ctx) as view:
            with pytest.raises(ValidationError):
                await view.create_plan({"nombre": "  "})

            assert await view.delete_plan("plan-missing") is False
            error = ctx.notifier.items[-1]
            assert error.type == NotificationType.ERROR
            assert error.title == "Error al eliminar plan"
            assert error.description == "El plan tiene empresas asignadas"
            assert view.data is not None and len(view.data.plans) == 1

    asyncio.run(_run())


def test_planes_is_super_admin_only() -> None:
    async def _run() -> None:
        backend = seeded_backend()
        ctx = console_context(backend)
        await ctx.session_store.login("admin@t1.com", "secret")
        view = PlanesView(ctx)
        with pytest.raises(PermissionDeniedError):
            await view.create_plan({"nombre": "HACK"})
        with pytest.raises(PermissionDeniedError):
            await view.delete_addon("addon-1")
        assert "addon-1" in backend.addons

    asyncio.run(_run())
