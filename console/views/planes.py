from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from console.domain.errors import ConsoleError, PermissionDeniedError, ValidationError
from console.domain.forms import REQUIRED
from console.domain.models import Addon, Plan
from console.domain.navigation import PageId
from console.views.base import PageView

R = TypeVar("R")


@dataclass(frozen=True)
class PlanesData:
    plans: list[Plan] = field(default_factory=list)
    addons: list[Addon] = field(default_factory=list)


def _require_nombre(payload: dict[str, Any]) -> None:
    if not str(payload.get("nombre") or "").strip():
        raise ValidationError("nombre", REQUIRED)


class PlanesView(PageView[PlanesData]):
    page = PageId.PLANES
    error_title = "Error al cargar planes"
    refetch_on = ()

    async def load(self) -> PlanesData:
        plans = await self.ctx.api.list_plans()
        addons = await self.ctx.api.list_addons()
        return PlanesData(plans=plans, addons=addons)

    def _require_super_admin(self) -> None:
        if not self.ctx.session_store.flags.is_super_admin:
            raise PermissionDeniedError("Plan management requires super_admin")

    async def _mutate(self, call: Awaitable[R], success_title: str, failure_title: str) -> tuple[bool, R | None]:
        try:
            result = await call
        except ConsoleError as exc:
            self.ctx.notifier.from_error(failure_title, exc)
            return False, None
        self.ctx.notifier.success(success_title)
        await self.refresh()
        return True, result

    async def create_plan(self, payload: dict[str, Any]) -> Plan | None:
        self._require_super_admin()
        _require_nombre(payload)
        _, plan = await self._mutate(self.ctx.api.create_plan(payload), "Plan creado", "Error al crear plan")
        return plan

    async def update_plan(self, plan_id: str, payload: dict[str, Any]) -> Plan | None:
        self._require_super_admin()
        _require_nombre(payload)
        _, plan = await self._mutate(
            self.ctx.api.update_plan(plan_id, payload),
            "Plan actualizado",
            "Error al actualizar plan",
        )
        return plan

    async def delete_plan(self, plan_id: str) -> bool:
        self._require_super_admin()
        ok, _ = await self._mutate(self.ctx.api.delete_plan(plan_id), "Plan eliminado", "Error al eliminar plan")
        return ok

    async def create_addon(self, payload: dict[str, Any]) -> Addon | None:
        self._require_super_admin()
        _require_nombre(payload)
        _, addon = await self._mutate(self.ctx.api.create_addon(payload), "Add-on creado", "Error al crear add-on")
        return addon

    async def update_addon(self, addon_id: str, payload: dict[str, Any]) -> Addon | None:
        self._require_super_admin()
        _require_nombre(payload)
        _, addon = await self._mutate(
            self.ctx.api.update_addon(addon_id, payload),
            "Add-on actualizado",
            "Error al actualizar add-on",
        )
        return addon

    async def delete_addon(self, addon_id: str) -> bool:
        self._require_super_admin()
        ok, _ = await self._mutate(
            self.ctx.api.delete_addon(addon_id),
            "Add-on desactivado",
            "Error al desactivar add-on",
        )
        return ok
