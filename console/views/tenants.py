from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from console.domain.errors import ConsoleError, PermissionDeniedError, ValidationError
from console.domain.forms import TenantForm, build_tenant_payload, collect_form_errors
from console.domain.models import Addon, EnqueuedJob, TenantAddon, TenantDetail, TenantSummary
from console.domain.navigation import PageId
from console.infra.events import JOBS_ENQUEUED
from console.views.base import PageView
from console.views.deps import ConsoleContext, require_page

XML_BATCH_SIZE = 20

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantsData:
    tenants: list[TenantSummary] = field(default_factory=list)


@dataclass(frozen=True)
class TenantDetailState:
    tenant: TenantDetail
    tenant_addons: list[TenantAddon] = field(default_factory=list)
    available_addons: list[Addon] = field(default_factory=list)

    @property
    def active_addon_ids(self) -> set[str]:
        return {item.addon_id for item in self.tenant_addons}


class TenantsView(PageView[TenantsData]):
    page = PageId.TENANTS
    error_title = "Error al cargar empresas"
    refetch_on = ()

    def __init__(self, ctx: ConsoleContext, initial_tenant_id: str | None = None) -> None:
        super().__init__(ctx)
        self._initial_tenant_id = initial_tenant_id
        self.detail: TenantDetailState | None = None
        self.form_errors: dict[str, str] = {}
        self._detail_seq = 0

    @property
    def pinned_tenant_id(self) -> str | None:
        """Tenant-scoped identities only ever see their own tenant."""
        identity = self.ctx.session_store.identity
        if identity is None or self.ctx.session_store.flags.is_super_admin:
            return None
        return identity.tenant_id

    @property
    def selected_id(self) -> str | None:
        return self.detail.tenant.id if self.detail is not None else None

    async def load(self) -> TenantsData:
        tenants = await self.ctx.scope.refresh_tenants()
        return TenantsData(tenants=tenants)

    async def mount(self) -> TenantsView:
        await super().mount()
        target = self.pinned_tenant_id or self._initial_tenant_id
        if target is not None and self.mounted:
            await self.open_detail(target)
        return self

    def unmount(self) -> None:
        super().unmount()
        self._detail_seq += 1

    async def open_detail(self, tenant_id: str) -> TenantDetailState | None:
        pinned = self.pinned_tenant_id
        if pinned is not None and tenant_id != pinned:
            raise PermissionDeniedError(f"Tenant {tenant_id} is outside the session scope")
        self._detail_seq += 1
        seq = self._detail_seq
        is_super_admin = self.ctx.session_store.flags.is_super_admin
        try:
            tenant = await self.ctx.api.get_tenant(tenant_id)
            tenant_addons: list[TenantAddon] = []
            available: list[Addon] = []
            if is_super_admin:
                tenant_addons = await self._optional(self.ctx.api.list_tenant_addons(tenant_id))
                available = await self._optional(self.ctx.api.list_addons())
        except ConsoleError as exc:
            if seq == self._detail_seq:
                self.ctx.notifier.from_error("Error al cargar empresa", exc)
            return None
        if seq != self._detail_seq:
            return self.detail
        self.detail = TenantDetailState(tenant=tenant, tenant_addons=tenant_addons, available_addons=available)
        self.form_errors = {}
        return self.detail

    async def _optional(self, coro: Awaitable[list[T]]) -> list[T]:
        try:
            return await coro
        except ConsoleError as exc:
            logger.info("optional addon lookup failed: %s", exc.message)
            return []

    def close_detail(self) -> None:
        if self.pinned_tenant_id is not None:
            return
        self._detail_seq += 1
        self.detail = None

    async def reload(self) -> None:
        if self.pinned_tenant_id is not None and self.selected_id is not None:
            await self.open_detail(self.selected_id)
            return
        await self.refresh()

    def _check_form(self, form: TenantForm, *, creating: bool) -> None:
        self.form_errors = collect_form_errors(form, creating=creating)
        if self.form_errors:
            field_name, reason = next(iter(self.form_errors.items()))
            raise ValidationError(field_name, reason)

    async def create_tenant(self, form: TenantForm) -> TenantSummary | None:
        self._require_super_admin("Tenant creation")
        self._check_form(form, creating=True)
        try:
            created = await self.ctx.api.create_tenant(build_tenant_payload(form))
        except ConsoleError as exc:
            self.ctx.notifier.from_error("Error al crear empresa", exc)
            return None
        self.ctx.notifier.success("Empresa creada", form.nombre_fantasia)
        await self.refresh()
        return created

    async def update_tenant(self, form: TenantForm) -> TenantSummary | None:
        require_page(self.ctx, self.page)
        tenant_id = self._require_selected()
        self._check_form(form, creating=False)
        try:
            updated = await self.ctx.api.update_tenant(tenant_id, build_tenant_payload(form))
        except ConsoleError as exc:
            self.ctx.notifier.from_error("Error al actualizar empresa", exc)
            return None
        self.ctx.notifier.success("Empresa actualizada")
        await self.open_detail(tenant_id)
        if self.pinned_tenant_id is None:
            await self.refresh()
        return updated

    def _require_selected(self) -> str:
        tenant_id = self.selected_id
        if tenant_id is None:
            raise ValidationError("tenant_id", "Seleccione una empresa")
        return tenant_id

    async def _enqueue(
        self,
        failure_title: str,
        success_title: str,
        success_detail: str,
        job_call: Callable[[str], Awaitable[EnqueuedJob]],
    ) -> EnqueuedJob | None:
        require_page(self.ctx, self.page)
        tenant_id = self._require_selected()
        try:
            job: EnqueuedJob = await job_call(tenant_id)
        except ConsoleError as exc:
            self.ctx.notifier.from_error(failure_title, exc)
            return None
        self.ctx.notifier.success(success_title, success_detail)
        self.ctx.bus.publish_dict(
            JOBS_ENQUEUED,
            {"job_id": job.job_id, "tenant_id": tenant_id, "tipo_job": str(job.tipo_job)},
        )
        return job

    async def sync_comprobantes(self, mes: int | None = None, anio: int | None = None) -> EnqueuedJob | None:
        async def _call(tenant_id: str) -> EnqueuedJob:
            return await self.ctx.api.sync_comprobantes(tenant_id, mes=mes, anio=anio)

        return await self._enqueue(
            "Error al encolar sync",
            "Job encolado",
            "El worker procesará la sincronización en breve",
            _call,
        )

    async def descargar_xml(self) -> EnqueuedJob | None:
        async def _call(tenant_id: str) -> EnqueuedJob:
            return await self.ctx.api.descargar_xml(tenant_id, batch_size=XML_BATCH_SIZE)

        return await self._enqueue(
            "Error al encolar descarga XML",
            "Job XML encolado",
            f"Se descargarán hasta {XML_BATCH_SIZE} XMLs pendientes",
            _call,
        )

    async def sync_facturas_virtuales(
        self,
        mes: int | None = None,
        anio: int | None = None,
        numero_control: str | None = None,
    ) -> EnqueuedJob | None:
        async def _call(tenant_id: str) -> EnqueuedJob:
            return await self.ctx.api.sync_facturas_virtuales(
                tenant_id,
                mes=mes,
                anio=anio,
                numero_control=numero_control,
            )

        return await self._enqueue(
            "Error al encolar sync virtual",
            "Job encolado",
            "Se sincronizarán las facturas virtuales de Marangatu",
            _call,
        )

    def _require_super_admin(self, action: str) -> None:
        if not self.ctx.session_store.flags.is_super_admin:
            raise PermissionDeniedError(f"{action} requires super_admin")

    async def activate_addon(self, addon_id: str, activo_hasta: str | None = None) -> bool:
        self._require_super_admin("Add-on management")
        tenant_id = self._require_selected()
        try:
            await self.ctx.api.activate_addon(tenant_id, addon_id, activo_hasta)
        except ConsoleError as exc:
            self.ctx.notifier.from_error("Error activando add-on", exc)
            return False
        self.ctx.notifier.success("Add-on activado correctamente")
        await self._reload_tenant_addons(tenant_id)
        return True

    async def deactivate_addon(self, addon_id: str) -> bool:
        self._require_super_admin("Add-on management")
        tenant_id = self._require_selected()
        try:
            await self.ctx.api.deactivate_addon(tenant_id, addon_id)
        except ConsoleError as exc:
            self.ctx.notifier.from_error("Error desactivando add-on", exc)
            return False
        self.ctx.notifier.success("Add-on desactivado")
        await self._reload_tenant_addons(tenant_id)
        return True

    async def _reload_tenant_addons(self, tenant_id: str) -> None:
        try:
            tenant_addons = await self.ctx.api.list_tenant_addons(tenant_id)
        except ConsoleError as exc:
            self.ctx.notifier.from_error("Error al cargar add-ons", exc)
            return
        detail = self.detail
        if detail is not None and detail.tenant.id == tenant_id:
            self.detail = TenantDetailState(
                tenant=detail.tenant,
                tenant_addons=tenant_addons,
                available_addons=detail.available_addons,
            )
