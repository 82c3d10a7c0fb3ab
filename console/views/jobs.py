from __future__ import annotations

import math
from dataclasses import dataclass, field

from console.domain.models import Job, JobCounts, JobStatus, JobType, TenantSummary
from console.domain.navigation import PageId
from console.infra.events import JOBS_ENQUEUED, SCOPE_CHANGED
from console.services.sync_service import JOBS_POLL_SECONDS
from console.views.base import PageView
from console.views.deps import ConsoleContext

JOBS_FETCH_LIMIT = 100
JOBS_PAGE_SIZE = 20


@dataclass(frozen=True)
class JobsData:
    jobs: list[Job] = field(default_factory=list)
    tenants: list[TenantSummary] = field(default_factory=list)

    @property
    def counts(self) -> JobCounts:
        return JobCounts.from_jobs(self.jobs)


def matches_search(job: Job, search: str, tenants_by_id: dict[str, TenantSummary]) -> bool:
    if not search:
        return True
    needle = search.lower()
    if search in job.id or needle in job.tipo_job.lower():
        return True
    tenant = tenants_by_id.get(job.tenant_id)
    if tenant is None:
        return False
    return needle in tenant.nombre_fantasia.lower() or search in tenant.ruc


class JobsView(PageView[JobsData]):
    page = PageId.JOBS
    poll_seconds = JOBS_POLL_SECONDS
    error_title = "Error al cargar jobs"
    refetch_on = (SCOPE_CHANGED, JOBS_ENQUEUED)

    def __init__(self, ctx: ConsoleContext) -> None:
        super().__init__(ctx)
        self.estado: JobStatus | None = None
        self.tipo_job: JobType | None = None
        self.search = ""
        self.page_number = 1
        self.expanded_id: str | None = None

    async def load(self) -> JobsData:
        jobs = await self.ctx.api.list_jobs(
            tenant_id=self.ctx.scope.effective_tenant_filter(),
            estado=self.estado,
            tipo_job=self.tipo_job,
            limit=JOBS_FETCH_LIMIT,
        )
        tenants = await self.ctx.scope.refresh_tenants()
        return JobsData(jobs=jobs, tenants=tenants)

    async def set_filters(
        self,
        *,
        estado: JobStatus | None = None,
        tipo_job: JobType | None = None,
    ) -> None:
        if (estado, tipo_job) == (self.estado, self.tipo_job):
            return
        self.estado = estado
        self.tipo_job = tipo_job
        self.page_number = 1
        await self.refresh()

    def set_search(self, search: str) -> None:
        self.search = search.strip()
        self.page_number = 1

    def toggle_expanded(self, job_id: str) -> str | None:
        self.expanded_id = None if self.expanded_id == job_id else job_id
        return self.expanded_id

    @property
    def counts(self) -> JobCounts:
        data = self.data
        return data.counts if data is not None else JobCounts()

    def filtered(self) -> list[Job]:
        data = self.data
        if data is None:
            return []
        tenants_by_id = {tenant.id: tenant for tenant in data.tenants}
        return [job for job in data.jobs if matches_search(job, self.search, tenants_by_id)]

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(len(self.filtered()) / JOBS_PAGE_SIZE))

    def go_to_page(self, page_number: int) -> int:
        self.page_number = min(max(page_number, 1), self.total_pages)
        return self.page_number

    def page_items(self) -> list[Job]:
        start = (self.page_number - 1) * JOBS_PAGE_SIZE
        return self.filtered()[start : start + JOBS_PAGE_SIZE]

    def tenant_for(self, job: Job) -> TenantSummary | None:
        data = self.data
        if data is None:
            return None
        return next((tenant for tenant in data.tenants if tenant.id == job.tenant_id), None)
