from __future__ import annotations

from dataclasses import dataclass, field

from console.domain.models import Job, JobCounts, JobStatus, TenantSummary
from console.domain.navigation import PageId
from console.infra.events import JOBS_ENQUEUED, SCOPE_CHANGED
from console.services.sync_service import DASHBOARD_POLL_SECONDS
from console.views.base import PageView

RECENT_JOBS_LIMIT = 8


@dataclass(frozen=True)
class DashboardStats:
    total_tenants: int = 0
    active_tenants: int = 0
    total_jobs: int = 0
    pending_jobs: int = 0
    running_jobs: int = 0
    done_jobs: int = 0
    failed_jobs: int = 0


@dataclass(frozen=True)
class DashboardData:
    tenants: list[TenantSummary] = field(default_factory=list)
    recent_jobs: list[Job] = field(default_factory=list)
    stats: DashboardStats = field(default_factory=DashboardStats)

    @property
    def failed_jobs(self) -> list[Job]:
        return [job for job in self.recent_jobs if job.estado == JobStatus.FAILED]

    @property
    def running_jobs(self) -> list[Job]:
        return [job for job in self.recent_jobs if job.estado == JobStatus.RUNNING]


def compute_stats(tenants: list[TenantSummary], jobs: list[Job]) -> DashboardStats:
    counts = JobCounts.from_jobs(jobs)
    return DashboardStats(
        total_tenants=len(tenants),
        active_tenants=len([tenant for tenant in tenants if tenant.activo]),
        total_jobs=len(jobs),
        pending_jobs=counts.pending,
        running_jobs=counts.running,
        done_jobs=counts.done,
        failed_jobs=counts.failed,
    )


class DashboardView(PageView[DashboardData]):
    page = PageId.DASHBOARD
    poll_seconds = DASHBOARD_POLL_SECONDS
    error_title = "Error al cargar dashboard"
    refetch_on = (SCOPE_CHANGED, JOBS_ENQUEUED)

    async def load(self) -> DashboardData:
        tenants = await self.ctx.scope.refresh_tenants()
        jobs = await self.ctx.api.list_jobs(
            tenant_id=self.ctx.scope.effective_tenant_filter(),
            limit=RECENT_JOBS_LIMIT,
        )
        return DashboardData(tenants=tenants, recent_jobs=jobs, stats=compute_stats(tenants, jobs))

    @property
    def stats(self) -> DashboardStats:
        data = self.data
        return data.stats if data is not None else DashboardStats()
