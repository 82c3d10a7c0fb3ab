from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField


def now_utc() -> datetime:
    return datetime.now(UTC)


class RoleName(StrEnum):
    SUPER_ADMIN = "super_admin"
    ADMIN_EMPRESA = "admin_empresa"
    USUARIO_EMPRESA = "usuario_empresa"
    READONLY = "readonly"


class WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Rol(WireModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    nombre: RoleName
    id: str | None = None
    descripcion: str | None = None


class Identity(WireModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    nombre: str
    email: str | None = None
    rol: Rol
    permisos: frozenset[str] = frozenset()
    tenant_id: str | None = None
    tenant_nombre: str | None = None
    plan_features: dict[str, Any] = PydanticField(default_factory=dict)
    billing_status: str | None = None

    @property
    def role(self) -> RoleName:
        return self.rol.nombre


class SessionStatus(StrEnum):
    CHECKING = "checking"
    READY = "ready"
    ANONYMOUS = "anonymous"


class Session(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str | None = PydanticField(default=None, repr=False)
    identity: Identity | None = None
    status: SessionStatus = SessionStatus.CHECKING

    @property
    def is_authenticated(self) -> bool:
        return self.status == SessionStatus.READY and self.identity is not None


class TenantSummary(WireModel):
    id: str
    nombre_fantasia: str
    ruc: str
    activo: bool = True
    created_at: datetime | None = None
    email_contacto: str | None = None
    timezone: str | None = None


class OrdsAuthType(StrEnum):
    BASIC = "BASIC"
    BEARER = "BEARER"
    NONE = "NONE"


class TenantConfig(WireModel):
    ruc_login: str = ""
    usuario_marangatu: str = ""
    marangatu_base_url: str | None = None
    ords_base_url: str | None = None
    ords_endpoint_facturas: str | None = None
    ords_tipo_autenticacion: OrdsAuthType = OrdsAuthType.NONE
    ords_usuario: str | None = None
    enviar_a_ords_automaticamente: bool = False
    frecuencia_sincronizacion_minutos: int = 60
    extra_config: dict[str, Any] = PydanticField(default_factory=dict)


class TenantDetail(TenantSummary):
    config: TenantConfig | None = None


class TenantScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    visible_tenant_ids: frozenset[str] = frozenset()
    active_tenant_id: str | None = None
    can_switch: bool = False


class JobType(StrEnum):
    SYNC_COMPROBANTES = "SYNC_COMPROBANTES"
    ENVIAR_A_ORDS = "ENVIAR_A_ORDS"
    DESCARGAR_XML = "DESCARGAR_XML"
    SYNC_FACTURAS_VIRTUALES = "SYNC_FACTURAS_VIRTUALES"


class JobStatus(StrEnum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"


class Job(WireModel):
    id: str
    tenant_id: str
    tipo_job: JobType
    estado: JobStatus
    intentos: int = 0
    max_intentos: int = 3
    payload: dict[str, Any] = PydanticField(default_factory=dict)
    created_at: datetime
    last_run_at: datetime | None = None
    next_run_at: datetime | None = None
    error_message: str | None = None


class EnqueuedJob(BaseModel):
    job_id: str
    tipo_job: JobType
    estado: JobStatus = JobStatus.PENDING


class JobCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    pending: int = 0
    running: int = 0
    done: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.running + self.done + self.failed

    @classmethod
    def from_jobs(cls, jobs: list[Job]) -> JobCounts:
        by_status = {status: 0 for status in JobStatus}
        for job in jobs:
            by_status[job.estado] += 1
        return cls(
            pending=by_status[JobStatus.PENDING],
            running=by_status[JobStatus.RUNNING],
            done=by_status[JobStatus.DONE],
            failed=by_status[JobStatus.FAILED],
        )


class Plan(WireModel):
    id: str
    nombre: str
    descripcion: str | None = None
    precio_mensual_pyg: int = 0
    limite_comprobantes_mes: int | None = None
    limite_usuarios: int = 1
    features: dict[str, Any] = PydanticField(default_factory=dict)
    activo: bool = True


class Addon(WireModel):
    id: str
    nombre: str
    codigo: str | None = None
    descripcion: str | None = None
    precio_mensual_pyg: int = 0
    features: dict[str, Any] = PydanticField(default_factory=dict)
    activo: bool = True


class TenantAddon(WireModel):
    addon_id: str
    nombre: str | None = None
    activo_hasta: datetime | None = None
    status: str | None = None


class HealthStatus(WireModel):
    status: str
    timestamp: datetime | None = None
    version: str | None = None


class ApiStatus(StrEnum):
    CHECKING = "checking"
    OK = "ok"
    ERROR = "error"


class NotificationType(StrEnum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


class Notification(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = PydanticField(default_factory=lambda: uuid4().hex[:10])
    type: NotificationType
    title: str
    description: str | None = None
    ts: datetime = PydanticField(default_factory=now_utc)


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    ts: datetime = PydanticField(default_factory=now_utc)
    payload: dict[str, Any] = PydanticField(default_factory=dict)
