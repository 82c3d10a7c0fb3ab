from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Generator
from typing import Any

import httpx

from console.domain.errors import ApiError
from console.domain.models import (
    Addon,
    EnqueuedJob,
    HealthStatus,
    Identity,
    Job,
    JobStatus,
    JobType,
    Plan,
    TenantAddon,
    TenantDetail,
    TenantSummary,
)

API_BASE_URL = os.getenv("CONSOLE_API_URL", "http://localhost:3000/api").rstrip("/")
HTTP_TIMEOUT_SECONDS = float(os.getenv("CONSOLE_HTTP_TIMEOUT_SECONDS", "20"))

TokenProvider = Callable[[], str | None]

logger = logging.getLogger(__name__)


def _no_token() -> str | None:
    return None


class BearerAuth(httpx.Auth):
    """Attach the token current at send time; an explicit header wins."""

    def __init__(self, token_provider: TokenProvider) -> None:
        self._token_provider = token_provider

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        if "Authorization" not in request.headers:
            token = self._token_provider()
            if token:
                request.headers["Authorization"] = f"Bearer {token}"
        yield request


def extract_error(response: httpx.Response) -> tuple[str, str]:
    message = f"HTTP {response.status_code}"
    code = "API_ERROR"
    text = response.text
    if not text:
        return message, code
    try:
        body = json.loads(text)
    except ValueError:
        return text, code
    if not isinstance(body, dict):
        return text, code
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"]), str(error.get("code") or code)
    if isinstance(error, str) and error:
        return error, code
    if body.get("message"):
        return str(body["message"]), code
    return message, code


def _data(body: Any) -> Any:
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


class ApiClient:
    def __init__(
        self,
        *,
        base_url: str = API_BASE_URL,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout_seconds: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._token_provider: TokenProvider = token_provider or _no_token
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
            auth=BearerAuth(self._current_token),
            headers={"Accept": "application/json"},
        )

    def _current_token(self) -> str | None:
        return self._token_provider()

    def set_token_provider(self, token_provider: TokenProvider) -> None:
        self._token_provider = token_provider

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
        token: str | None = None,
        anonymous: bool = False,
    ) -> Any:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        auth: Any = None if anonymous else httpx.USE_CLIENT_DEFAULT
        try:
            response = await self._client.request(
                method,
                path,
                json=json_body,
                params=params,
                headers=headers,
                auth=auth,
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc.__class__.__name__)
            raise ApiError(0, f"{method} {path}: {exc.__class__.__name__}", code="NETWORK_ERROR") from exc
        if response.status_code >= 400:
            message, code = extract_error(response)
            logger.info("%s %s -> %s %s", method, path, response.status_code, code)
            raise ApiError(response.status_code, message, code)
        if not response.content:
            return None
        return response.json()

    async def login(self, email: str, password: str) -> tuple[str, Identity]:
        body = await self._request(
            "POST",
            "/auth/login",
            json_body={"email": email, "password": password},
            anonymous=True,
        )
        data = _data(body)
        return str(data["token"]), Identity.model_validate(data["usuario"])

    async def me(self, token: str) -> Identity:
        body = await self._request("GET", "/auth/me", token=token)
        return Identity.model_validate(_data(body))

    async def logout(self, token: str) -> None:
        await self._request("POST", "/auth/logout", token=token)

    async def health(self) -> HealthStatus:
        body = await self._request("GET", "/health", anonymous=True)
        return HealthStatus.model_validate(body)

    async def list_tenants(self) -> list[TenantSummary]:
        body = await self._request("GET", "/tenants")
        return [TenantSummary.model_validate(item) for item in _data(body) or []]

    async def get_tenant(self, tenant_id: str) -> TenantDetail:
        body = await self._request("GET", f"/tenants/{tenant_id}")
        return TenantDetail.model_validate(_data(body))

    async def create_tenant(self, payload: dict[str, Any]) -> TenantSummary:
        body = await self._request("POST", "/tenants", json_body=payload)
        return TenantSummary.model_validate(_data(body))

    async def update_tenant(self, tenant_id: str, payload: dict[str, Any]) -> TenantSummary:
        body = await self._request("PUT", f"/tenants/{tenant_id}", json_body=payload)
        return TenantSummary.model_validate(_data(body))

    async def list_jobs(
        self,
        *,
        tenant_id: str | None = None,
        estado: JobStatus | None = None,
        tipo_job: JobType | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Job]:
        params: dict[str, Any] = {}
        if tenant_id:
            params["tenant_id"] = tenant_id
        if tipo_job:
            params["tipo_job"] = str(tipo_job)
        if estado:
            params["estado"] = str(estado)
        if limit:
            params["limit"] = limit
        if offset:
            params["offset"] = offset
        body = await self._request("GET", "/jobs", params=params or None)
        return [Job.model_validate(item) for item in _data(body) or []]

    async def get_job(self, job_id: str) -> Job:
        body = await self._request("GET", f"/jobs/{job_id}")
        return Job.model_validate(_data(body))

    async def _enqueue(self, tenant_id: str, route: str, tipo_job: JobType, payload: dict[str, Any]) -> EnqueuedJob:
        body = await self._request("POST", f"/tenants/{tenant_id}/jobs/{route}", json_body=payload)
        data = _data(body) or {}
        return EnqueuedJob(job_id=str(data["job_id"]), tipo_job=tipo_job)

    async def sync_comprobantes(self, tenant_id: str, *, mes: int | None = None, anio: int | None = None) -> EnqueuedJob:
        payload = {"mes": mes, "anio": anio} if mes and anio else {}
        return await self._enqueue(tenant_id, "sync-comprobantes", JobType.SYNC_COMPROBANTES, payload)

    async def descargar_xml(
        self,
        tenant_id: str,
        *,
        batch_size: int = 20,
        comprobante_id: str | None = None,
    ) -> EnqueuedJob:
        payload: dict[str, Any] = {"batch_size": batch_size}
        if comprobante_id:
            payload["comprobante_id"] = comprobante_id
        return await self._enqueue(tenant_id, "descargar-xml", JobType.DESCARGAR_XML, payload)

    async def sync_facturas_virtuales(
        self,
        tenant_id: str,
        *,
        mes: int | None = None,
        anio: int | None = None,
        numero_control: str | None = None,
    ) -> EnqueuedJob:
        payload = {
            key: value
            for key, value in {"mes": mes, "anio": anio, "numero_control": numero_control}.items()
            if value
        }
        return await self._enqueue(
            tenant_id,
            "sync-facturas-virtuales",
            JobType.SYNC_FACTURAS_VIRTUALES,
            payload,
        )

    async def list_plans(self) -> list[Plan]:
        body = await self._request("GET", "/plans")
        return [Plan.model_validate(item) for item in _data(body) or []]

    async def create_plan(self, payload: dict[str, Any]) -> Plan:
        body = await self._request("POST", "/plans", json_body=payload)
        return Plan.model_validate(_data(body))

    async def update_plan(self, plan_id: str, payload: dict[str, Any]) -> Plan:
        body = await self._request("PUT", f"/plans/{plan_id}", json_body=payload)
        return Plan.model_validate(_data(body))

    async def delete_plan(self, plan_id: str) -> None:
        await self._request("DELETE", f"/plans/{plan_id}")

    async def list_addons(self) -> list[Addon]:
        body = await self._request("GET", "/addons")
        return [Addon.model_validate(item) for item in _data(body) or []]

    async def create_addon(self, payload: dict[str, Any]) -> Addon:
        body = await self._request("POST", "/addons", json_body=payload)
        return Addon.model_validate(_data(body))

    async def update_addon(self, addon_id: str, payload: dict[str, Any]) -> Addon:
        body = await self._request("PUT", f"/addons/{addon_id}", json_body=payload)
        return Addon.model_validate(_data(body))

    async def delete_addon(self, addon_id: str) -> None:
        await self._request("DELETE", f"/addons/{addon_id}")

    async def list_tenant_addons(self, tenant_id: str) -> list[TenantAddon]:
        body = await self._request("GET", f"/tenants/{tenant_id}/addons")
        return [TenantAddon.model_validate(item) for item in _data(body) or []]

    async def activate_addon(self, tenant_id: str, addon_id: str, activo_hasta: str | None = None) -> None:
        await self._request(
            "POST",
            f"/tenants/{tenant_id}/addons",
            json_body={"addon_id": addon_id, "activo_hasta": activo_hasta},
        )

    async def deactivate_addon(self, tenant_id: str, addon_id: str) -> None:
        await self._request("DELETE", f"/tenants/{tenant_id}/addons/{addon_id}")
