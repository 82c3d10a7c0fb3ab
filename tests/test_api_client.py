from __future__ import annotations

import asyncio
import json
from collections.abc import Callable

import httpx
import pytest

from console.domain.errors import ApiError
from console.domain.models import JobStatus, JobType
from console.infra.api_client import ApiClient, extract_error


def _response(status_code: int, content: str | None = None, json_body: object = None) -> httpx.Response:
    if json_body is not None:
        return httpx.Response(status_code, json=json_body)
    return httpx.Response(status_code, content=(content or "").encode())


@pytest.mark.parametrize(
    ("response", "expected"),
    [
        (_response(400, json_body={"error": {"code": "BAD", "message": "RUC inválido"}}), ("RUC inválido", "BAD")),
        (_response(409, json_body={"error": "Duplicado"}), ("Duplicado", "API_ERROR")),
        (_response(422, json_body={"message": "Falta nombre"}), ("Falta nombre", "API_ERROR")),
        (_response(502, content="Bad Gateway"), ("Bad Gateway", "API_ERROR")),
        (_response(500, json_body={"success": False}), ("HTTP 500", "API_ERROR")),
        (_response(504), ("HTTP 504", "API_ERROR")),
    ],
)
def test_extract_error(response: httpx.Response, expected: tuple[str, str]) -> None:
    assert extract_error(response) == expected


def _client(handler: Callable[[httpx.Request], httpx.Response], token: str | None = "tok-1") -> ApiClient:
    return ApiClient(
        base_url="http://backend.test/api",
        token_provider=lambda: token,
        transport=httpx.MockTransport(handler),
    )


def test_job_query_only_sends_set_filters() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": []})

    async def _run() -> None:
        async with _client(handler) as api:
            await api.list_jobs()
            await api.list_jobs(tenant_id="T1", estado=JobStatus.FAILED, tipo_job=JobType.DESCARGAR_XML, limit=100)

    asyncio.run(_run())
    assert seen[0].url.path == "/api/jobs"
    assert seen[0].url.query == b""
    assert dict(seen[1].url.params) == {
        "tenant_id": "T1",
        "tipo_job": "DESCARGAR_XML",
        "estado": "FAILED",
        "limit": "100",
    }
    assert seen[1].headers["authorization"] == "Bearer tok-1"


def test_login_and_health_are_sent_without_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/health"):
            return httpx.Response(200, json={"status": "ok"})
        usuario = {"id": "u1", "nombre": "Root", "rol": {"nombre": "super_admin"}, "permisos": []}
        return httpx.Response(200, json={"success": True, "data": {"token": "new-token", "usuario": usuario}})

    async def _run() -> None:
        async with _client(handler) as api:
            token, identity = await api.login("root@example.com", "pw")
            assert token == "new-token"
            assert identity.role == "super_admin"
            health = await api.health()
            assert health.status == "ok"

    asyncio.run(_run())
    assert all("authorization" not in request.headers for request in seen)
    assert json.loads(seen[0].content) == {"email": "root@example.com", "password": "pw"}


def test_explicit_token_wins_over_provider() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    async def _run() -> None:
        async with _client(handler, token="session-token") as api:
            await api.logout("old-token")

    asyncio.run(_run())
    assert seen[0].headers["authorization"] == "Bearer old-token"


def test_transport_failure_becomes_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def _run() -> None:
        async with _client(handler) as api:
            with pytest.raises(ApiError) as excinfo:
                await api.list_tenants()
            assert excinfo.value.is_network_error
            assert excinfo.value.code == "NETWORK_ERROR"

    asyncio.run(_run())


def test_error_status_is_raised_with_backend_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": {"code": "FORBIDDEN", "message": "Sin acceso"}})

    async def _run() -> None:
        async with _client(handler) as api:
            with pytest.raises(ApiError) as excinfo:
                await api.get_tenant("T9")
            assert excinfo.value.status == 403
            assert excinfo.value.code == "FORBIDDEN"
            assert excinfo.value.message == "Sin acceso"

    asyncio.run(_run())


def test_enqueue_returns_job_id() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/tenants/T1/jobs/descargar-xml"
        assert json.loads(request.content) == {"batch_size": 20, "comprobante_id": "c-1"}
        return httpx.Response(201, json={"success": True, "data": {"job_id": "job-9"}})

    async def _run() -> None:
        async with _client(handler) as api:
            job = await api.descargar_xml("T1", comprobante_id="c-1")
            assert job.job_id == "job-9"
            assert job.tipo_job == JobType.DESCARGAR_XML
            assert job.estado == JobStatus.PENDING

    asyncio.run(_run())


def test_get_job_unwraps_envelope() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/jobs/a2"
        job = {
            "id": "a2",
            "tenant_id": "T1",
            "tipo_job": "SYNC_COMPROBANTES",
            "estado": "FAILED",
            "created_at": "2026-10-01T12:00:00Z",
            "error_message": "Timeout en Marangatu",
        }
        return httpx.Response(200, json={"success": True, "data": job})

    async def _run() -> None:
        async with _client(handler) as api:
            job = await api.get_job("a2")
            assert job.estado == JobStatus.FAILED
            assert job.error_message == "Timeout en Marangatu"

    asyncio.run(_run())
