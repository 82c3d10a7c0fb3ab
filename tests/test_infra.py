from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import pytest

from console.domain.errors import ApiError
from console.domain.models import EventEnvelope, NotificationType
from console.infra.events import NOTIFICATION_ADDED, NOTIFICATION_REMOVED, EventBus, sync_event
from console.infra.log import REDACTED, RedactingFilter, redact, setup_logging
from console.infra.storage import TOKEN_KEY, JsonFileStorage, MemoryStorage
from console.services.notification_service import Notifier


def test_event_bus_publish_and_subscribe() -> None:
    bus = EventBus()
    seen: list[str] = []
    everything: list[str] = []

    def handler(event: EventEnvelope) -> None:
        seen.append(event.event_type)

    unsubscribe = bus.subscribe(sync_event("jobs"), handler)
    bus.subscribe("*", lambda event: everything.append(event.event_type))
    event = bus.publish_dict("sync.jobs", {"state": "live"})

    assert seen == ["sync.jobs"]
    assert everything == ["sync.jobs"]
    assert event.payload == {"state": "live"}

    unsubscribe()
    bus.publish_dict("sync.jobs")
    assert seen == ["sync.jobs"]
    assert bus.subscriber_count("sync.jobs") == 0


def test_redact_masks_tokens_and_secrets() -> None:
    text = redact("GET /auth/me with Bearer abc.def.ghi password=hunter2 clave_marangatu: 's3'")
    assert "abc.def.ghi" not in text
    assert "hunter2" not in text
    assert "s3" not in text
    assert text.count(REDACTED) == 3


def test_redacting_filter_on_log_records(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("console.tests.redaction")
    logger.addFilter(RedactingFilter())
    with caplog.at_level(logging.INFO, logger="console.tests.redaction"):
        logger.info("login with token=%s", "tok-123")
    assert caplog.records[0].getMessage() == f"login with token={REDACTED}"


def test_setup_logging_is_idempotent() -> None:
    root = setup_logging("DEBUG")
    handlers = list(root.handlers)
    assert setup_logging("INFO") is root
    assert root.handlers == handlers
    assert root.level == logging.INFO


def test_memory_storage_counts_writes() -> None:
    storage = MemoryStorage({TOKEN_KEY: "abc"})
    assert storage.get(TOKEN_KEY) == "abc"
    storage.remove(TOKEN_KEY)
    storage.set("sidebar_collapsed_admin", "1")
    assert storage.writes == 2
    assert storage.get(TOKEN_KEY) is None


def test_json_file_storage_survives_reload(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "storage.json"
    storage = JsonFileStorage(path)
    assert storage.get(TOKEN_KEY) is None
    storage.set(TOKEN_KEY, "tok")
    storage.set("sidebar_collapsed_primary", "0")
    storage.remove("missing")

    reloaded = JsonFileStorage(path)
    assert reloaded.get(TOKEN_KEY) == "tok"
    reloaded.remove(TOKEN_KEY)
    assert JsonFileStorage(path).get(TOKEN_KEY) is None
    assert JsonFileStorage(path).get("sidebar_collapsed_primary") == "0"
    assert [item.name for item in path.parent.iterdir()] == ["storage.json"]


def test_json_file_storage_tolerates_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "storage.json"
    path.write_text("{not json", encoding="utf-8")
    storage = JsonFileStorage(path)
    assert storage.get(TOKEN_KEY) is None
    storage.set(TOKEN_KEY, "fresh")
    assert JsonFileStorage(path).get(TOKEN_KEY) == "fresh"


def test_notifier_auto_dismisses() -> None:
    async def _run() -> None:
        bus = EventBus()
        removed: list[str] = []
        bus.subscribe(NOTIFICATION_REMOVED, lambda event: removed.append(event.payload["id"]))
        notifier = Notifier(bus, ttl_seconds=0.01)

        item = notifier.success("Empresa creada", "Demo SA")
        assert notifier.items == [item]
        await asyncio.sleep(0.05)
        assert notifier.items == []
        assert removed == [item.id]

    asyncio.run(_run())


def test_notifier_from_error_and_dismiss() -> None:
    bus = EventBus()
    added: list[str] = []
    bus.subscribe(NOTIFICATION_ADDED, lambda event: added.append(event.payload["type"]))
    notifier = Notifier(bus, ttl_seconds=None)

    error = notifier.from_error("Error al cargar jobs", ApiError(500, "Internal"))
    plain = notifier.from_error("Error inesperado", RuntimeError(""))
    assert error.type == NotificationType.ERROR
    assert error.description == "Internal"
    assert plain.description is None
    assert added == ["error", "error"]

    notifier.dismiss(error.id)
    notifier.dismiss(error.id)
    assert notifier.items == [plain]
    notifier.clear()
    assert notifier.items == []
