"""Tests for logging, settings and app wiring."""

import pytest
from fastapi.testclient import TestClient
from loguru import logger

from lab_orders.application.order_service import OrderService
from lab_orders.domain.access_policy import Identity, Role
from lab_orders.domain.errors import NotFound, RoleNotPermitted
from lab_orders.entrypoints.main import build_app
from lab_orders.entrypoints.settings import Config
from lab_orders.infrastructure.memory_store import InMemoryOrderStore
from lab_orders.shared.decorators import log_errors


@pytest.fixture
def captured() -> list[str]:
    """Collect loguru records as ``LEVEL|message`` strings."""
    records: list[str] = []
    sink_id = logger.add(
        lambda message: records.append(
            f"{message.record['level'].name}|{message.record['message']}"
        ),
        level="DEBUG",
    )
    yield records
    logger.remove(sink_id)


# ---------------------------------------------------------------------------
# log_errors
# ---------------------------------------------------------------------------


def test_log_errors_passes_results_through(captured: list[str]) -> None:
    @log_errors
    def ok() -> int:
        return 42

    assert ok() == 42
    assert captured == []


def test_log_errors_logs_domain_errors_as_warning(captured: list[str]) -> None:
    @log_errors
    def lookup() -> None:
        raise NotFound()

    with pytest.raises(NotFound):
        lookup()

    assert len(captured) == 1
    level, message = captured[0].split("|", 1)
    assert level == "WARNING"
    assert "NotFound (404): Order not found" in message
    assert "lookup" in message


def test_log_errors_logs_unexpected_errors_as_error(captured: list[str]) -> None:
    @log_errors
    def explode() -> None:
        raise RuntimeError("disk on fire")

    with pytest.raises(RuntimeError):
        explode()

    level, message = captured[0].split("|", 1)
    assert level == "ERROR"
    assert "RuntimeError: disk on fire" in message


def test_rejected_authorization_is_logged_as_warning(captured: list[str]) -> None:
    service = OrderService(InMemoryOrderStore())
    customer = Identity(user_id="user-a", role=Role.CUSTOMER)

    with pytest.raises(RoleNotPermitted):
        service.create_order(customer, {"services": [{"name": "Crown", "value": 1}]})

    warnings = [line for line in captured if line.startswith("WARNING|")]
    assert len(warnings) == 1
    assert "create denied for user-a" in warnings[0]


# ---------------------------------------------------------------------------
# Settings and wiring
# ---------------------------------------------------------------------------


def test_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("PORT", "SOFT_DELETE", "TOKEN_TTL_SECONDS"):
        monkeypatch.delenv(key, raising=False)
    settings = Config(_env_file=None)

    assert settings.PORT == 3000
    assert settings.SOFT_DELETE is True
    assert settings.TOKEN_TTL_SECONDS == 604800


def test_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SOFT_DELETE", "false")
    monkeypatch.setenv("TOKEN_SECRET", "from-env")

    settings = Config(_env_file=None)

    assert settings.SOFT_DELETE is False
    assert settings.TOKEN_SECRET == "from-env"


def test_build_app_wires_a_working_stack() -> None:
    settings = Config(_env_file=None, TOKEN_SECRET="wiring-secret", SOFT_DELETE=False)
    app = build_app(settings)
    token = app.state.identity_provider.issue("user-a", "LAB_ADMIN")
    headers = {"Authorization": f"Bearer {token}"}

    with TestClient(app) as client:
        created = client.post(
            "/orders",
            json={
                "lab": "Lab Central",
                "patient": "Maria Silva",
                "customer": "Dr. Souza",
                "services": [{"name": "Crown", "value": 800}],
            },
            headers=headers,
        )
        order_id = created.json()["data"]["id"]
        assert client.delete(f"/orders/{order_id}", headers=headers).status_code == 204
        listed = client.get("/orders", params={"status": "DELETED"}, headers=headers)

    assert created.status_code == 201
    assert listed.json()["pagination"]["total"] == 0
