import asyncio

import pytest
from fastapi.testclient import TestClient

from aibot.api.main import create_server
from aibot.application.controller import AIBotController
from aibot.core.metadata import apply_settings
from aibot.lifespan.health_registry import get_health_registry


class FakeStorage:
    def __init__(self, available=True):
        self.available = available

    async def ping(self):
        return self.available


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def controller(settings, storage):
    apply_settings(settings)
    return AIBotController(storage)


@pytest.fixture
def client(settings, controller):
    return TestClient(create_server(controller, settings))


@pytest.fixture
def registry():
    registry = get_health_registry()
    for name in ("storage", "bot_account", "controller", "listener"):
        registry.mark_healthy(name)
    return registry


def test_health_check(client, registry):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "ai-bot-service"


def test_health_check_stays_up_when_degraded(client, registry):
    registry.mark_degraded("bot_account", "accounts service unreachable")

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "service" in data
    assert data["status"] == "running"
    assert data["bot"] == {"first_name": "Test", "last_name": "Bot"}
    assert data["controller"]["support_workspace"] == "support-ws"


def test_detailed_health_summary(client, registry):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["overall_status"] == "healthy"
    assert data["summary"]["total"] == 4
    assert data["summary"]["healthy"] == 4
    assert set(data["components"]) == {"storage", "bot_account", "controller", "listener"}


def test_detailed_health_is_503_when_degraded(client, registry):
    registry.mark_degraded("bot_account", "accounts service unreachable")

    response = client.get("/api/v1/health")

    assert response.status_code == 503
    assert response.json()["summary"]["degraded"] == 1


def test_liveness(client):
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "alive"


def test_ready_without_bot_account(client, registry):
    registry.mark_degraded("bot_account", "accounts service unreachable")

    response = client.get("/api/v1/health/ready")

    assert response.status_code == 200
    assert response.json()["health"] == "degraded"


def test_not_ready_when_storage_stops_answering(client, registry, storage):
    storage.available = False

    response = client.get("/api/v1/health/ready")

    assert response.status_code == 503
    assert response.json()["status"] == "not_ready"


def test_not_ready_after_controller_shutdown(client, registry, controller):
    asyncio.run(controller.shutdown())

    assert client.get("/api/v1/health/ready").status_code == 503
    assert client.get("/").json()["status"] == "stopping"


def test_component_health(client, registry):
    registry.mark_failed("storage", "connection reset")

    response = client.get("/api/v1/health/components/storage")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["error_message"] == "connection reset"


def test_unknown_component_is_404(client, registry):
    response = client.get("/api/v1/health/components/nope")
    assert response.status_code == 404
    assert response.json()["component"] == "nope"
