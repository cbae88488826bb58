"""
Tests for the maya cache API.
"""

import warnings

import pytest
from fastapi.testclient import TestClient
from loguru import logger

from maya_cache.api.app import create_app


@pytest.fixture
def client(provider):
    """Create a test client with the fake provider, running the lifespan."""
    with TestClient(create_app(completion_provider=provider)) as client:
        yield client


def chat(client, session_id, message, **params):
    return client.post(
        "/chat",
        json={"session_id": session_id, "message": message, "params": params},
    )


def test_root(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Maya Cache API"


def test_health(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["provider_model"] == "fake-model"
    assert data["cache_entries"] == 0


def test_chat_miss_then_hit(client, provider):
    """Same context from another session is answered from the cache."""
    first = chat(client, "s1", "Best time to visit Petra?")
    assert first.status_code == 200
    assert first.json()["source"] == "provider"
    assert first.json()["state"] == "active"

    second = chat(client, "s2", "best time to visit Petra")
    assert second.status_code == 200
    assert second.json()["source"] == "cache"
    assert second.json()["reply"] == provider.reply
    assert len(provider.calls) == 1


def test_performance(client):
    chat(client, "s1", "Best time to visit Petra?")
    chat(client, "s2", "Best time to visit Petra?")

    response = client.get("/performance")
    assert response.status_code == 200
    data = response.json()
    assert data["cache"]["hits"] == 1
    assert data["cache"]["entries"] == 1
    assert data["performance"]["total_requests"] == 2
    assert data["sessions"]["active_sessions"] == 2
    assert set(data["provider_hints"]) == {
        "kv_cache_offload",
        "offload_strategy",
        "cache_utilization",
    }


def test_clear_cache_keeps_counters(client):
    chat(client, "s1", "Best time to visit Petra?")
    chat(client, "s2", "Best time to visit Petra?")

    response = client.post("/cache/clear")
    assert response.status_code == 200
    assert response.json()["deleted_count"] == 1

    cache = client.get("/performance").json()["cache"]
    assert cache["entries"] == 0
    assert cache["hits"] == 1


def test_reset_stats(client):
    chat(client, "s1", "Best time to visit Petra?")

    response = client.post("/stats/reset")
    assert response.status_code == 200

    data = client.get("/performance").json()
    assert data["cache"]["misses"] == 0
    assert data["performance"]["total_requests"] == 0


def test_sweep(client):
    response = client.post("/cache/sweep")
    assert response.status_code == 200
    assert response.json() == {"expired_entries": 0, "idle_sessions": 0}


def test_repetition_returns_options(client):
    for _ in range(2):
        chat(client, "s1", "Best time to visit Petra?")

    data = chat(client, "s1", "Best time to visit Petra?").json()
    assert data["source"] == "disambiguation"
    assert data["state"] == "repeating"
    assert len(data["options"]) > 0


def test_termination(client):
    chat(client, "s1", "Best time to visit Petra?")

    data = chat(client, "s1", "goodbye").json()
    assert data["source"] == "terminated"
    assert data["state"] == "terminating"

    assert client.get("/sessions/s1").status_code == 404


def test_session_lifecycle(client):
    chat(client, "s1", "Best time to visit Petra?")

    response = client.get("/sessions/s1")
    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "active"
    assert [turn["role"] for turn in data["history"]] == ["user", "assistant"]

    response = client.post("/sessions/s1/reset")
    assert response.status_code == 200
    assert response.json()["turn_count"] == 0

    assert client.delete("/sessions/s1").status_code == 200
    assert client.delete("/sessions/s1").status_code == 404


def test_unknown_session(client):
    assert client.get("/sessions/ghost").status_code == 404
    assert client.post("/sessions/ghost/reset").status_code == 404


def test_invalid_input(client):
    assert chat(client, "   ", "Best time to visit Petra?").status_code == 422
    assert chat(client, "s1", "").status_code == 422


def test_invalid_session_id_is_unprocessable_without_warnings(client):
    with warnings.catch_warnings():
        warnings.filterwarnings("error", message=".*422.*")
        response = chat(client, "   ", "Best time to visit Petra?")
        reset = client.post("/sessions/%20/reset")

    assert response.status_code == 422
    assert reset.status_code == 422


def test_provider_failure_is_bad_gateway(client, provider):
    provider.fail = True

    response = chat(client, "s1", "Best time to visit Petra?")
    assert response.status_code == 502


def test_create_app_keeps_existing_log_sinks(provider):
    messages = []
    sink_id = logger.add(messages.append, format="{message}")
    try:
        create_app(completion_provider=provider)
        logger.info("host sink still attached")
    finally:
        logger.remove(sink_id)

    assert any("host sink still attached" in message for message in messages)
