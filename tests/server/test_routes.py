"""Tests for budgetcoach server API routes."""

import json
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from budgetcoach.coach.engine import CoachEngine
from budgetcoach.llm.client import FatalFailure, GatewayResult, RetriableFailure
from budgetcoach.llm.gateway import ProviderQuotaError, ProviderRequestError
from budgetcoach.memory.schema import Transaction, UserProfile
from budgetcoach.server.app import create_app

USER = {"X-User-Id": "u1"}


async def _chat_send(prompt, params=None, provider=None):
    if isinstance(prompt, list):
        return GatewayResult(json.dumps({"message": "Hello from coach!"}), "gemini", "gemini-2.5-flash")
    return GatewayResult("{}", "gemini", "gemini-2.5-flash")


@pytest.fixture
def engine(gateway, storage, default_config) -> CoachEngine:
    gateway.backends = {"gemini": MagicMock(available=True), "openai": MagicMock(available=False)}
    gateway.send.side_effect = _chat_send
    return CoachEngine(gateway, storage, default_config)


@pytest.fixture
def client(engine, default_config):
    with TestClient(create_app(default_config, engine)) as test_client:
        yield test_client


def _drain(client, engine):
    """Let spawned enrichments finish on the app loop."""
    client.portal.call(engine.tasks.drain)


def test_health_endpoint(client):
    """GET /health reports configured providers."""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["providers"] == ["gemini"]
    assert data["currency"] == "RM"


def test_chat_endpoint(client, engine):
    """POST /chat returns the coach reply and stores the turn."""
    response = client.post("/chat", json={"message": "Hello"}, headers=USER)

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Hello from coach!"
    assert data["provider_used"] == "gemini"
    assert data["error"] is None
    assert len(engine.conversations.history(data["session_id"])) == 2


def test_chat_requires_user_header(client, engine):
    response = client.post("/chat", json={"message": "Hello"})

    assert response.status_code == 401
    engine.gateway.send.assert_not_called()


def test_chat_rejects_empty_message(client):
    response = client.post("/chat", json={"message": "   "}, headers=USER)

    assert response.status_code == 400


def test_chat_rejects_unknown_provider(client):
    response = client.post("/chat", json={"message": "Hi", "provider": "mistral"}, headers=USER)

    assert response.status_code == 422


def test_chat_quota_returns_429(client, engine):
    engine.gateway.send.side_effect = ProviderQuotaError(
        [RetriableFailure("gemini", "gemini-2.5-flash", "HTTP 429", 429, quota=True)]
    )

    response = client.post("/chat", json={"message": "Hello", "session_id": "s1"}, headers=USER)

    assert response.status_code == 429
    data = response.json()
    assert data["error"] == "rate_limit"
    assert "about 1 minute" in data["message"]
    assert engine.conversations.history("s1") == []


def test_chat_provider_failure_returns_502(client, engine):
    engine.gateway.send.side_effect = ProviderRequestError(
        FatalFailure("gemini", "gemini-2.5-flash", "HTTP 400: bad request", 400)
    )

    response = client.post("/chat", json={"message": "Hello"}, headers=USER)

    assert response.status_code == 502
    assert "HTTP 400" in response.json()["detail"]


def test_learned_profile(client, storage):
    storage.save_profile(UserProfile(user_id="u1", monthly_income=4500, confidence=70))

    response = client.get("/learned/profile", headers=USER)

    assert response.status_code == 200
    assert response.json()["data"]["monthly_income"] == 4500
    assert client.get("/learned/profile", headers={"X-User-Id": "u2"}).json()["data"] is None


def test_learned_suggestions_default(client):
    response = client.get("/learned/suggestions", headers=USER)

    assert response.status_code == 200
    assert response.json()["data"][0] == "Setup my budget, salary RM4500"


def test_learned_unknown_kind(client):
    assert client.get("/learned/passwords", headers=USER).status_code == 404


def test_delete_session(client):
    session_id = client.post("/chat", json={"message": "Hello"}, headers=USER).json()["session_id"]

    assert client.delete(f"/sessions/{session_id}", headers={"X-User-Id": "u2"}).status_code == 404
    assert client.delete(f"/sessions/{session_id}", headers=USER).status_code == 200
    assert client.delete(f"/sessions/{session_id}", headers=USER).status_code == 404


def test_insight_lifecycle(client, storage):
    now = datetime.utcnow()
    for amount, category in [(500.0, "Food & Dining"), (100.0, "Transport")]:
        storage.add_transaction(
            Transaction(
                user_id="u1",
                type="expense",
                amount=amount,
                category_name=category,
                date=now - timedelta(days=1),
            )
        )

    generated = client.post("/insights/generate", headers=USER).json()

    assert [i["insight_type"] for i in generated] == ["spending_pattern"]
    insight_id = generated[0]["id"]

    assert client.post(f"/insights/{insight_id}/acknowledge", headers={"X-User-Id": "u2"}).status_code == 404
    assert client.post(f"/insights/{insight_id}/acknowledge", headers=USER).status_code == 200
    assert client.post(f"/insights/{insight_id}/dismiss", headers=USER).json() == {
        "id": insight_id,
        "dismissed": True,
    }
    assert client.get("/learned/insights", headers=USER).json()["data"] == []


def test_helpful_and_trending(client, engine):
    client.post("/chat", json={"message": "How do I save more?"}, headers=USER)
    client.post("/chat", json={"message": "How do I save more"}, headers={"X-User-Id": "u2"})
    _drain(client, engine)

    assert client.post("/questions/helpful", json={"question": "how do i save more"}, headers=USER).json() == {
        "updated": True
    }

    trending = client.get("/questions/trending").json()

    assert trending[0]["ask_count"] == 2
    assert trending[0]["helpful_score"] == 1
    assert trending[0]["category"] == "savings"
