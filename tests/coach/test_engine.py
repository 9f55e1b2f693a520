"""Tests for per-turn orchestration."""

import json
from datetime import datetime

import pytest

from budgetcoach.coach.engine import ChatReply, ChatRequest, CoachEngine, ValidationError
from budgetcoach.llm.client import FatalFailure, GatewayResult, RetriableFailure
from budgetcoach.llm.gateway import ProviderQuotaError, ProviderRequestError
from budgetcoach.memory.schema import UserProfile

NOW = datetime(2025, 11, 20, 9, 30)

BUDGET_REPLY = json.dumps(
    {
        "message": "Okay! Here is a budget for your RM3000 salary.",
        "budgetActions": [
            {"action": "create", "categoryName": "Savings", "amount": 600, "period": "monthly", "month": 1, "year": 2020},
            {"action": "create", "categoryName": "Food & Dining", "amount": 500, "period": "monthly"},
        ],
    }
)

PROFILE_REPLY = json.dumps({"monthly_income": 3000, "employment_status": "employed", "confidence": 80})


def scripted(chat_text: str, profile_text: str = "{}"):
    """Route chat prompts and each learning prompt to canned replies."""

    async def send(prompt, params=None, provider=None):
        if isinstance(prompt, list):
            return GatewayResult(chat_text, provider or "gemini", "gemini-2.5-flash")
        if prompt.startswith("Extract user financial preferences"):
            return GatewayResult(profile_text, "gemini", "gemini-2.5-flash")
        return GatewayResult("{}", "gemini", "gemini-2.5-flash")

    return send


@pytest.fixture
def engine(gateway, storage, default_config) -> CoachEngine:
    return CoachEngine(gateway, storage, default_config)


@pytest.mark.asyncio
async def test_turn_stores_both_messages(engine, gateway):
    gateway.send.side_effect = scripted(json.dumps({"message": "Hi there!"}))

    reply = await engine.handle_turn(ChatRequest(user_id="u1", message="  Hello coach  "), now=NOW)
    await engine.tasks.drain()

    history = engine.conversations.history(reply.session_id)
    assert [(t.role, t.content) for t in history] == [
        ("assistant", "Hi there!"),
        ("user", "Hello coach"),
    ]
    assert history[0].metadata["provider"] == "gemini"
    assert history[0].metadata["model"] == "gemini-2.5-flash"
    assert reply.provider_used == "gemini"
    assert reply.budget_actions is None


@pytest.mark.asyncio
async def test_second_turn_history_is_most_recent_first(engine, gateway):
    gateway.send.side_effect = scripted(json.dumps({"message": "Noted."}))

    first = await engine.handle_turn(ChatRequest(user_id="u1", message="First question"), now=NOW)
    second = await engine.handle_turn(
        ChatRequest(user_id="u1", session_id=first.session_id, message="Second question"), now=NOW
    )
    await engine.tasks.drain()

    assert second.session_id == first.session_id
    contents = [t.content for t in engine.conversations.history(first.session_id)]
    assert contents == ["Noted.", "Second question", "Noted.", "First question"]


@pytest.mark.asyncio
async def test_budget_actions_carry_resolved_period(engine, gateway):
    gateway.send.side_effect = scripted(BUDGET_REPLY)

    reply = await engine.handle_turn(
        ChatRequest(user_id="u1", message="Setup budget for December, gaji RM3000"), now=NOW
    )
    await engine.tasks.drain()

    assert [a.category_name for a in reply.budget_actions] == ["Savings", "Food & Dining"]
    assert {(a.month, a.year) for a in reply.budget_actions} == {(12, 2025)}


@pytest.mark.asyncio
async def test_system_prompt_names_period_and_context_precedes_message(engine, gateway):
    gateway.send.side_effect = scripted(json.dumps({"message": "ok"}))

    await engine.handle_turn(ChatRequest(user_id="u1", message="Budget untuk Disember"), now=NOW)
    await engine.tasks.drain()

    messages = gateway.send.call_args_list[0].args[0]
    assert messages[0].role == "system"
    assert '"month": 12, "year": 2025' in messages[0].content
    assert messages[1].content.startswith("User's Financial Context:")
    assert messages[1].content.endswith("User: Budget untuk Disember")


@pytest.mark.asyncio
async def test_provider_override_is_forwarded(engine, gateway):
    gateway.send.side_effect = scripted(json.dumps({"message": "ok"}))

    reply = await engine.handle_turn(
        ChatRequest(user_id="u1", message="Hello there", provider_override="openai"), now=NOW
    )
    await engine.tasks.drain()

    assert gateway.send.call_args_list[0].kwargs["provider"] == "openai"
    assert reply.provider_used == "openai"


@pytest.mark.asyncio
async def test_plain_text_reply_becomes_message(engine, gateway):
    gateway.send.side_effect = scripted("Sure, just spend less on food.")

    reply = await engine.handle_turn(ChatRequest(user_id="u1", message="Any tips?"), now=NOW)
    await engine.tasks.drain()

    assert reply.message == "Sure, just spend less on food."
    assert reply.budget_actions is None


@pytest.mark.asyncio
@pytest.mark.parametrize("message", ["", "   \n "])
async def test_empty_message_is_rejected(engine, gateway, message):
    with pytest.raises(ValidationError):
        await engine.handle_turn(ChatRequest(user_id="u1", message=message))

    gateway.send.assert_not_called()


@pytest.mark.asyncio
async def test_missing_user_is_rejected(engine, gateway):
    with pytest.raises(ValidationError):
        await engine.handle_turn(ChatRequest(user_id=" ", message="hello"))


@pytest.mark.asyncio
async def test_foreign_session_is_rejected(engine, gateway):
    gateway.send.side_effect = scripted(json.dumps({"message": "ok"}))
    reply = await engine.handle_turn(ChatRequest(user_id="u1", message="Hello there"), now=NOW)
    await engine.tasks.drain()

    with pytest.raises(ValidationError):
        await engine.handle_turn(
            ChatRequest(user_id="u2", session_id=reply.session_id, message="Hijack")
        )


@pytest.mark.asyncio
async def test_quota_exhaustion_returns_rate_limit_reply(engine, gateway):
    gateway.send.side_effect = ProviderQuotaError(
        [RetriableFailure("gemini", "gemini-2.5-flash", "HTTP 429", 429, quota=True, retry_after="12s")]
    )

    reply = await engine.handle_turn(
        ChatRequest(user_id="u1", session_id="s1", message="Hello there"), now=NOW
    )

    assert isinstance(reply, ChatReply)
    assert reply.error == "rate_limit"
    assert reply.message.startswith("⏳ API quota exceeded. Please wait 12s")
    assert reply.session_id == "s1"
    assert engine.conversations.history("s1") == []
    assert len(engine.tasks) == 0


@pytest.mark.asyncio
async def test_fatal_provider_error_propagates(engine, gateway):
    gateway.send.side_effect = ProviderRequestError(
        FatalFailure("gemini", "gemini-2.5-flash", "HTTP 400", 400)
    )

    with pytest.raises(ProviderRequestError):
        await engine.handle_turn(ChatRequest(user_id="u1", session_id="s1", message="Hello"), now=NOW)

    assert engine.conversations.history("s1") == []


@pytest.mark.asyncio
async def test_await_learning_reports_profile(engine, gateway, storage):
    gateway.send.side_effect = scripted(BUDGET_REPLY, PROFILE_REPLY)

    reply = await engine.handle_turn(
        ChatRequest(user_id="u1", message="My gaji is RM3000, I work full time"),
        await_learning=True,
        now=NOW,
    )

    assert reply.learned_profile == {
        "monthly_income": 3000.0,
        "employment_status": "employed",
        "confidence": 80,
    }
    assert storage.get_profile("u1").monthly_income == 3000
    assert storage.get_summary(reply.session_id).message_count == 2


@pytest.mark.asyncio
async def test_enrichment_failure_does_not_fail_turn(engine, gateway):
    async def send(prompt, params=None, provider=None):
        if isinstance(prompt, list):
            return GatewayResult(json.dumps({"message": "ok"}), "gemini", "m")
        raise RuntimeError("learning backend down")

    gateway.send.side_effect = send

    reply = await engine.handle_turn(
        ChatRequest(user_id="u1", message="Hello there"), await_learning=True, now=NOW
    )

    assert reply.message == "ok"
    assert reply.learned_profile is None
    assert engine.storage.get_summary(reply.session_id).title == "Financial Discussion"


def test_list_learned_state(engine, gateway, storage):
    storage.save_profile(UserProfile(user_id="u1", monthly_income=3000, confidence=60))

    assert engine.list_learned_state("u1", "profile").monthly_income == 3000
    assert engine.list_learned_state("u1", "memories") == []
    assert engine.list_learned_state("u1", "insights") == []
    assert engine.list_learned_state("u1", "sessions") == []
    assert len(engine.list_learned_state("u1", "suggestions")) == 6
    assert engine.list_learned_state("nobody", "profile") is None

    with pytest.raises(ValueError):
        engine.list_learned_state("u1", "secrets")


@pytest.mark.asyncio
async def test_delete_session_only_for_owner(engine, gateway):
    gateway.send.side_effect = scripted(json.dumps({"message": "ok"}))
    reply = await engine.handle_turn(ChatRequest(user_id="u1", message="Hello there"), now=NOW)
    await engine.tasks.drain()

    assert not engine.delete_session("u2", reply.session_id)
    assert engine.delete_session("u1", reply.session_id)
    assert engine.conversations.history(reply.session_id) == []


@pytest.mark.asyncio
async def test_close_drains_and_closes_gateway(engine, gateway):
    gateway.send.side_effect = scripted(json.dumps({"message": "ok"}))
    await engine.handle_turn(ChatRequest(user_id="u1", message="Hello there"), now=NOW)

    await engine.close()

    assert len(engine.tasks) == 0
    gateway.close.assert_awaited_once()
