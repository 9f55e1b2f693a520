"""Tests for the session summarizer."""

import json
from datetime import datetime, timedelta

import pytest

from budgetcoach.learning.summarizer import SessionSummarizer, format_transcript
from budgetcoach.llm.client import GatewayResult
from budgetcoach.llm.gateway import ProviderUnavailableError
from budgetcoach.memory.conversation import ConversationStore
from budgetcoach.memory.schema import ChatTurn


@pytest.fixture
def conversations(storage) -> ConversationStore:
    store = ConversationStore(storage)
    base = datetime(2025, 3, 1, 10, 0)
    store.append(ChatTurn(user_id="u1", session_id="s1", role="user", content="gaji saya RM4500", created_at=base))
    store.append(
        ChatTurn(
            user_id="u1",
            session_id="s1",
            role="assistant",
            content="Let's save RM900",
            created_at=base + timedelta(minutes=1),
        )
    )
    return store


@pytest.fixture
def summarizer(gateway, conversations) -> SessionSummarizer:
    return SessionSummarizer(gateway, conversations)


def test_format_transcript(conversations):
    assert format_transcript(conversations.transcript("s1")) == (
        "USER: gaji saya RM4500\n\nASSISTANT: Let's save RM900"
    )


@pytest.mark.asyncio
async def test_summarize_stores_model_summary(summarizer, gateway, storage):
    gateway.send.return_value = GatewayResult(
        text=json.dumps(
            {
                "title": "Budget Planning RM4500",
                "summary": "User set a savings target.",
                "topics": ["budget", "savings"],
                "sentiment": "positive",
                "actionItems": ["Save RM900 monthly"],
            }
        ),
        provider_id="gemini",
        model_id="gemini-2.5-flash",
    )

    summary = await summarizer.summarize("u1", "s1")

    assert summary.title == "Budget Planning RM4500"
    assert summary.topics == ["budget", "savings"]
    assert summary.action_items == ["Save RM900 monthly"]
    assert summary.message_count == 2
    assert summary.last_message_at == datetime(2025, 3, 1, 10, 1)
    assert storage.get_summary("s1") == summary
    prompt = gateway.send.call_args.args[0]
    assert "USER: gaji saya RM4500" in prompt


@pytest.mark.asyncio
async def test_provider_failure_gives_fixed_fallback(summarizer, gateway, storage):
    gateway.send.side_effect = ProviderUnavailableError([])

    summary = await summarizer.summarize("u1", "s1")

    assert summary.title == "Financial Discussion"
    assert summary.summary == "A conversation about personal finance and budgeting"
    assert summary.topics == ["budget"]
    assert summary.sentiment == "neutral"
    assert summary.action_items == []
    assert storage.get_summary("s1") is not None


@pytest.mark.asyncio
async def test_unparseable_reply_gives_fallback(summarizer, gateway):
    gateway.send.return_value = GatewayResult("I cannot do that", "gemini", "m")

    summary = await summarizer.summarize("u1", "s1")

    assert summary.title == "Financial Discussion"
    assert summary.topics == ["budget"]


@pytest.mark.asyncio
async def test_unknown_sentiment_becomes_neutral(summarizer, gateway):
    gateway.send.return_value = GatewayResult('{"title": "x", "sentiment": "ecstatic"}', "gemini", "m")

    summary = await summarizer.summarize("u1", "s1")

    assert summary.sentiment == "neutral"


@pytest.mark.asyncio
async def test_latest_summary_wins(summarizer, gateway, storage):
    gateway.send.return_value = GatewayResult('{"title": "First"}', "gemini", "m")
    await summarizer.summarize("u1", "s1")
    gateway.send.return_value = GatewayResult('{"title": "Second"}', "gemini", "m")
    await summarizer.summarize("u1", "s1")

    summaries = summarizer.list_summaries("u1")

    assert [s.title for s in summaries] == ["Second"]


@pytest.mark.asyncio
async def test_empty_session_returns_none(summarizer, gateway):
    assert await summarizer.summarize("u1", "nothing-here") is None
    gateway.send.assert_not_called()
