"""Tests for memory extraction."""

import json
from datetime import date

import pytest

from budgetcoach.learning.memories import MemoryExtractor
from budgetcoach.llm.client import GatewayResult

TODAY = date(2025, 6, 1)


@pytest.fixture
def extractor(gateway, storage) -> MemoryExtractor:
    return MemoryExtractor(gateway, storage)


@pytest.mark.asyncio
async def test_valid_items_are_stored_with_defaults(extractor, gateway, storage):
    gateway.send.return_value = GatewayResult(
        text="```json\n"
        + json.dumps(
            [
                {
                    "memoryType": "milestone",
                    "title": "New job",
                    "description": "Started at a bank",
                    "importance": 8,
                    "date": "2025-05-20",
                },
                {"memoryType": "dream", "title": "Likes cash", "description": "Prefers cash"},
                {"title": "", "description": "no title"},
                {"title": "No description"},
                "garbage",
            ]
        )
        + "\n```",
        provider_id="gemini",
        model_id="m",
    )

    memories = await extractor.extract("u1", "s1", "User: I started at a bank", today=TODAY)

    assert [m.title for m in memories] == ["New job", "Likes cash"]
    job, cash = memories
    assert (job.memory_type, job.importance, job.date) == ("milestone", 8, date(2025, 5, 20))
    assert (cash.memory_type, cash.importance, cash.date) == ("preference", 5, TODAY)
    assert len(storage.list_memories("u1")) == 2


@pytest.mark.asyncio
async def test_importance_is_clamped(extractor, gateway):
    gateway.send.return_value = GatewayResult(
        text=json.dumps([{"title": "t", "description": "d", "importance": 42}]),
        provider_id="gemini",
        model_id="m",
    )

    memories = await extractor.extract("u1", "s1", "text", today=TODAY)

    assert memories[0].importance == 10


@pytest.mark.asyncio
async def test_duplicates_are_kept(extractor, gateway, storage):
    gateway.send.return_value = GatewayResult(
        text=json.dumps([{"title": "t", "description": "d"}]), provider_id="gemini", model_id="m"
    )

    await extractor.extract("u1", "s1", "text", today=TODAY)
    await extractor.extract("u1", "s2", "text", today=TODAY)

    assert len(extractor.list_memories("u1")) == 2


@pytest.mark.asyncio
async def test_failures_return_empty(extractor, gateway, storage):
    gateway.send.return_value = GatewayResult(text="nothing useful", provider_id="gemini", model_id="m")
    assert await extractor.extract("u1", "s1", "text") == []

    gateway.send.side_effect = TimeoutError("slow")
    assert await extractor.extract("u1", "s1", "text") == []
    assert storage.list_memories("u1") == []
