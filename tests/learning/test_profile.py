"""Tests for confidence-weighted profile learning."""

import json

import pytest

from budgetcoach.config.schema import LearningConfig
from budgetcoach.learning.profile import ProfileLearner, merge_confidence
from budgetcoach.llm.client import GatewayResult
from budgetcoach.memory.schema import UserProfile


def reply(payload) -> GatewayResult:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return GatewayResult(text=text, provider_id="gemini", model_id="m")


@pytest.fixture
def learner(gateway, storage) -> ProfileLearner:
    return ProfileLearner(gateway, storage)


def test_merge_confidence():
    assert merge_confidence(80, 50) == 71
    assert merge_confidence(None, 65) == 65
    assert merge_confidence(0, 100) == 30
    assert merge_confidence(80, 50, 0.5, 0.5) == 65


@pytest.mark.parametrize("existing, reported, merged", [(70, 85, 75), (30, 35, 32), (10, 5, 9)])
def test_merge_confidence_rounds_halves_up(existing, reported, merged):
    assert merge_confidence(existing, reported) == merged


@pytest.mark.asyncio
async def test_first_extraction_creates_profile(learner, gateway, storage):
    gateway.send.return_value = reply({"monthly_income": 4500, "preferred_language": "malay", "confidence": 70})

    learned = await learner.learn("u1", "gaji saya RM4500", "Baik!")

    assert learned == {"monthly_income": 4500.0, "preferred_language": "malay", "confidence": 70}
    profile = storage.get_profile("u1")
    assert profile.monthly_income == 4500
    assert profile.confidence == 70


@pytest.mark.asyncio
async def test_merge_blends_confidence_and_overwrites_fields(learner, gateway, storage):
    storage.save_profile(
        UserProfile(user_id="u1", monthly_income=3000, primary_goal="retirement", confidence=80)
    )
    gateway.send.return_value = reply({"monthly_income": 5200, "has_debt": None, "confidence": 50})

    learned = await learner.learn("u1", "I got a raise to RM5200", "Congrats!")

    assert learned["confidence"] == 71
    profile = storage.get_profile("u1")
    assert profile.monthly_income == 5200
    assert profile.primary_goal == "retirement"
    assert profile.has_debt is None
    assert profile.confidence == 71
    prompt = gateway.send.call_args.args[0]
    assert "EXISTING PROFILE" in prompt


@pytest.mark.asyncio
async def test_missing_confidence_counts_as_fifty(learner, gateway, storage):
    gateway.send.return_value = reply({"employment_status": "student"})

    learned = await learner.learn("u1", "I'm a student", "Noted")

    assert learned["confidence"] == 50


@pytest.mark.asyncio
async def test_camel_case_keys_are_accepted(learner, gateway, storage):
    gateway.send.return_value = reply({"hasDebt": True, "debtTypes": ["ptptn"], "confidence": 90})

    learned = await learner.learn("u1", "Saya ada hutang PTPTN", "Ok")

    assert learned["has_debt"] is True
    assert storage.get_profile("u1").debt_types == ["ptptn"]


@pytest.mark.asyncio
async def test_nothing_learned_returns_none(learner, gateway, storage):
    gateway.send.return_value = reply({"monthly_income": None, "favourite_colour": "blue", "confidence": 90})

    assert await learner.learn("u1", "hello", "hi") is None
    assert storage.get_profile("u1") is None


@pytest.mark.asyncio
async def test_failures_return_none(learner, gateway, storage):
    gateway.send.return_value = reply("not json at all")
    assert await learner.learn("u1", "hello", "hi") is None

    gateway.send.return_value = reply({"dependents": "several", "confidence": 80})
    assert await learner.learn("u1", "hello", "hi") is None

    gateway.send.side_effect = RuntimeError("boom")
    assert await learner.learn("u1", "hello", "hi") is None
    assert storage.get_profile("u1") is None


@pytest.mark.asyncio
async def test_configurable_weights(gateway, storage):
    storage.save_profile(UserProfile(user_id="u1", monthly_income=3000, confidence=80))
    learner = ProfileLearner(
        gateway, storage, LearningConfig(confidence_weight_existing=0.5, confidence_weight_new=0.5)
    )
    gateway.send.return_value = reply({"monthly_income": 3100, "confidence": 40})

    learned = await learner.learn("u1", "x", "y")

    assert learned["confidence"] == 60


@pytest.mark.asyncio
async def test_reported_half_confidence_rounds_up(learner, gateway, storage):
    gateway.send.return_value = reply({"employment_status": "employed", "confidence": 72.5})

    learned = await learner.learn("u1", "I work full time", "Great")

    assert learned["confidence"] == 73


@pytest.mark.asyncio
async def test_invalid_field_is_dropped_and_rest_applied(learner, gateway, storage, caplog):
    gateway.send.return_value = reply(
        {"employment_status": "employed", "has_debt": True, "debt_types": "ptptn", "confidence": 80}
    )

    learned = await learner.learn("u1", "Saya kerja, ada hutang PTPTN", "Ok")

    assert learned == {"employment_status": "employed", "has_debt": True, "confidence": 80}
    profile = storage.get_profile("u1")
    assert profile.employment_status == "employed"
    assert profile.has_debt is True
    assert profile.debt_types is None
    assert "Dropping profile field debt_types" in caplog.text
