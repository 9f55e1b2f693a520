"""Pytest configuration and shared fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from budgetcoach.config.schema import CoachConfig
from budgetcoach.llm.client import GatewayResult
from budgetcoach.memory.storage import CoachStorage


def gateway_reply(text: str, provider_id: str = "gemini", model_id: str = "gemini-2.5-flash"):
    """Build the GatewayResult a mocked gateway returns."""
    return GatewayResult(text=text, provider_id=provider_id, model_id=model_id)


@pytest.fixture
def default_config() -> CoachConfig:
    """Provide a default configuration for tests."""
    return CoachConfig()


@pytest.fixture
def storage(tmp_path) -> CoachStorage:
    """Fresh SQLite storage per test."""
    return CoachStorage(tmp_path / "coach.db")


@pytest.fixture
def gateway() -> MagicMock:
    """Gateway double whose ``send`` is an AsyncMock.

    Tests set ``gateway.send.return_value`` (or ``side_effect``) to script
    provider replies.
    """
    mock = MagicMock()
    mock.send = AsyncMock(return_value=gateway_reply("{}"))
    mock.close = AsyncMock()
    mock.backends = {}
    return mock
