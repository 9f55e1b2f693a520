"""Tests for building the gateway from configuration."""

from budgetcoach.config.schema import CoachConfig
from budgetcoach.llm.anthropic import AnthropicBackend
from budgetcoach.llm.factory import create_gateway
from budgetcoach.llm.gemini import GeminiBackend
from budgetcoach.llm.openai_compat import OpenAICompatibleBackend


def test_create_gateway_builds_all_backends():
    config = CoachConfig()
    config.providers.gemini.api_key = "g-key"
    config.gateway.fallback_provider = "openai"

    gateway = create_gateway(config)

    assert isinstance(gateway.backends["gemini"], GeminiBackend)
    assert isinstance(gateway.backends["openai"], OpenAICompatibleBackend)
    assert isinstance(gateway.backends["anthropic"], AnthropicBackend)
    assert gateway.fallback_provider == "openai"
    assert gateway.params.json_mode is True
    assert gateway.params.temperature == config.gateway.temperature


def test_first_configured_key_wins_without_default():
    config = CoachConfig()
    config.providers.gemini.api_key = None
    config.providers.anthropic.api_key = "a-key"
    config.gateway.default_provider = None

    gateway = create_gateway(config)

    assert [b.provider_id for b in gateway.provider_chain()] == ["anthropic"]
    assert gateway.backends["anthropic"].models == config.providers.anthropic.models
