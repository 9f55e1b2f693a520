"""Factory function for creating the provider gateway from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from budgetcoach.llm.anthropic import AnthropicBackend
from budgetcoach.llm.client import GenerationParams
from budgetcoach.llm.gateway import ProviderGateway
from budgetcoach.llm.gemini import GeminiBackend
from budgetcoach.llm.openai_compat import OpenAICompatibleBackend

if TYPE_CHECKING:
    from budgetcoach.config.schema import CoachConfig


def create_gateway(config: CoachConfig) -> ProviderGateway:
    """Create a provider gateway based on configuration.

    All three backends are always constructed; those without an API key
    report themselves unavailable and are skipped by the gateway. Backend
    order (Gemini, OpenAI-compatible, Anthropic) decides which key wins
    when no default provider is configured.

    Args:
        config: budgetcoach configuration.

    Returns:
        Configured ProviderGateway.
    """
    providers = config.providers

    backends = [
        GeminiBackend(
            api_key=providers.gemini.api_key,
            models=providers.gemini.models,
            base_url=providers.gemini.base_url,
            timeout=providers.gemini.timeout,
        ),
        OpenAICompatibleBackend(
            api_key=providers.openai.api_key,
            models=providers.openai.models,
            base_url=providers.openai.base_url,
            timeout=providers.openai.timeout,
        ),
        AnthropicBackend(
            api_key=providers.anthropic.api_key,
            models=providers.anthropic.models,
            base_url=providers.anthropic.base_url,
            timeout=providers.anthropic.timeout,
        ),
    ]

    return ProviderGateway(
        backends,  # type: ignore[arg-type]
        default_provider=config.gateway.default_provider,
        fallback_provider=config.gateway.fallback_provider,
        params=GenerationParams(
            temperature=config.gateway.temperature,
            max_output_tokens=config.gateway.max_output_tokens,
            json_mode=True,
        ),
    )
