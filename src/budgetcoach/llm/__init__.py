"""LLM provider backends and the fallback gateway."""

from .anthropic import AnthropicBackend
from .client import (
    FatalFailure,
    GatewayResult,
    GenerationParams,
    Message,
    ProviderBackend,
    RetriableFailure,
    Success,
)
from .factory import create_gateway
from .gateway import (
    NoProviderConfiguredError,
    ProviderError,
    ProviderGateway,
    ProviderQuotaError,
    ProviderRequestError,
    ProviderUnavailableError,
    try_in_order,
)
from .gemini import GeminiBackend
from .openai_compat import OpenAICompatibleBackend

__all__ = [
    "AnthropicBackend",
    "FatalFailure",
    "GatewayResult",
    "GeminiBackend",
    "GenerationParams",
    "Message",
    "NoProviderConfiguredError",
    "OpenAICompatibleBackend",
    "ProviderBackend",
    "ProviderError",
    "ProviderGateway",
    "ProviderQuotaError",
    "ProviderRequestError",
    "ProviderUnavailableError",
    "RetriableFailure",
    "Success",
    "create_gateway",
    "try_in_order",
]
