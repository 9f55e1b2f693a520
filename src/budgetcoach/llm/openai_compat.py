"""Backend for OpenAI-compatible chat completion servers."""

from typing import Any

import openai
from openai import AsyncOpenAI

from budgetcoach.llm.client import (
    AttemptResult,
    FatalFailure,
    GenerationParams,
    Message,
    RetriableFailure,
    Success,
)

# 401 bad key, 402 insufficient balance (DeepSeek/OpenRouter), 429 rate limit
RETRIABLE_STATUSES = frozenset({401, 402, 429})


class OpenAICompatibleBackend:
    """Provider backend for any OpenAI-compatible ``/v1/chat/completions`` API.

    OpenAI, DeepSeek, OpenRouter and local inference servers all expose the
    same request/response shape, so one backend covers them; only the
    ``base_url`` and model names change.
    """

    def __init__(
        self,
        api_key: str | None,
        models: list[str],
        base_url: str = "https://api.openai.com/v1",
        timeout: int = 60,
        provider_id: str = "openai",
    ) -> None:
        """Initialise the backend.

        Args:
            api_key: API key (backend is unavailable without one).
            models: Models to try, in priority order.
            base_url: OpenAI-compatible endpoint (must include ``/v1``).
            timeout: Request timeout in seconds.
            provider_id: Identifier reported in gateway results.
        """
        self.provider_id = provider_id
        self.api_key = api_key
        self.models = list(models)
        # Retries are the gateway's job; the SDK must not sleep-and-retry 429s.
        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key or "none",
            timeout=timeout,
            max_retries=0,
        )

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    async def attempt(
        self,
        model: str,
        messages: list[Message],
        params: GenerationParams,
    ) -> AttemptResult:
        """Run one chat completion.

        Args:
            model: Model name served by the backend.
            messages: Prompt messages.
            params: Sampling parameters.

        Returns:
            Classified attempt result.
        """
        request: dict[str, Any] = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": params.temperature,
            "max_tokens": params.max_output_tokens,
        }
        if params.json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**request)
        except openai.APIConnectionError as e:
            return RetriableFailure(self.provider_id, model, f"transport error: {e}")
        except openai.APIStatusError as e:
            if e.status_code in RETRIABLE_STATUSES:
                return RetriableFailure(
                    self.provider_id,
                    model,
                    f"HTTP {e.status_code}",
                    status_code=e.status_code,
                    quota=e.status_code in (402, 429),
                )
            return FatalFailure(
                self.provider_id, model, f"HTTP {e.status_code}: {e.message}", e.status_code
            )

        if not response.choices:
            return Success("", self.provider_id, model)
        return Success(response.choices[0].message.content or "", self.provider_id, model)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()
