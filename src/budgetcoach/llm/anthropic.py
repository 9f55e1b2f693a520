"""Anthropic Claude backend using httpx.

Implements the ProviderBackend protocol for the Anthropic Messages API.
Uses httpx directly to avoid adding the anthropic SDK as a dependency.
"""

from typing import Any

import httpx

from budgetcoach.llm.client import (
    AttemptResult,
    FatalFailure,
    GenerationParams,
    Message,
    RetriableFailure,
    Success,
)

ANTHROPIC_API_URL = "https://api.anthropic.com"
ANTHROPIC_API_VERSION = "2023-06-01"

# 401 bad key, 429 rate limit, 529 overloaded
RETRIABLE_STATUSES = frozenset({401, 429, 529})


class AnthropicBackend:
    """Provider backend for the Anthropic Messages API."""

    provider_id = "anthropic"

    def __init__(
        self,
        api_key: str | None,
        models: list[str],
        base_url: str = ANTHROPIC_API_URL,
        timeout: int = 60,
    ):
        """Initialize Anthropic backend.

        Args:
            api_key: Anthropic API key (backend is unavailable without one)
            models: Models to try, in priority order
            base_url: API base URL
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.models = list(models)
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "x-api-key": api_key or "",
                "anthropic-version": ANTHROPIC_API_VERSION,
                "content-type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
        )

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def _convert_messages(self, messages: list[Message]) -> tuple[str | None, list[dict[str, Any]]]:
        """Split out the system prompt, which Anthropic takes separately.

        Args:
            messages: List of Message objects

        Returns:
            Tuple of (system_prompt, anthropic_messages)
        """
        system_parts: list[str] = []
        anthropic_messages: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                system_parts.append(msg.content)
            else:
                anthropic_messages.append({"role": msg.role, "content": msg.content})

        return ("\n\n".join(system_parts) or None), anthropic_messages

    async def attempt(
        self,
        model: str,
        messages: list[Message],
        params: GenerationParams,
    ) -> AttemptResult:
        """Run one Messages API call.

        Args:
            model: Claude model name
            messages: Prompt messages
            params: Sampling parameters

        Returns:
            Classified attempt result
        """
        system_prompt, anthropic_messages = self._convert_messages(messages)

        payload: dict[str, Any] = {
            "model": model,
            "messages": anthropic_messages,
            "max_tokens": params.max_output_tokens,
            "temperature": params.temperature,
        }
        if system_prompt:
            payload["system"] = system_prompt

        try:
            response = await self.client.post("/v1/messages", json=payload)
        except httpx.HTTPError as e:
            return RetriableFailure(self.provider_id, model, f"transport error: {e}")

        if response.status_code in RETRIABLE_STATUSES:
            return RetriableFailure(
                self.provider_id,
                model,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                quota=response.status_code in (429, 529),
                retry_after=response.headers.get("retry-after"),
            )

        if response.is_error:
            return FatalFailure(
                self.provider_id,
                model,
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            return FatalFailure(self.provider_id, model, f"invalid JSON body: {e}")

        text = "\n".join(
            block["text"] for block in data.get("content", []) if block.get("type") == "text"
        )
        return Success(text, self.provider_id, model)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
