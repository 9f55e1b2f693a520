"""Google Gemini backend using httpx.

Talks to the Generative Language ``generateContent`` endpoint directly,
authenticating with the ``key`` query parameter.
"""

import json
import logging
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

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com"

# 429 RESOURCE_EXHAUSTED, 403 PERMISSION_DENIED (bad or suspended key)
RETRIABLE_STATUSES = frozenset({403, 429})


def parse_retry_delay(body: str) -> str | None:
    """Pull the ``RetryInfo.retryDelay`` hint out of a Gemini error body.

    Args:
        body: Raw error response text

    Returns:
        Delay string such as ``"37s"``, or None if absent
    """
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    details = (data.get("error") or {}).get("details") or []
    for detail in details:
        if "RetryInfo" in str(detail.get("@type", "")) and detail.get("retryDelay"):
            return str(detail["retryDelay"])
    return None


class GeminiBackend:
    """Provider backend for the Gemini ``generateContent`` API."""

    provider_id = "gemini"

    def __init__(
        self,
        api_key: str | None,
        models: list[str],
        base_url: str = GEMINI_API_URL,
        timeout: int = 60,
    ):
        """Initialize Gemini backend.

        Args:
            api_key: Gemini API key (backend is unavailable without one)
            models: Models to try, in priority order
            base_url: API base URL
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.models = list(models)
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers={"content-type": "application/json"},
            timeout=httpx.Timeout(timeout),
        )

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def _build_payload(self, messages: list[Message], params: GenerationParams) -> dict[str, Any]:
        """Convert messages to Gemini ``contents`` plus a system instruction."""
        system_parts: list[str] = []
        contents: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                system_parts.append(msg.content)
                continue
            role = "model" if msg.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": msg.content}]})

        generation_config: dict[str, Any] = {
            "temperature": params.temperature,
            "maxOutputTokens": params.max_output_tokens,
        }
        if params.json_mode:
            generation_config["responseMimeType"] = "application/json"

        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
        }
        if system_parts:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_parts)}]}
        return payload

    @staticmethod
    def _extract_text(data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)

    async def attempt(
        self,
        model: str,
        messages: list[Message],
        params: GenerationParams,
    ) -> AttemptResult:
        """Run one ``generateContent`` call.

        Args:
            model: Gemini model name
            messages: Prompt messages
            params: Sampling parameters

        Returns:
            Classified attempt result
        """
        payload = self._build_payload(messages, params)

        try:
            response = await self.client.post(
                f"/v1beta/models/{model}:generateContent",
                params={"key": self.api_key},
                json=payload,
            )
        except httpx.HTTPError as e:
            return RetriableFailure(self.provider_id, model, f"transport error: {e}")

        if response.status_code in RETRIABLE_STATUSES:
            return RetriableFailure(
                self.provider_id,
                model,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                quota=response.status_code == 429,
                retry_after=parse_retry_delay(response.text),
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

        return Success(self._extract_text(data), self.provider_id, model)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
