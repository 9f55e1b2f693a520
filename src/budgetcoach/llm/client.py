"""Provider backend protocol and data types."""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass
class Message:
    """A message in the prompt sent to a provider."""

    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class GenerationParams:
    """Sampling parameters for a single generation."""

    temperature: float = 0.7
    max_output_tokens: int = 2048
    json_mode: bool = False  # ask the provider for a JSON-only reply


@dataclass(frozen=True)
class Success:
    """A provider produced text."""

    text: str
    provider_id: str
    model_id: str


@dataclass(frozen=True)
class RetriableFailure:
    """Transport or quota fault; the next model/provider may succeed."""

    provider_id: str
    model_id: str
    reason: str
    status_code: int | None = None
    quota: bool = False  # True for rate-limit/quota style faults
    retry_after: str | None = None


@dataclass(frozen=True)
class FatalFailure:
    """Non-retriable provider fault; weaker models must not be tried."""

    provider_id: str
    model_id: str
    reason: str
    status_code: int | None = None


AttemptResult = Success | RetriableFailure | FatalFailure


@dataclass
class GatewayResult:
    """Successful gateway reply with the backend that served it."""

    text: str
    provider_id: str
    model_id: str
    failures: list[RetriableFailure] = field(default_factory=list)


class ProviderBackend(Protocol):
    """Protocol for provider backends.

    A backend owns one transport (endpoint shape, auth header, payload
    schema) and a priority-ordered list of models. ``attempt`` must never
    raise for transport or HTTP faults; it classifies them instead.
    """

    provider_id: str
    models: list[str]

    @property
    def available(self) -> bool:
        """Whether the backend has the credentials it needs."""
        ...

    async def attempt(
        self,
        model: str,
        messages: list[Message],
        params: GenerationParams,
    ) -> AttemptResult:
        """Run one generation against ``model``.

        Args:
            model: Model identifier to call
            messages: Prompt messages
            params: Sampling parameters

        Returns:
            Success, RetriableFailure or FatalFailure
        """
        ...

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        ...
