"""Provider Gateway: ordered multi-provider, multi-model fallback.

Every backend classifies each call as ``Success``, ``RetriableFailure``
(transport or quota fault) or ``FatalFailure`` (any other non-2xx). The
gateway walks the preferred provider's models in priority order, then the
configured fallback provider's models, and stops at the first success or
the first fatal failure.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import TypeVar

from budgetcoach.llm.client import (
    AttemptResult,
    FatalFailure,
    GatewayResult,
    GenerationParams,
    Message,
    ProviderBackend,
    RetriableFailure,
    Success,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderError(Exception):
    """Base class for gateway failures surfaced to callers."""


class NoProviderConfiguredError(ProviderError):
    """No backend has an API key."""


class ProviderRequestError(ProviderError):
    """A backend returned a non-retriable error."""

    def __init__(self, failure: FatalFailure):
        super().__init__(f"{failure.provider_id}/{failure.model_id}: {failure.reason}")
        self.failure = failure


class ProviderUnavailableError(ProviderError):
    """Every backend and model in the chain failed with retriable faults."""

    def __init__(self, failures: list[RetriableFailure]):
        tried = ", ".join(f"{f.provider_id}/{f.model_id} ({f.reason})" for f in failures)
        super().__init__(f"All providers failed: {tried}")
        self.failures = failures


class ProviderQuotaError(ProviderUnavailableError):
    """The chain was exhausted and every failure was a quota fault."""

    @property
    def retry_after(self) -> str | None:
        for failure in reversed(self.failures):
            if failure.retry_after:
                return failure.retry_after
        return None


@dataclass
class ChainOutcome:
    """Result of walking a fallback chain."""

    success: Success | None = None
    fatal: FatalFailure | None = None
    failures: list[RetriableFailure] = field(default_factory=list)


async def try_in_order(
    candidates: Iterable[T],
    attempt: Callable[[T], Awaitable[AttemptResult]],
) -> ChainOutcome:
    """Try candidates in order until one succeeds or one fails fatally.

    Args:
        candidates: Ordered candidates (e.g. ``(backend, model)`` pairs)
        attempt: Coroutine function classifying one candidate

    Returns:
        ChainOutcome with the success, the fatal failure, or neither
        (exhausted), plus every retriable failure recorded on the way
    """
    outcome = ChainOutcome()
    for candidate in candidates:
        result = await attempt(candidate)
        if isinstance(result, Success):
            outcome.success = result
            return outcome
        if isinstance(result, FatalFailure):
            outcome.fatal = result
            return outcome
        outcome.failures.append(result)
    return outcome


class ProviderGateway:
    """Send prompts through a ranked list of provider backends."""

    def __init__(
        self,
        backends: list[ProviderBackend],
        default_provider: str | None = None,
        fallback_provider: str | None = None,
        params: GenerationParams | None = None,
    ):
        """Initialize the gateway.

        Args:
            backends: Available backends; list order breaks ties when no
                default provider is configured
            default_provider: Preferred provider id
            fallback_provider: Provider tried once the preferred one is exhausted
            params: Default generation parameters
        """
        self.backends = {backend.provider_id: backend for backend in backends}
        self._order = [backend.provider_id for backend in backends]
        self.default_provider = default_provider
        self.fallback_provider = fallback_provider
        self.params = params or GenerationParams()

    def _available(self, provider_id: str | None) -> ProviderBackend | None:
        if provider_id is None:
            return None
        backend = self.backends.get(provider_id)
        if backend is None or not backend.available:
            return None
        return backend

    def provider_chain(self, override: str | None = None) -> list[ProviderBackend]:
        """Resolve the ordered providers to try.

        Preference: explicit override > configured default > first backend
        with an API key. The fallback provider is appended only when it is
        configured, available, and different from the primary.

        Args:
            override: Provider requested by the caller

        Returns:
            Ordered backends

        Raises:
            NoProviderConfiguredError: If no backend is available
        """
        primary = None
        for candidate in (override, self.default_provider):
            primary = self._available(candidate)
            if primary is not None:
                break
            if candidate is not None:
                logger.warning("Provider %s is not available, skipping", candidate)

        if primary is None:
            primary = next(
                (self.backends[pid] for pid in self._order if self.backends[pid].available),
                None,
            )
        if primary is None:
            raise NoProviderConfiguredError("No LLM provider has an API key configured")

        chain = [primary]
        fallback = self._available(self.fallback_provider)
        if fallback is not None and fallback.provider_id != primary.provider_id:
            chain.append(fallback)
        return chain

    async def send(
        self,
        prompt: str | list[Message],
        params: GenerationParams | None = None,
        provider: str | None = None,
    ) -> GatewayResult:
        """Send a prompt and return the first successful generation.

        Args:
            prompt: A user prompt string or a full message list
            params: Generation parameters (gateway defaults if None)
            provider: Explicit provider override

        Returns:
            GatewayResult naming the provider and model that served it

        Raises:
            ProviderRequestError: On a non-retriable provider error
            ProviderQuotaError: If the chain was exhausted by quota faults
            ProviderUnavailableError: If the chain was exhausted otherwise
            NoProviderConfiguredError: If no backend has credentials
        """
        messages = [Message(role="user", content=prompt)] if isinstance(prompt, str) else prompt
        params = params or self.params
        chain = self.provider_chain(provider)

        candidates = [(backend, model) for backend in chain for model in backend.models]

        async def attempt(candidate: tuple[ProviderBackend, str]) -> AttemptResult:
            backend, model = candidate
            result = await backend.attempt(model, messages, params)
            if isinstance(result, RetriableFailure):
                logger.warning(
                    "%s/%s failed (%s), trying next model", result.provider_id, model, result.reason
                )
            return result

        outcome = await try_in_order(candidates, attempt)

        if outcome.success is not None:
            if outcome.failures:
                logger.info(
                    "Served by %s/%s after %d failed attempt(s)",
                    outcome.success.provider_id,
                    outcome.success.model_id,
                    len(outcome.failures),
                )
            return GatewayResult(
                text=outcome.success.text,
                provider_id=outcome.success.provider_id,
                model_id=outcome.success.model_id,
                failures=outcome.failures,
            )

        if outcome.fatal is not None:
            logger.error(
                "%s/%s returned a non-retriable error: %s",
                outcome.fatal.provider_id,
                outcome.fatal.model_id,
                outcome.fatal.reason,
            )
            raise ProviderRequestError(outcome.fatal)

        if outcome.failures and all(f.quota for f in outcome.failures):
            raise ProviderQuotaError(outcome.failures)
        raise ProviderUnavailableError(outcome.failures)

    async def close(self) -> None:
        """Close every backend's HTTP client."""
        for backend in self.backends.values():
            await backend.close()
