"""Per-turn orchestration of the budget coach.

A turn runs context building, the gateway call, structured extraction and
the two conversation appends on the critical path. Profile learning,
memory extraction, summarization and question tracking are spawned on
:class:`BackgroundTasks` afterwards, so they always read a store that
already holds both turns.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

from budgetcoach.coach.prompts import build_system_prompt, build_user_prompt, quota_message
from budgetcoach.coach.tasks import BackgroundTasks
from budgetcoach.config.schema import CoachConfig, ProviderName
from budgetcoach.learning.context import ContextBuilder
from budgetcoach.learning.insights import InsightGenerator
from budgetcoach.learning.memories import MemoryExtractor
from budgetcoach.learning.profile import ProfileLearner
from budgetcoach.learning.questions import QuestionTracker
from budgetcoach.learning.summarizer import SessionSummarizer
from budgetcoach.llm.client import Message
from budgetcoach.llm.gateway import ProviderGateway, ProviderQuotaError
from budgetcoach.memory.conversation import ConversationStore
from budgetcoach.memory.storage import CoachStorage
from budgetcoach.parsing.structured import BudgetAction, extract_chat_response
from budgetcoach.parsing.temporal import Period, resolve_period

logger = logging.getLogger(__name__)

LearnedKind = Literal["profile", "memories", "insights", "sessions", "suggestions"]
LEARNED_KINDS: tuple[str, ...] = ("profile", "memories", "insights", "sessions", "suggestions")


class ValidationError(ValueError):
    """A chat request was rejected before any provider call."""


class ChatRequest(BaseModel):
    """One user chat turn."""

    user_id: str
    session_id: str | None = None
    message: str
    provider_override: ProviderName | None = None


class ChatReply(BaseModel):
    """The coach's answer to a turn."""

    message: str
    budget_actions: list[BudgetAction] | None = None
    session_id: str
    learned_profile: dict[str, Any] | None = None
    provider_used: str | None = None
    model_used: str | None = None
    error: str | None = None


def stamp_actions(actions: list[BudgetAction] | None, period: Period) -> list[BudgetAction] | None:
    """Force the resolved period onto every action, whatever the model said."""
    if not actions:
        return None
    return [action.model_copy(update={"month": period.month, "year": period.year}) for action in actions]


class CoachEngine:
    """Handle chat turns and expose what has been learned about a user."""

    def __init__(
        self,
        gateway: ProviderGateway,
        storage: CoachStorage,
        config: CoachConfig | None = None,
        tasks: BackgroundTasks | None = None,
    ):
        """Initialize the engine.

        Args:
            gateway: Provider gateway shared by chat and learning calls
            storage: SQLite storage backend
            config: Configuration (defaults if None)
            tasks: Background task runner (a private one if None)
        """
        self.config = config or CoachConfig()
        self.gateway = gateway
        self.storage = storage
        self.tasks = tasks or BackgroundTasks()

        policy = self.config.learning
        currency = self.config.currency
        self.conversations = ConversationStore(storage)
        self.summarizer = SessionSummarizer(gateway, self.conversations)
        self.profiles = ProfileLearner(gateway, storage, policy)
        self.insights = InsightGenerator(storage, policy, currency)
        self.memories = MemoryExtractor(gateway, storage)
        self.questions = QuestionTracker(gateway, storage)
        self.context = ContextBuilder(storage, policy, currency)

    @classmethod
    def from_config(cls, config: CoachConfig) -> "CoachEngine":
        """Build an engine with storage and gateway taken from configuration."""
        from budgetcoach.llm.factory import create_gateway

        return cls(create_gateway(config), CoachStorage(config.storage.path), config)

    def _validate(self, request: ChatRequest) -> str:
        if not request.user_id or not request.user_id.strip():
            raise ValidationError("User id is required")
        message = (request.message or "").strip()
        if not message:
            raise ValidationError("Message is required")
        if request.session_id:
            owner = self.conversations.owner_of(request.session_id)
            if owner is not None and owner != request.user_id:
                raise ValidationError("Session belongs to another user")
        return message

    def _schedule_enrichments(
        self, user_id: str, session_id: str, message: str, reply: str
    ) -> list[asyncio.Task[Any]]:
        self.tasks.spawn("track_question", self.questions.track(message))

        exchange = f"User: {message}\nAssistant: {reply}"
        return [
            self.tasks.spawn(
                "learn_profile", self.profiles.learn(user_id, message, reply), session_id
            ),
            self.tasks.spawn(
                "extract_memories",
                self.memories.extract(user_id, session_id, exchange),
                session_id,
            ),
            self.tasks.spawn(
                "summarize_session", self.summarizer.summarize(user_id, session_id), session_id
            ),
        ]

    async def handle_turn(
        self,
        request: ChatRequest,
        await_learning: bool = False,
        now: datetime | None = None,
    ) -> ChatReply:
        """Handle one chat turn.

        Args:
            request: The user's turn
            await_learning: Wait for enrichments and report the learned profile
            now: Reference time for period resolution and context

        Returns:
            ChatReply; on quota exhaustion a wait-and-retry message with
            ``error="rate_limit"`` and nothing stored

        Raises:
            ValidationError: If the request is missing a user or message
            ProviderError: If the gateway fails for any reason but quota
        """
        message = self._validate(request)
        user_id = request.user_id
        session_id = request.session_id or self.conversations.new_session_id()

        period = resolve_period(message, now)
        context = self.context.build(user_id, now)
        prompt = [
            Message(role="system", content=build_system_prompt(period, self.config.currency)),
            Message(role="user", content=build_user_prompt(context, message)),
        ]

        try:
            result = await self.gateway.send(prompt, provider=request.provider_override)
        except ProviderQuotaError as e:
            logger.warning("Quota exhausted for every provider: %s", e)
            return ChatReply(
                message=quota_message(e.retry_after),
                session_id=session_id,
                error="rate_limit",
            )

        response = extract_chat_response(result.text)
        actions = stamp_actions(response.budget_actions, period)

        self.conversations.add(user_id, session_id, "user", message)
        self.conversations.add(
            user_id,
            session_id,
            "assistant",
            response.message,
            metadata={
                "provider": result.provider_id,
                "model": result.model_id,
                "period": {"month": period.month, "year": period.year},
                "budget_actions": len(actions or []),
            },
        )

        learning = self._schedule_enrichments(user_id, session_id, message, response.message)

        learned_profile = None
        if await_learning:
            await asyncio.gather(*learning)
            learned_profile = learning[0].result()

        return ChatReply(
            message=response.message,
            budget_actions=actions,
            session_id=session_id,
            learned_profile=learned_profile,
            provider_used=result.provider_id,
            model_used=result.model_id,
        )

    def list_learned_state(self, user_id: str, kind: str, limit: int = 20) -> Any:
        """Return one kind of learned state for a user.

        Args:
            user_id: User to look up
            kind: One of ``profile``, ``memories``, ``insights``, ``sessions``
                or ``suggestions``
            limit: Cap for ``sessions`` and ``suggestions``

        Returns:
            UserProfile or None, or a list of records (strings for suggestions)

        Raises:
            ValueError: On an unknown kind
        """
        if kind == "profile":
            return self.profiles.get_profile(user_id)
        if kind == "memories":
            return self.memories.list_memories(user_id)
        if kind == "insights":
            return self.insights.list_insights(user_id)
        if kind == "sessions":
            return self.summarizer.list_summaries(user_id, limit)
        if kind == "suggestions":
            profile = self.profiles.get_profile(user_id)
            return self.questions.suggest(profile, min(limit, 6))
        raise ValueError(f"Unknown learned state kind: {kind}")

    def delete_session(self, user_id: str, session_id: str) -> bool:
        return self.conversations.delete_session(user_id, session_id)

    async def close(self) -> None:
        """Wait for pending enrichments, then close provider clients."""
        await self.tasks.drain()
        await self.gateway.close()
