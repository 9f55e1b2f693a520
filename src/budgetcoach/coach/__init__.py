"""The coaching engine: per-turn orchestration plus background learning."""

from budgetcoach.coach.engine import (
    LEARNED_KINDS,
    ChatReply,
    ChatRequest,
    CoachEngine,
    ValidationError,
)
from budgetcoach.coach.tasks import BackgroundTasks

__all__ = [
    "LEARNED_KINDS",
    "BackgroundTasks",
    "ChatReply",
    "ChatRequest",
    "CoachEngine",
    "ValidationError",
]
