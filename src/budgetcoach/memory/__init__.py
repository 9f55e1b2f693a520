"""Persistence for the coaching engine.

SQLite-backed records for chat turns and everything learned from them:

- :class:`ConversationStore` - Append-only, session-scoped transcripts
- :class:`CoachStorage` - SQLite storage backend with WAL mode
"""

from budgetcoach.memory.conversation import ConversationStore
from budgetcoach.memory.schema import (
    ChatTurn,
    Insight,
    Memory,
    PopularQuestion,
    SessionOverview,
    SessionSummary,
    Transaction,
    UserProfile,
)
from budgetcoach.memory.storage import CoachStorage

__all__ = [
    "ChatTurn",
    "CoachStorage",
    "ConversationStore",
    "Insight",
    "Memory",
    "PopularQuestion",
    "SessionOverview",
    "SessionSummary",
    "Transaction",
    "UserProfile",
]
