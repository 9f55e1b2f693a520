"""Session-scoped conversation store."""

import logging
import uuid
from pathlib import Path
from typing import Any

from budgetcoach.memory.schema import ChatTurn, Role, SessionOverview
from budgetcoach.memory.storage import CoachStorage
from budgetcoach.memory.utils import estimate_tokens

logger = logging.getLogger(__name__)


class ConversationStore:
    """Append-only transcript per session; the system of record for learners.

    ``append`` is the single write path. Turns are only removed by an
    explicit ``delete_session`` from the owning user.
    """

    def __init__(self, storage: CoachStorage | str | Path):
        """Initialize the store.

        Args:
            storage: Shared storage backend, or a path to open one at
        """
        self.storage = storage if isinstance(storage, CoachStorage) else CoachStorage(storage)

    @staticmethod
    def new_session_id() -> str:
        return str(uuid.uuid4())

    def append(self, turn: ChatTurn) -> ChatTurn:
        """Persist a turn.

        Args:
            turn: Turn to store; a missing token count is estimated

        Returns:
            The stored turn with its database id
        """
        if turn.token_count is None:
            turn = turn.model_copy(update={"token_count": estimate_tokens(turn.content)})
        turn_id = self.storage.save_turn(turn)
        return turn.model_copy(update={"id": turn_id})

    def add(
        self,
        user_id: str,
        session_id: str,
        role: Role,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> ChatTurn:
        """Build and append a turn in one call."""
        return self.append(
            ChatTurn(
                user_id=user_id,
                session_id=session_id,
                role=role,
                content=content,
                metadata=metadata,
            )
        )

    def history(self, session_id: str) -> list[ChatTurn]:
        """Turns of a session, most recent first."""
        return self.storage.load_turns(session_id, newest_first=True)

    def transcript(self, session_id: str) -> list[ChatTurn]:
        """Turns of a session in chronological order."""
        return self.storage.load_turns(session_id, newest_first=False)

    def recent_sessions(self, user_id: str, limit: int = 10) -> list[SessionOverview]:
        """A user's sessions grouped with last-message time and turn count."""
        return self.storage.session_overviews(user_id, limit)

    def owner_of(self, session_id: str) -> str | None:
        return self.storage.session_owner(session_id)

    def delete_session(self, user_id: str, session_id: str) -> bool:
        """Delete a session owned by ``user_id``, cascading to its summary.

        Args:
            user_id: Requesting user; must own the session
            session_id: Session identifier

        Returns:
            True if any turns were deleted
        """
        deleted = self.storage.delete_session(user_id, session_id)
        if deleted:
            logger.info("Deleted session %s (%d turns)", session_id, deleted)
        return deleted > 0
