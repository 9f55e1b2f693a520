"""SQLite storage backend for the coaching engine."""

import json
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Any

from budgetcoach.memory.schema import (
    PROFILE_FIELDS,
    ChatTurn,
    Insight,
    Memory,
    PopularQuestion,
    SessionOverview,
    SessionSummary,
    Transaction,
    UserProfile,
)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS chat_turns (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        token_count INTEGER,
        metadata TEXT,
        created_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS session_summaries (
        session_id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        summary TEXT NOT NULL,
        topics TEXT NOT NULL,
        sentiment TEXT NOT NULL,
        action_items TEXT NOT NULL,
        message_count INTEGER NOT NULL,
        total_tokens INTEGER NOT NULL,
        last_message_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_profiles (
        user_id TEXT PRIMARY KEY,
        attributes TEXT NOT NULL,
        confidence INTEGER NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS insights (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        insight_type TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        category TEXT,
        impact TEXT NOT NULL,
        actionable INTEGER NOT NULL,
        action_suggestion TEXT,
        data TEXT NOT NULL,
        valid_until TIMESTAMP,
        acknowledged INTEGER NOT NULL DEFAULT 0,
        dismissed INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS memories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        memory_type TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        importance INTEGER NOT NULL,
        date DATE NOT NULL,
        data TEXT,
        created_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS popular_questions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        question TEXT NOT NULL UNIQUE,
        question_hash TEXT NOT NULL UNIQUE,
        category TEXT NOT NULL,
        ask_count INTEGER NOT NULL DEFAULT 1,
        last_asked_at TIMESTAMP NOT NULL,
        helpful_score INTEGER NOT NULL DEFAULT 0,
        suggested INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        type TEXT NOT NULL,
        amount REAL NOT NULL,
        category_name TEXT,
        date TIMESTAMP NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_turns_session ON chat_turns(session_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_turns_user ON chat_turns(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_summaries_user ON session_summaries(user_id, last_message_at)",
    "CREATE INDEX IF NOT EXISTS idx_insights_user ON insights(user_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_memories_user ON memories(user_id, importance)",
    "CREATE INDEX IF NOT EXISTS idx_questions_rank ON popular_questions(ask_count, last_asked_at)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_user ON transactions(user_id, date)",
)


def _dumps(value: Any) -> str | None:
    return None if value is None else json.dumps(value)


def _loads(value: str | None) -> Any:
    return None if value is None else json.loads(value)


class CoachStorage:
    """SQLite-based storage for turns, learned state and the question index."""

    def __init__(self, db_path: str | Path):
        """Initialize storage with database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize_db(self) -> None:
        """Create tables and indexes if they don't exist."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.commit()

    # -- Chat turns ---------------------------------------------------------

    def save_turn(self, turn: ChatTurn) -> int:
        """Append a turn.

        Args:
            turn: Turn to store

        Returns:
            Row ID assigned by database
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO chat_turns
                (session_id, user_id, role, content, token_count, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    turn.session_id,
                    turn.user_id,
                    turn.role,
                    turn.content,
                    turn.token_count,
                    _dumps(turn.metadata),
                    turn.created_at.isoformat(),
                ),
            )
            conn.commit()
            turn_id = cursor.lastrowid
            assert turn_id is not None
            return turn_id

    def load_turns(self, session_id: str, newest_first: bool = True) -> list[ChatTurn]:
        """Load every turn of a session.

        Args:
            session_id: Session identifier
            newest_first: Order most recent first (else chronological)

        Returns:
            Turns, totally ordered by creation time
        """
        direction = "DESC" if newest_first else "ASC"
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM chat_turns
                WHERE session_id = ?
                ORDER BY created_at {direction}, id {direction}
            """,
                (session_id,),
            ).fetchall()

        return [
            ChatTurn(
                id=row["id"],
                session_id=row["session_id"],
                user_id=row["user_id"],
                role=row["role"],
                content=row["content"],
                token_count=row["token_count"],
                metadata=_loads(row["metadata"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    def session_owner(self, session_id: str) -> str | None:
        """Return the user id that owns a session, if it has any turns."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT user_id FROM chat_turns WHERE session_id = ? LIMIT 1", (session_id,)
            ).fetchone()
        return row["user_id"] if row else None

    def session_overviews(self, user_id: str, limit: int = 10) -> list[SessionOverview]:
        """Group a user's turns by session.

        Args:
            user_id: Owner of the sessions
            limit: Maximum number of sessions

        Returns:
            Sessions ordered by most recent message
        """
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT session_id, MAX(created_at) AS last_message_at, COUNT(*) AS message_count
                FROM chat_turns
                WHERE user_id = ?
                GROUP BY session_id
                ORDER BY last_message_at DESC
                LIMIT ?
            """,
                (user_id, limit),
            ).fetchall()

        return [
            SessionOverview(
                session_id=row["session_id"],
                last_message_at=datetime.fromisoformat(row["last_message_at"]),
                message_count=row["message_count"],
            )
            for row in rows
        ]

    def delete_session(self, user_id: str, session_id: str) -> int:
        """Delete a user's session and its summary.

        Args:
            user_id: Owner of the session
            session_id: Session identifier

        Returns:
            Number of turns deleted
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM chat_turns WHERE session_id = ? AND user_id = ?",
                (session_id, user_id),
            )
            conn.execute(
                "DELETE FROM session_summaries WHERE session_id = ? AND user_id = ?",
                (session_id, user_id),
            )
            conn.commit()
            return cursor.rowcount

    # -- Session summaries --------------------------------------------------

    def upsert_summary(self, summary: SessionSummary) -> None:
        """Insert or replace the summary for a session."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO session_summaries
                (session_id, user_id, title, summary, topics, sentiment, action_items,
                 message_count, total_tokens, last_message_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                    title = excluded.title,
                    summary = excluded.summary,
                    topics = excluded.topics,
                    sentiment = excluded.sentiment,
                    action_items = excluded.action_items,
                    message_count = excluded.message_count,
                    total_tokens = excluded.total_tokens,
                    last_message_at = excluded.last_message_at
            """,
                (
                    summary.session_id,
                    summary.user_id,
                    summary.title,
                    summary.summary,
                    json.dumps(summary.topics),
                    summary.sentiment,
                    json.dumps(summary.action_items),
                    summary.message_count,
                    summary.total_tokens,
                    summary.last_message_at.isoformat(),
                ),
            )
            conn.commit()

    @staticmethod
    def _summary_from_row(row: sqlite3.Row) -> SessionSummary:
        return SessionSummary(
            user_id=row["user_id"],
            session_id=row["session_id"],
            title=row["title"],
            summary=row["summary"],
            topics=json.loads(row["topics"]),
            sentiment=row["sentiment"],
            action_items=json.loads(row["action_items"]),
            message_count=row["message_count"],
            total_tokens=row["total_tokens"],
            last_message_at=datetime.fromisoformat(row["last_message_at"]),
        )

    def get_summary(self, session_id: str) -> SessionSummary | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM session_summaries WHERE session_id = ?", (session_id,)
            ).fetchone()
        return self._summary_from_row(row) if row else None

    def list_summaries(self, user_id: str, limit: int = 20) -> list[SessionSummary]:
        """List a user's summaries, most recent session first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM session_summaries
                WHERE user_id = ?
                ORDER BY last_message_at DESC
                LIMIT ?
            """,
                (user_id, limit),
            ).fetchall()
        return [self._summary_from_row(row) for row in rows]

    # -- User profiles ------------------------------------------------------

    def get_profile(self, user_id: str) -> UserProfile | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM user_profiles WHERE user_id = ?", (user_id,)
            ).fetchone()
        if not row:
            return None
        return UserProfile(
            user_id=row["user_id"],
            confidence=row["confidence"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
            **json.loads(row["attributes"]),
        )

    def save_profile(self, profile: UserProfile) -> None:
        """Insert or replace a profile row."""
        attributes = profile.model_dump(mode="json", include=set(PROFILE_FIELDS))
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_profiles (user_id, attributes, confidence, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    attributes = excluded.attributes,
                    confidence = excluded.confidence,
                    updated_at = excluded.updated_at
            """,
                (
                    profile.user_id,
                    json.dumps(attributes),
                    profile.confidence,
                    profile.updated_at.isoformat(),
                ),
            )
            conn.commit()

    # -- Insights -----------------------------------------------------------

    def insert_insight(self, insight: Insight) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO insights
                (user_id, insight_type, title, description, category, impact, actionable,
                 action_suggestion, data, valid_until, acknowledged, dismissed, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    insight.user_id,
                    insight.insight_type,
                    insight.title,
                    insight.description,
                    insight.category,
                    insight.impact,
                    int(insight.actionable),
                    insight.action_suggestion,
                    json.dumps(insight.data),
                    insight.valid_until.isoformat() if insight.valid_until else None,
                    int(insight.acknowledged),
                    int(insight.dismissed),
                    insight.created_at.isoformat(),
                ),
            )
            conn.commit()
            insight_id = cursor.lastrowid
            assert insight_id is not None
            return insight_id

    def list_insights(self, user_id: str, include_dismissed: bool = False) -> list[Insight]:
        query = "SELECT * FROM insights WHERE user_id = ?"
        if not include_dismissed:
            query += " AND dismissed = 0"
        query += " ORDER BY created_at DESC, id DESC"

        with self._connect() as conn:
            rows = conn.execute(query, (user_id,)).fetchall()

        return [
            Insight(
                id=row["id"],
                user_id=row["user_id"],
                insight_type=row["insight_type"],
                title=row["title"],
                description=row["description"],
                category=row["category"],
                impact=row["impact"],
                actionable=bool(row["actionable"]),
                action_suggestion=row["action_suggestion"],
                data=json.loads(row["data"]),
                valid_until=(
                    datetime.fromisoformat(row["valid_until"]) if row["valid_until"] else None
                ),
                acknowledged=bool(row["acknowledged"]),
                dismissed=bool(row["dismissed"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    def set_insight_flag(self, insight_id: int, flag: str, user_id: str | None = None) -> bool:
        """Set ``acknowledged`` or ``dismissed`` on an insight.

        Returns:
            True if a row was updated
        """
        if flag not in ("acknowledged", "dismissed"):
            raise ValueError(f"Unknown insight flag: {flag}")

        query = f"UPDATE insights SET {flag} = 1 WHERE id = ?"
        params: list[Any] = [insight_id]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)

        with self._connect() as conn:
            cursor = conn.execute(query, params)
            conn.commit()
            return cursor.rowcount > 0

    # -- Memories -----------------------------------------------------------

    def insert_memory(self, memory: Memory) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO memories
                (user_id, memory_type, title, description, importance, date, data, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    memory.user_id,
                    memory.memory_type,
                    memory.title,
                    memory.description,
                    memory.importance,
                    memory.date.isoformat(),
                    _dumps(memory.data),
                    memory.created_at.isoformat(),
                ),
            )
            conn.commit()
            memory_id = cursor.lastrowid
            assert memory_id is not None
            return memory_id

    def list_memories(self, user_id: str, memory_type: str | None = None) -> list[Memory]:
        """List memories by importance, then most recent first."""
        query = "SELECT * FROM memories WHERE user_id = ?"
        params: list[Any] = [user_id]
        if memory_type is not None:
            query += " AND memory_type = ?"
            params.append(memory_type)
        query += " ORDER BY importance DESC, created_at DESC, id DESC"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            Memory(
                id=row["id"],
                user_id=row["user_id"],
                memory_type=row["memory_type"],
                title=row["title"],
                description=row["description"],
                importance=row["importance"],
                date=date.fromisoformat(row["date"]),
                data=_loads(row["data"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    # -- Popular questions --------------------------------------------------

    @staticmethod
    def _question_from_row(row: sqlite3.Row) -> PopularQuestion:
        return PopularQuestion(
            id=row["id"],
            question=row["question"],
            question_hash=row["question_hash"],
            category=row["category"],
            ask_count=row["ask_count"],
            last_asked_at=datetime.fromisoformat(row["last_asked_at"]),
            helpful_score=row["helpful_score"],
            suggested=bool(row["suggested"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def upsert_question(self, question: str, question_hash: str, category: str, now: datetime) -> None:
        """Insert a question or bump its ask count, keyed by hash.

        On conflict the display text is overwritten with ``question``.

        Raises:
            sqlite3.IntegrityError: If ``question`` collides with the display
                text of a row that has a different hash
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO popular_questions
                (question, question_hash, category, ask_count, last_asked_at, created_at, updated_at)
                VALUES (?, ?, ?, 1, ?, ?, ?)
                ON CONFLICT(question_hash) DO UPDATE SET
                    ask_count = ask_count + 1,
                    last_asked_at = excluded.last_asked_at,
                    updated_at = excluded.updated_at,
                    question = excluded.question
            """,
                (question, question_hash, category, now.isoformat(), now.isoformat(), now.isoformat()),
            )
            conn.commit()

    def get_question(self, question_hash: str) -> PopularQuestion | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM popular_questions WHERE question_hash = ?", (question_hash,)
            ).fetchone()
        return self._question_from_row(row) if row else None

    def update_question(
        self, question_id: int, question: str, ask_count: int, last_asked_at: datetime
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE popular_questions
                SET question = ?, ask_count = ?, last_asked_at = ?, updated_at = ?
                WHERE id = ?
            """,
                (
                    question,
                    ask_count,
                    last_asked_at.isoformat(),
                    last_asked_at.isoformat(),
                    question_id,
                ),
            )
            conn.commit()

    def increment_helpful(self, question_hash: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE popular_questions SET helpful_score = helpful_score + 1 WHERE question_hash = ?",
                (question_hash,),
            )
            conn.commit()
            return cursor.rowcount > 0

    def list_suggested_questions(
        self, limit: int, since: datetime | None = None, by_helpful: bool = False
    ) -> list[PopularQuestion]:
        """List ``suggested`` questions, most asked first.

        Args:
            limit: Maximum rows
            since: Only questions last asked at or after this time
            by_helpful: Break ask-count ties by helpful score instead of recency
        """
        query = "SELECT * FROM popular_questions WHERE suggested = 1"
        params: list[Any] = []
        if since is not None:
            query += " AND last_asked_at >= ?"
            params.append(since.isoformat())
        tiebreak = "helpful_score DESC" if by_helpful else "last_asked_at DESC"
        query += f" ORDER BY ask_count DESC, {tiebreak} LIMIT ?"
        params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._question_from_row(row) for row in rows]

    # -- Transactions (read-only ledger) ------------------------------------

    def add_transaction(self, transaction: Transaction) -> int:
        """Insert a ledger row (used by the host app and fixtures)."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO transactions (user_id, type, amount, category_name, date)
                VALUES (?, ?, ?, ?, ?)
            """,
                (
                    transaction.user_id,
                    transaction.type,
                    transaction.amount,
                    transaction.category_name,
                    transaction.date.isoformat(),
                ),
            )
            conn.commit()
            transaction_id = cursor.lastrowid
            assert transaction_id is not None
            return transaction_id

    def list_transactions(
        self, user_id: str, since: datetime, type: str | None = None
    ) -> list[Transaction]:
        query = "SELECT * FROM transactions WHERE user_id = ? AND date >= ?"
        params: list[Any] = [user_id, since.isoformat()]
        if type is not None:
            query += " AND type = ?"
            params.append(type)
        query += " ORDER BY date ASC"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            Transaction(
                id=row["id"],
                user_id=row["user_id"],
                type=row["type"],
                amount=row["amount"],
                category_name=row["category_name"],
                date=datetime.fromisoformat(row["date"]),
            )
            for row in rows
        ]
