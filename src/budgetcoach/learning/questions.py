"""Cross-user popular question tracking and suggestion ranking."""

import logging
import re
import sqlite3
from datetime import datetime, timedelta

from budgetcoach.llm.client import GenerationParams
from budgetcoach.llm.gateway import ProviderGateway
from budgetcoach.memory.schema import PopularQuestion, UserProfile
from budgetcoach.memory.storage import CoachStorage

logger = logging.getLogger(__name__)

MIN_QUESTION_LENGTH = 5
MAX_QUESTION_LENGTH = 200
DISPLAY_LENGTH = 60
INVESTMENT_INCOME_THRESHOLD = 5000
RECENT_WINDOW = timedelta(days=7)

DEFAULT_SUGGESTIONS = (
    "Setup my budget, salary RM4500",
    "Analyze my spending",
    "Help me save 20% of my income",
    "Tips to reduce my expenses",
    "How to build emergency fund",
    "Manage my debt wisely",
)

# Checked in order; the first category with a matching keyword wins
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("budget", ("budget", "gaji", "income")),
    ("savings", ("save", "saving", "tabung")),
    ("debt", ("debt", "loan", "ptptn", "hutang")),
    ("investment", ("invest", "stock", "saham")),
    ("spending", ("spent", "expense", "belanja")),
    ("goals", ("goal", "target")),
)

SHORTEN_PROMPT = """Shorten this question to max 50 characters. Keep it natural and conversational. Return ONLY the shortened question, no quotes, no explanation.

Question: "{question}"

Shortened (max 50 chars):"""

SHORTEN_PARAMS = GenerationParams(temperature=0.3, max_output_tokens=100)

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_QUOTES_RE = re.compile(r"^[\"']|[\"']$")


def hash_question(question: str) -> str:
    """Normalize a question into its dedup key.

    Lowercases, trims, collapses whitespace, then drops punctuation, so
    ``"Save money!!!  now"`` and ``"save money now"`` share a key.
    """
    normalized = _WHITESPACE_RE.sub(" ", question.lower().strip())
    return _PUNCTUATION_RE.sub("", normalized)


def categorize_question(question: str) -> str:
    lowered = question.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return "general"


def _truncate(question: str) -> str:
    return question[: DISPLAY_LENGTH - 3] + "..."


def score_question(
    question: PopularQuestion, profile: UserProfile | None, now: datetime
) -> int:
    """Popularity plus profile-conditioned boosts.

    Boosts apply only when a profile is supplied.
    """
    score = question.ask_count
    if profile is None:
        return score

    text = question.question.lower()
    if any(word in text for word in ("gaji", "salary", "income")) and not profile.monthly_income:
        score += 10
    if any(word in text for word in ("save", "tabung")) and profile.primary_goal in (
        "emergency_fund",
        "buy_house",
    ):
        score += 5
    if any(word in text for word in ("debt", "hutang", "ptptn")) and profile.has_debt:
        score += 8
    if any(word in text for word in ("invest", "saham")) and (
        (profile.monthly_income or 0) > INVESTMENT_INCOME_THRESHOLD
    ):
        score += 5
    if now - question.last_asked_at < RECENT_WINDOW:
        score += 3
    return score


class QuestionTracker:
    """Count questions across all users and rank them as suggestions."""

    def __init__(self, gateway: ProviderGateway, storage: CoachStorage):
        self.gateway = gateway
        self.storage = storage

    async def summarize(self, question: str) -> str:
        """Display form of a question: verbatim when short, else a paraphrase.

        Falls back to truncation with an ellipsis when the paraphrase call
        fails or comes back empty.
        """
        if len(question) <= DISPLAY_LENGTH:
            return question

        try:
            result = await self.gateway.send(
                SHORTEN_PROMPT.format(question=question), SHORTEN_PARAMS
            )
        except Exception as e:
            logger.warning("Question summarization failed, truncating: %s", e)
            return _truncate(question)

        shortened = _QUOTES_RE.sub("", result.text.strip())[:DISPLAY_LENGTH].strip()
        return shortened or _truncate(question)

    def _fallback_update(self, display: str, question_hash: str, now: datetime) -> None:
        existing = self.storage.get_question(question_hash)
        if existing is None:
            return
        self.storage.update_question(
            existing.id,
            question=display if len(display) < len(existing.question) else existing.question,
            ask_count=existing.ask_count + 1,
            last_asked_at=now,
        )

    async def track(self, question: str, now: datetime | None = None) -> str | None:
        """Record that a question was asked.

        Args:
            question: Raw user message
            now: Time of asking (defaults to the current UTC time)

        Returns:
            The display text used, or None if the question was rejected
            or could not be stored
        """
        trimmed = question.strip()
        if not MIN_QUESTION_LENGTH <= len(trimmed) <= MAX_QUESTION_LENGTH:
            return None

        now = now or datetime.utcnow()
        display = await self.summarize(trimmed)
        question_hash = hash_question(trimmed)
        category = categorize_question(trimmed)

        try:
            self.storage.upsert_question(display, question_hash, category, now)
        except sqlite3.IntegrityError as e:
            logger.info("Question upsert conflicted (%s), updating by hash", e)
            try:
                self._fallback_update(display, question_hash, now)
            except Exception:
                logger.exception("Track question error")
                return None
        except Exception:
            logger.exception("Track question error")
            return None
        return display

    def suggest(
        self,
        profile: UserProfile | None = None,
        limit: int = 6,
        now: datetime | None = None,
    ) -> list[str]:
        """Rank suggested questions for a user.

        Args:
            profile: Learned profile used for boosts, if any
            limit: Number of suggestions
            now: Reference time for the recency boost

        Returns:
            Question texts, best first; the default list when nothing is stored
        """
        now = now or datetime.utcnow()
        try:
            candidates = self.storage.list_suggested_questions(limit * 2)
        except Exception:
            logger.exception("Get suggestions error")
            return list(DEFAULT_SUGGESTIONS)

        if not candidates:
            return list(DEFAULT_SUGGESTIONS)

        ranked = sorted(
            candidates, key=lambda q: score_question(q, profile, now), reverse=True
        )
        return [q.question for q in ranked[:limit]]

    def mark_helpful(self, question: str) -> bool:
        """Upvote a question; returns False if it was never tracked."""
        return self.storage.increment_helpful(hash_question(question))

    def trending(self, limit: int = 10, now: datetime | None = None) -> list[PopularQuestion]:
        """Suggested questions asked in the last week, most asked first."""
        now = now or datetime.utcnow()
        return self.storage.list_suggested_questions(
            limit, since=now - RECENT_WINDOW, by_helpful=True
        )
