"""Pydantic models for the coaching store."""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

Role = Literal["user", "assistant", "system"]
Sentiment = Literal["positive", "neutral", "negative", "stressed"]
InsightType = Literal["spending_pattern", "savings_opportunity", "budget_alert", "goal_progress"]
Impact = Literal["high", "medium", "low"]
MemoryType = Literal["milestone", "struggle", "achievement", "preference"]


class ChatTurn(BaseModel):
    """One message in a coaching session."""

    id: int | None = None  # Auto-assigned by database
    session_id: str
    user_id: str
    role: Role
    content: str
    token_count: int | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class SessionOverview(BaseModel):
    """Per-session aggregate over stored turns."""

    session_id: str
    last_message_at: datetime
    message_count: int


class SessionSummary(BaseModel):
    """Condensed record of a session, one per session id."""

    user_id: str
    session_id: str
    title: str
    summary: str
    topics: list[str] = Field(default_factory=list)
    sentiment: Sentiment = "neutral"
    action_items: list[str] = Field(default_factory=list)
    message_count: int = 0
    total_tokens: int = 0
    last_message_at: datetime


class UserProfile(BaseModel):
    """What the coach has learned about a user."""

    user_id: str
    monthly_income: float | None = None
    income_frequency: str | None = None
    employment_status: str | None = None
    marital_status: str | None = None
    dependents: int | None = None
    primary_goal: str | None = None
    risk_tolerance: str | None = None
    savings_preference: float | None = None
    spending_personality: str | None = None
    biggest_expense_category: str | None = None
    budget_adherence: str | None = None
    preferred_language: str | None = None
    communication_style: str | None = None
    has_debt: bool | None = None
    debt_types: list[str] | None = None
    confidence: int = Field(default=0, ge=0, le=100)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# Attribute names a single turn can update, excluding identity and bookkeeping
PROFILE_FIELDS: tuple[str, ...] = tuple(
    name for name in UserProfile.model_fields if name not in ("user_id", "confidence", "updated_at")
)


class Insight(BaseModel):
    """A typed observation derived from the user's transactions."""

    id: int | None = None
    user_id: str
    insight_type: InsightType
    title: str
    description: str
    category: str | None = None
    impact: Impact = "medium"
    actionable: bool = True
    action_suggestion: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    valid_until: datetime | None = None
    acknowledged: bool = False
    dismissed: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Memory(BaseModel):
    """A durable life event worth remembering across sessions."""

    id: int | None = None
    user_id: str
    memory_type: MemoryType = "preference"
    title: str
    description: str
    importance: int = Field(default=5, ge=1, le=10)
    date: date
    data: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class PopularQuestion(BaseModel):
    """A question aggregated across all users."""

    id: int | None = None
    question: str
    question_hash: str
    category: str = "general"
    ask_count: int = 1
    last_asked_at: datetime = Field(default_factory=datetime.utcnow)
    helpful_score: int = 0
    suggested: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Transaction(BaseModel):
    """A ledger entry, owned by the finance app and read here."""

    id: int | None = None
    user_id: str
    type: Literal["income", "expense"]
    amount: float
    category_name: str | None = None
    date: datetime
