"""Assemble the learned-state context block injected into coaching prompts."""

from datetime import datetime, timedelta

from budgetcoach.config.schema import LearningConfig
from budgetcoach.memory.schema import UserProfile
from budgetcoach.memory.storage import CoachStorage

MAX_MEMORIES = 5
MAX_SUMMARIES = 3
SNAPSHOT_DAYS = 30


class ContextBuilder:
    """Compose profile, memories, recent sessions and a spending snapshot."""

    def __init__(
        self,
        storage: CoachStorage,
        policy: LearningConfig | None = None,
        currency: str = "RM",
    ):
        self.storage = storage
        self.policy = policy or LearningConfig()
        self.currency = currency

    def _profile_lines(self, profile: UserProfile) -> list[str]:
        lines = []
        if profile.monthly_income:
            lines.append(f"- Monthly Income: {self.currency}{profile.monthly_income:g}")
        if profile.employment_status:
            lines.append(f"- Employment: {profile.employment_status}")
        if profile.marital_status:
            lines.append(f"- Marital Status: {profile.marital_status}")
        if profile.dependents:
            lines.append(f"- Dependents: {profile.dependents}")
        if profile.primary_goal:
            lines.append(f"- Primary Goal: {profile.primary_goal}")
        if profile.spending_personality:
            lines.append(f"- Spending Style: {profile.spending_personality}")
        if profile.preferred_language:
            lines.append(f"- Language: {profile.preferred_language}")
        if profile.has_debt:
            lines.append(f"- Has Debt: Yes ({', '.join(profile.debt_types or []) or 'various'})")
        lines.append(f"- Confidence: {profile.confidence}%")
        return lines

    def snapshot(self, user_id: str, now: datetime | None = None) -> str:
        """Currency and last-30-day spending from the ledger."""
        now = now or datetime.utcnow()
        expenses = self.storage.list_transactions(
            user_id, now - timedelta(days=SNAPSHOT_DAYS), type="expense"
        )
        total = sum(t.amount for t in expenses)
        return (
            "User's Financial Context:\n"
            f"- Currency: {self.currency}\n"
            f"- Last {SNAPSHOT_DAYS} days spending: {self.currency} {total:.2f}\n"
        )

    def build(self, user_id: str, now: datetime | None = None) -> str:
        """Build the context block for a user.

        The profile section appears only above the configured confidence
        threshold; empty sections are omitted.

        Args:
            user_id: User to describe
            now: Reference time for the spending snapshot

        Returns:
            Context text, possibly just the snapshot
        """
        profile = self.storage.get_profile(user_id)
        memories = self.storage.list_memories(user_id, "milestone")
        summaries = self.storage.list_summaries(user_id, MAX_SUMMARIES)

        context = self.snapshot(user_id, now)

        if profile is not None and profile.confidence > self.policy.profile_context_min_confidence:
            context += "\n=== WHAT I KNOW ABOUT YOU ===\n"
            context += "\n".join(self._profile_lines(profile)) + "\n"

        if memories:
            context += "\n=== IMPORTANT THINGS TO REMEMBER ===\n"
            for memory in memories[:MAX_MEMORIES]:
                context += f"- {memory.title}: {memory.description}\n"

        if summaries:
            context += "\n=== RECENT CONVERSATIONS ===\n"
            for summary in summaries[:MAX_SUMMARIES]:
                context += f"- {summary.title}: {summary.summary}\n"

        return context
