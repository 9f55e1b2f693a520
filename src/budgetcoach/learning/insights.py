"""Rule-based insights over a trailing window of expense transactions."""

import logging
from collections import defaultdict
from datetime import datetime, timedelta

from budgetcoach.config.schema import LearningConfig
from budgetcoach.memory.schema import Insight, Transaction
from budgetcoach.memory.storage import CoachStorage

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"


class InsightGenerator:
    """Emit and persist typed observations about a user's spending."""

    def __init__(self, storage: CoachStorage, policy: LearningConfig | None = None, currency: str = "RM"):
        self.storage = storage
        self.policy = policy or LearningConfig()
        self.currency = currency

    def _top_category(self, user_id: str, expenses: list[Transaction]) -> Insight | None:
        spend: dict[str, float] = defaultdict(float)
        counts: dict[str, int] = defaultdict(int)
        for t in expenses:
            name = t.category_name or UNCATEGORIZED
            spend[name] += t.amount
            counts[name] += 1

        total = sum(t.amount for t in expenses)
        if not spend or total <= 0:
            return None

        category, amount = max(spend.items(), key=lambda item: item[1])
        percentage = round(amount / total * 100, 1)
        if percentage <= self.policy.top_category_share:
            return None

        return Insight(
            user_id=user_id,
            insight_type="spending_pattern",
            title=f"High {category} Spending",
            description=(
                f"{category} accounts for {percentage}% of your total spending "
                f"({self.currency}{amount:.2f} in {self.policy.insight_lookback_days} days)."
            ),
            category=category,
            impact="high",
            actionable=True,
            action_suggestion=(
                f"Consider setting a budget for {category} "
                "or finding ways to reduce these expenses."
            ),
            data={
                "amount": amount,
                "percentage": percentage,
                "transaction_count": counts[category],
            },
        )

    def _small_purchases(self, user_id: str, expenses: list[Transaction]) -> Insight | None:
        threshold = self.policy.small_purchase_amount
        small = [t.amount for t in expenses if t.amount < threshold]
        if len(small) <= self.policy.small_purchase_count:
            return None

        total = sum(small)
        return Insight(
            user_id=user_id,
            insight_type="savings_opportunity",
            title="Frequent Small Purchases",
            description=(
                f"You made {len(small)} small purchases under {self.currency}{threshold:g} "
                f"in the last {self.policy.insight_lookback_days} days, "
                f"totaling {self.currency}{total:.2f}."
            ),
            impact="medium",
            actionable=True,
            action_suggestion=(
                "Small daily expenses add up. "
                "Consider tracking these to see where you can cut back."
            ),
            data={"count": len(small), "total": total, "average": total / len(small)},
        )

    def generate(self, user_id: str, now: datetime | None = None) -> list[Insight]:
        """Analyze the lookback window and persist every insight found.

        Insights are stored as new rows on every call, even if an
        identical one was generated before.

        Args:
            user_id: User to analyze
            now: End of the window (defaults to the current UTC time)

        Returns:
            Stored insights with their ids
        """
        now = now or datetime.utcnow()
        since = now - timedelta(days=self.policy.insight_lookback_days)
        expenses = self.storage.list_transactions(user_id, since, type="expense")
        if not expenses:
            return []

        found = [
            insight
            for insight in (
                self._top_category(user_id, expenses),
                self._small_purchases(user_id, expenses),
            )
            if insight is not None
        ]

        stored = []
        for insight in found:
            insight_id = self.storage.insert_insight(insight)
            stored.append(insight.model_copy(update={"id": insight_id}))

        if stored:
            logger.info("Generated %d insight(s) for %s", len(stored), user_id)
        return stored

    def list_insights(self, user_id: str, include_dismissed: bool = False) -> list[Insight]:
        return self.storage.list_insights(user_id, include_dismissed)

    def acknowledge(self, insight_id: int, user_id: str | None = None) -> bool:
        return self.storage.set_insight_flag(insight_id, "acknowledged", user_id)

    def dismiss(self, insight_id: int, user_id: str | None = None) -> bool:
        return self.storage.set_insight_flag(insight_id, "dismissed", user_id)
