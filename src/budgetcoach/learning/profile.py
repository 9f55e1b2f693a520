"""Learn user attributes from single turns with confidence-weighted merging."""

import json
import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import ValidationError

from budgetcoach.config.schema import LearningConfig
from budgetcoach.llm.client import GenerationParams
from budgetcoach.llm.gateway import ProviderGateway
from budgetcoach.memory.schema import PROFILE_FIELDS, UserProfile
from budgetcoach.memory.storage import CoachStorage
from budgetcoach.parsing.structured import decode_json

logger = logging.getLogger(__name__)

PROFILE_PROMPT = """Extract user financial preferences from this conversation.

CONVERSATION:
User: {user_message}
Assistant: {assistant_message}{existing}

Return ONLY valid JSON with fields that were mentioned or can be inferred:
{{
  "monthly_income": number or null,
  "income_frequency": "monthly|weekly|bi-weekly" or null,
  "employment_status": "employed|self-employed|unemployed|student" or null,
  "marital_status": "single|married|divorced" or null,
  "dependents": number or null,
  "primary_goal": "buy_house|emergency_fund|retirement|debt_free|other" or null,
  "risk_tolerance": "conservative|moderate|aggressive" or null,
  "savings_preference": number (10-50) or null,
  "spending_personality": "frugal|moderate|generous|impulsive" or null,
  "biggest_expense_category": "food|transport|housing|entertainment|other" or null,
  "budget_adherence": "strict|flexible|struggles" or null,
  "preferred_language": "english|malay|mixed" or null,
  "communication_style": "formal|casual|friendly" or null,
  "has_debt": boolean or null,
  "debt_types": ["ptptn","car_loan","credit_card","housing"] or null,
  "confidence": number (0-100 based on how certain you are)
}}

Rules:
- ONLY include fields you can reasonably infer
- Set confidence based on how explicit the information was
- For language, detect if user uses English, Malay, or mixed
- If info conflicts with existing profile, use new info and increase confidence"""

PROFILE_PARAMS = GenerationParams(temperature=0.2, max_output_tokens=800, json_mode=True)

# Models sometimes answer with the camelCase names the app uses elsewhere
_CAMEL_ALIASES = {
    "".join(part if i == 0 else part.title() for i, part in enumerate(name.split("_"))): name
    for name in PROFILE_FIELDS
}


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def merge_confidence(
    existing: int | None,
    reported: int,
    weight_existing: float = 0.7,
    weight_new: float = 0.3,
) -> int:
    """Blend a per-turn confidence into the stored one.

    Args:
        existing: Stored confidence, or None if the user has no profile yet
        reported: Confidence reported for this turn
        weight_existing: Weight of the stored value
        weight_new: Weight of the reported value

    Returns:
        Merged confidence clamped to 0-100, halves rounded up
    """
    if existing is None:
        merged = reported
    else:
        merged = _round_half_up(
            Decimal(str(existing)) * Decimal(str(weight_existing))
            + Decimal(str(reported)) * Decimal(str(weight_new))
        )
    return max(0, min(100, merged))


def _coerce_confidence(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return max(0, min(100, _round_half_up(Decimal(str(value)))))


class ProfileLearner:
    """Extract profile updates from a turn and merge them into the stored profile."""

    def __init__(
        self,
        gateway: ProviderGateway,
        storage: CoachStorage,
        policy: LearningConfig | None = None,
    ):
        self.gateway = gateway
        self.storage = storage
        self.policy = policy or LearningConfig()

    def get_profile(self, user_id: str) -> UserProfile | None:
        return self.storage.get_profile(user_id)

    @staticmethod
    def _updates_from(user_id: str, extracted: dict[str, Any]) -> dict[str, Any]:
        """Known, non-null fields that validate on their own; bad ones are dropped."""
        updates: dict[str, Any] = {}
        for key, value in extracted.items():
            name = _CAMEL_ALIASES.get(key, key)
            if name not in PROFILE_FIELDS or value is None:
                continue
            try:
                checked = UserProfile.model_validate({"user_id": user_id, name: value})
            except ValidationError as e:
                logger.warning(
                    "Dropping profile field %s for %s: %s", name, user_id, e.errors()[0]["msg"]
                )
                continue
            updates[name] = getattr(checked, name)
        return updates

    async def learn(
        self, user_id: str, user_message: str, assistant_message: str
    ) -> dict[str, Any] | None:
        """Learn from one exchange.

        Args:
            user_id: User the turn belongs to
            user_message: What the user said
            assistant_message: What the coach replied

        Returns:
            The applied field updates plus merged ``confidence``, or None
            when nothing was learned or anything failed
        """
        try:
            existing = self.storage.get_profile(user_id)
            context = ""
            if existing is not None:
                known = existing.model_dump(mode="json", exclude_none=True, exclude={"updated_at"})
                context = (
                    "\n\nEXISTING PROFILE (update if new info conflicts):\n"
                    + json.dumps(known, indent=2)
                )

            result = await self.gateway.send(
                PROFILE_PROMPT.format(
                    user_message=user_message,
                    assistant_message=assistant_message,
                    existing=context,
                ),
                PROFILE_PARAMS,
            )
            extracted = decode_json(result.text, "object")
            if extracted is None:
                logger.warning("Failed to parse preference extraction JSON")
                return None

            updates = self._updates_from(user_id, extracted)
            if not updates:
                return None

            reported = _coerce_confidence(
                extracted.get("confidence"), self.policy.default_reported_confidence
            )
            confidence = merge_confidence(
                existing.confidence if existing is not None else None,
                reported,
                self.policy.confidence_weight_existing,
                self.policy.confidence_weight_new,
            )

            base = existing.model_dump() if existing is not None else {"user_id": user_id}
            profile = UserProfile.model_validate(
                {**base, **updates, "confidence": confidence, "updated_at": datetime.utcnow()}
            )
            self.storage.save_profile(profile)
        except ValidationError as e:
            logger.warning("Discarding profile update for %s: %s", user_id, e.error_count())
            return None
        except Exception:
            logger.exception("Preference extraction failed for %s", user_id)
            return None

        applied = profile.model_dump(mode="json", include=set(updates))
        return {**applied, "confidence": confidence}
