"""Condense a session into a title/summary/topics/sentiment record."""

import logging

from budgetcoach.llm.client import GenerationParams
from budgetcoach.llm.gateway import ProviderGateway
from budgetcoach.memory.conversation import ConversationStore
from budgetcoach.memory.schema import ChatTurn, SessionSummary
from budgetcoach.memory.utils import estimate_total_tokens
from budgetcoach.parsing.structured import decode_json

logger = logging.getLogger(__name__)

SENTIMENTS = ("positive", "neutral", "negative", "stressed")

FALLBACK_TITLE = "Financial Discussion"
FALLBACK_SUMMARY = "A conversation about personal finance and budgeting"
FALLBACK_TOPICS = ["budget"]

SUMMARY_PROMPT = """Analyze this conversation and extract key information in JSON format:

CONVERSATION:
{transcript}

Return ONLY valid JSON with this structure:
{{
  "title": "Brief 3-5 word title",
  "summary": "2-3 sentence summary of what was discussed",
  "topics": ["topic1", "topic2"],
  "sentiment": "positive|neutral|negative|stressed",
  "actionItems": ["action1 if any"]
}}

Rules:
- Title should be descriptive (e.g., "Budget Planning RM4500", "Debt Management Advice")
- Topics should be from: budget, savings, debt, spending, goals, investment, emergency
- Sentiment based on user's tone (are they stressed, happy, neutral?)
- Action items are concrete steps user agreed to take"""

SUMMARY_PARAMS = GenerationParams(temperature=0.3, max_output_tokens=500, json_mode=True)


def format_transcript(turns: list[ChatTurn]) -> str:
    """Render turns as ``ROLE: content`` blocks separated by blank lines."""
    return "\n\n".join(f"{turn.role.upper()}: {turn.content}" for turn in turns)


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


class SessionSummarizer:
    """Summarize sessions through the gateway, falling back to a fixed record."""

    def __init__(self, gateway: ProviderGateway, conversations: ConversationStore):
        self.gateway = gateway
        self.conversations = conversations
        self.storage = conversations.storage

    async def _ask(self, transcript: str) -> dict | None:
        try:
            result = await self.gateway.send(
                SUMMARY_PROMPT.format(transcript=transcript), SUMMARY_PARAMS
            )
        except Exception as e:
            logger.warning("Summary generation failed: %s", e)
            return None

        data = decode_json(result.text, "object")
        if data is None:
            logger.warning("Failed to parse summary JSON, using fallback")
        return data

    async def summarize(self, user_id: str, session_id: str) -> SessionSummary | None:
        """Summarize a session and upsert the result.

        Args:
            user_id: Owner of the session
            session_id: Session identifier

        Returns:
            The stored summary, or None if the session has no turns
        """
        turns = self.conversations.transcript(session_id)
        if not turns:
            return None

        data = await self._ask(format_transcript(turns)) or {}

        sentiment = data.get("sentiment")
        summary = SessionSummary(
            user_id=user_id,
            session_id=session_id,
            title=str(data.get("title") or FALLBACK_TITLE),
            summary=str(data.get("summary") or FALLBACK_SUMMARY),
            topics=_string_list(data.get("topics")) if data else list(FALLBACK_TOPICS),
            sentiment=sentiment if sentiment in SENTIMENTS else "neutral",
            action_items=_string_list(data.get("actionItems", data.get("action_items"))),
            message_count=len(turns),
            total_tokens=estimate_total_tokens(turns),
            last_message_at=turns[-1].created_at,
        )
        self.storage.upsert_summary(summary)
        return summary

    def list_summaries(self, user_id: str, limit: int = 20) -> list[SessionSummary]:
        """A user's session summaries, most recent first."""
        return self.storage.list_summaries(user_id, limit)
