"""Extract durable, importance-scored life events from a conversation."""

import logging
from datetime import date
from typing import Any

from budgetcoach.llm.client import GenerationParams
from budgetcoach.llm.gateway import ProviderGateway
from budgetcoach.memory.schema import Memory
from budgetcoach.memory.storage import CoachStorage
from budgetcoach.parsing.structured import decode_json

logger = logging.getLogger(__name__)

MEMORY_TYPES = ("milestone", "struggle", "achievement", "preference")

MEMORY_PROMPT = """Extract important memories from this financial conversation.

CONVERSATION:
{conversation}

Return ONLY valid JSON array of memories:
[
  {{
    "memoryType": "milestone|struggle|achievement|preference",
    "title": "Short title",
    "description": "Detailed description",
    "importance": 1-10,
    "date": "YYYY-MM-DD" (if mentioned, otherwise today)
  }}
]

Memory types:
- milestone: Important life events (job change, marriage, new house, etc.)
- struggle: Financial difficulties mentioned
- achievement: Financial wins (paid off debt, reached savings goal, etc.)
- preference: Strong preferences expressed about money management

Only extract truly important information worth remembering long-term."""

MEMORY_PARAMS = GenerationParams(temperature=0.2, max_output_tokens=500, json_mode=True)


def _importance(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value:
        return 5
    return max(1, min(10, round(value)))


def _memory_date(value: Any, today: date) -> date:
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            pass
    return today


def build_memory(user_id: str, item: Any, today: date) -> Memory | None:
    """Turn one model-emitted candidate into a Memory, or None if unusable."""
    if not isinstance(item, dict):
        return None
    title = str(item.get("title") or "").strip()
    description = str(item.get("description") or "").strip()
    if not title or not description:
        return None

    memory_type = item.get("memoryType", item.get("memory_type"))
    return Memory(
        user_id=user_id,
        memory_type=memory_type if memory_type in MEMORY_TYPES else "preference",
        title=title,
        description=description,
        importance=_importance(item.get("importance")),
        date=_memory_date(item.get("date"), today),
    )


class MemoryExtractor:
    """Pull memories out of a conversation and append them to the store."""

    def __init__(self, gateway: ProviderGateway, storage: CoachStorage):
        self.gateway = gateway
        self.storage = storage

    async def extract(
        self,
        user_id: str,
        session_id: str,
        conversation_text: str,
        today: date | None = None,
    ) -> list[Memory]:
        """Extract and store memories.

        Args:
            user_id: Owner of the conversation
            session_id: Session the conversation came from
            conversation_text: Text to mine
            today: Date for memories that don't name one

        Returns:
            Memories that were stored; empty on any failure
        """
        today = today or date.today()
        try:
            result = await self.gateway.send(
                MEMORY_PROMPT.format(conversation=conversation_text), MEMORY_PARAMS
            )
        except Exception as e:
            logger.warning("Memory extraction failed for session %s: %s", session_id, e)
            return []

        items = decode_json(result.text, "array")
        if items is None:
            logger.warning("Failed to parse memory extraction JSON, using empty array")
            return []

        stored = []
        try:
            for item in items:
                memory = build_memory(user_id, item, today)
                if memory is None:
                    continue
                memory_id = self.storage.insert_memory(memory)
                stored.append(memory.model_copy(update={"id": memory_id}))
        except Exception:
            logger.exception("Failed to store memories for session %s", session_id)
        return stored

    def list_memories(self, user_id: str, memory_type: str | None = None) -> list[Memory]:
        """Memories by importance, then most recent first."""
        return self.storage.list_memories(user_id, memory_type)
