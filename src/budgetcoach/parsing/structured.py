"""Best-effort structured decoding of free-text model output.

Model replies are supposed to be a single JSON value but arrive wrapped in
markdown fences, surrounded by prose, or cut off mid-object. ``decode_json``
walks an explicit fallback ladder:

1. strict parse of the whole text
2. parse after stripping code-fence markers
3. parse of the outermost ``{...}`` (or ``[...]``) span
4. give up and return ``None``

``extract_chat_response`` builds on it and never raises: when nothing
usable decodes, the raw text becomes the chat message.
"""

import json
import logging
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


class BudgetAction(BaseModel):
    """A budget change proposed by the coach, handed to the budgeting service."""

    model_config = ConfigDict(populate_by_name=True)

    action: Literal["create", "update", "delete"]
    category_name: str = Field(alias="categoryName", min_length=1)
    amount: float = Field(ge=0)
    period: Literal["monthly", "weekly", "yearly"] = "monthly"
    month: int | None = Field(default=None, ge=1, le=12)
    year: int | None = None


class ChatResponse(BaseModel):
    """Structured coach reply."""

    message: str
    budget_actions: list[BudgetAction] | None = None


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers anywhere in ``text``."""
    return _FENCE_RE.sub("", text).strip()


def looks_truncated(text: str) -> bool:
    """Heuristic: a complete JSON reply ends with ``}`` or ``]``."""
    return not text.rstrip().endswith(("}", "]"))


def _loads(text: str, expected: type) -> Any:
    try:
        value = json.loads(text)
    except ValueError:
        return None
    return value if isinstance(value, expected) else None


def decode_json(raw: str, expect: Literal["object", "array"] = "object") -> Any:
    """Decode a JSON object or array out of unreliable model output.

    Args:
        raw: Raw model text
        expect: Which JSON container the caller wants

    Returns:
        The decoded ``dict``/``list``, or None if every rung failed
    """
    if not raw or not raw.strip():
        return None

    expected: type = dict if expect == "object" else list
    span_re = _OBJECT_RE if expect == "object" else _ARRAY_RE

    value = _loads(raw.strip(), expected)
    if value is not None:
        return value

    stripped = strip_code_fences(raw)
    value = _loads(stripped, expected)
    if value is not None:
        return value

    match = span_re.search(stripped)
    if match:
        value = _loads(match.group(0), expected)
        if value is not None:
            return value

    return None


def _parse_budget_actions(items: Any) -> list[BudgetAction] | None:
    if not isinstance(items, list):
        return None

    actions: list[BudgetAction] = []
    for item in items:
        try:
            actions.append(BudgetAction.model_validate(item))
        except ValidationError as e:
            logger.warning("Dropping malformed budget action %r: %s", item, e.error_count())
    return actions or None


def extract_chat_response(raw: str) -> ChatResponse:
    """Recover ``{message, budget_actions?}`` from a chat completion.

    Args:
        raw: Raw model text

    Returns:
        ChatResponse; falls back to the raw text as the message
    """
    if looks_truncated(raw):
        logger.warning("Model reply looks truncated (%d chars)", len(raw))

    data = decode_json(raw, "object")
    if data is None:
        if "{" in raw:
            logger.warning("Could not decode structured reply, using plain text")
        return ChatResponse(message=raw)

    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        message = raw

    return ChatResponse(
        message=message,
        budget_actions=_parse_budget_actions(data.get("budgetActions", data.get("budget_actions"))),
    )
