"""Parsing helpers for model output and user messages."""

from budgetcoach.parsing.structured import (
    BudgetAction,
    ChatResponse,
    decode_json,
    extract_chat_response,
)
from budgetcoach.parsing.temporal import Period, resolve_period

__all__ = [
    "BudgetAction",
    "ChatResponse",
    "Period",
    "decode_json",
    "extract_chat_response",
    "resolve_period",
]
