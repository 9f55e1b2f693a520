"""Utility functions for the conversation store."""

from budgetcoach.memory.schema import ChatTurn


def estimate_tokens(text: str) -> int:
    """Estimate token count for a piece of text.

    Uses a simple heuristic: ~4 characters per token.

    Args:
        text: Text to estimate tokens for

    Returns:
        Estimated token count
    """
    return len(text or "") // 4


def estimate_total_tokens(turns: list[ChatTurn]) -> int:
    """Total tokens over turns, preferring recorded counts over estimates."""
    return sum(
        turn.token_count if turn.token_count is not None else estimate_tokens(turn.content)
        for turn in turns
    )
