"""Learning pipeline: what the coach remembers about each user.

Components:

- :class:`SessionSummarizer` - Condense sessions, with a fixed fallback record
- :class:`ProfileLearner` - Confidence-weighted profile merging
- :class:`InsightGenerator` - Rule-based spending insights
- :class:`MemoryExtractor` - Importance-scored life events
- :class:`QuestionTracker` - Cross-user question counts and suggestions
- :class:`ContextBuilder` - Prompt context from all of the above
"""

from budgetcoach.learning.context import ContextBuilder
from budgetcoach.learning.insights import InsightGenerator
from budgetcoach.learning.memories import MemoryExtractor
from budgetcoach.learning.profile import ProfileLearner, merge_confidence
from budgetcoach.learning.questions import (
    DEFAULT_SUGGESTIONS,
    QuestionTracker,
    categorize_question,
    hash_question,
)
from budgetcoach.learning.summarizer import SessionSummarizer

__all__ = [
    "DEFAULT_SUGGESTIONS",
    "ContextBuilder",
    "InsightGenerator",
    "MemoryExtractor",
    "ProfileLearner",
    "QuestionTracker",
    "SessionSummarizer",
    "categorize_question",
    "hash_question",
    "merge_confidence",
]
