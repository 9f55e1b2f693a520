"""budgetcoach - learning and orchestration engine for a personal-finance coach.

budgetcoach turns a free-text user message into a grounded LLM call with
multi-provider fallback, a resiliently parsed structured reply, and a
continuously updated model of the user.

Key modules:

- :mod:`budgetcoach.llm` - Provider backends (Gemini, OpenAI-compatible, Anthropic) and the fallback gateway
- :mod:`budgetcoach.parsing` - Best-effort structured decoding and month/year resolution
- :mod:`budgetcoach.memory` - SQLite persistence and the conversation store
- :mod:`budgetcoach.learning` - Profile, memory, summary, insight and suggestion learners
- :mod:`budgetcoach.coach` - Per-turn orchestration and background enrichment
- :mod:`budgetcoach.server` - HTTP surface (FastAPI)
"""

__version__ = "0.1.0"
