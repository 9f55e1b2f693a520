"""API routes for the budgetcoach server."""

from typing import Any

from fastapi import APIRouter, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from budgetcoach.coach.engine import (
    LEARNED_KINDS,
    ChatReply,
    ChatRequest,
    CoachEngine,
    ValidationError,
)
from budgetcoach.config.schema import CoachConfig, ProviderName
from budgetcoach.llm.gateway import ProviderError
from budgetcoach.memory.schema import Insight


class ChatBody(BaseModel):
    """Request body for chat endpoint."""

    message: str = ""
    session_id: str | None = None
    provider: ProviderName | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    providers: list[str]
    currency: str
    version: str


class LearnedStateResponse(BaseModel):
    """One kind of learned state."""

    kind: str
    data: Any


class HelpfulBody(BaseModel):
    """Request body for upvoting a question."""

    question: str


class TrendingQuestion(BaseModel):
    question: str
    category: str
    ask_count: int
    helpful_score: int


def create_router(config: CoachConfig, engine: CoachEngine) -> APIRouter:
    """Create API router bound to a coaching engine.

    Args:
        config: budgetcoach configuration
        engine: Engine that serves every route

    Returns:
        Configured API router
    """
    router = APIRouter()

    def require_user(x_user_id: str | None) -> str:
        if not x_user_id or not x_user_id.strip():
            raise HTTPException(status_code=401, detail="Not authenticated")
        return x_user_id.strip()

    @router.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        from budgetcoach import __version__

        return HealthResponse(
            status="healthy",
            providers=[
                pid for pid, backend in engine.gateway.backends.items() if backend.available
            ],
            currency=config.currency,
            version=__version__,
        )

    @router.post("/chat", response_model=ChatReply)
    async def chat(body: ChatBody, x_user_id: str | None = Header(default=None)) -> Any:
        """Handle one chat turn for the calling user."""
        user_id = require_user(x_user_id)
        request = ChatRequest(
            user_id=user_id,
            session_id=body.session_id,
            message=body.message,
            provider_override=body.provider,
        )
        try:
            reply = await engine.handle_turn(request)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except ProviderError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

        if reply.error == "rate_limit":
            return JSONResponse(status_code=429, content=reply.model_dump(mode="json"))
        return reply

    @router.get("/learned/{kind}", response_model=LearnedStateResponse)
    async def learned(kind: str, x_user_id: str | None = Header(default=None)) -> Any:
        """List one kind of learned state for the calling user."""
        user_id = require_user(x_user_id)
        if kind not in LEARNED_KINDS:
            raise HTTPException(status_code=404, detail=f"Unknown kind: {kind}")

        data = engine.list_learned_state(user_id, kind)
        if isinstance(data, list):
            data = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in data]
        elif isinstance(data, BaseModel):
            data = data.model_dump(mode="json")
        return LearnedStateResponse(kind=kind, data=data)

    @router.delete("/sessions/{session_id}")
    async def delete_session(
        session_id: str, x_user_id: str | None = Header(default=None)
    ) -> dict[str, Any]:
        """Delete one of the caller's sessions and its summary."""
        user_id = require_user(x_user_id)
        if not engine.delete_session(user_id, session_id):
            raise HTTPException(status_code=404, detail="Session not found")
        return {"deleted": session_id}

    @router.post("/insights/generate", response_model=list[Insight])
    async def generate_insights(x_user_id: str | None = Header(default=None)) -> list[Insight]:
        """Run the insight rules over the caller's recent transactions."""
        return engine.insights.generate(require_user(x_user_id))

    @router.post("/insights/{insight_id}/acknowledge")
    async def acknowledge_insight(
        insight_id: int, x_user_id: str | None = Header(default=None)
    ) -> dict[str, Any]:
        if not engine.insights.acknowledge(insight_id, require_user(x_user_id)):
            raise HTTPException(status_code=404, detail="Insight not found")
        return {"id": insight_id, "acknowledged": True}

    @router.post("/insights/{insight_id}/dismiss")
    async def dismiss_insight(
        insight_id: int, x_user_id: str | None = Header(default=None)
    ) -> dict[str, Any]:
        if not engine.insights.dismiss(insight_id, require_user(x_user_id)):
            raise HTTPException(status_code=404, detail="Insight not found")
        return {"id": insight_id, "dismissed": True}

    @router.post("/questions/helpful")
    async def mark_helpful(
        body: HelpfulBody, x_user_id: str | None = Header(default=None)
    ) -> dict[str, Any]:
        require_user(x_user_id)
        return {"updated": engine.questions.mark_helpful(body.question)}

    @router.get("/questions/trending", response_model=list[TrendingQuestion])
    async def trending(limit: int = 10) -> list[TrendingQuestion]:
        """Questions asked most in the last week, across all users."""
        return [
            TrendingQuestion(
                question=q.question,
                category=q.category,
                ask_count=q.ask_count,
                helpful_score=q.helpful_score,
            )
            for q in engine.questions.trending(limit)
        ]

    return router
