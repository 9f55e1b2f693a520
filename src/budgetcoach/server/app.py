"""FastAPI application factory."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from budgetcoach import __version__
from budgetcoach.coach.engine import CoachEngine
from budgetcoach.config.schema import CoachConfig
from budgetcoach.server.routes import create_router


def create_app(config: CoachConfig, engine: CoachEngine | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config: budgetcoach configuration
        engine: Prebuilt engine (built from config if None)

    Returns:
        Configured FastAPI app
    """
    engine = engine or CoachEngine.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await engine.close()

    app = FastAPI(
        title="budgetcoach",
        description="Financial coaching learning and orchestration engine",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_router(config, engine))

    return app
