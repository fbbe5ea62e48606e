"""FastAPI application factory.

Creates the app, registers routers, and wires up lifespan events.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.deps import (
    close_components,
    get_reporter,
    get_search_client,
    init_components,
    is_initialized,
)
from src.api.models import HealthResponse
from src.api.routes_admin import router as admin_router
from src.api.routes_analytics import router as analytics_router
from src.api.routes_chat import router as chat_router
from src.observability import ErrorReporter
from src.retrieval.vector_search import VectorSearchClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize clients on startup, close them on shutdown."""
    started_here = False
    if not is_initialized():
        logger.info("Starting FoodRAG API — connecting clients...")
        init_components()
        started_here = True
        logger.info("Startup complete")
    yield
    if started_here:
        await close_components()
    logger.info("Shutting down")


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="FoodRAG",
        description="RAG-powered food and cooking assistant with request governance.",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS: allow frontend dev server during development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_router, prefix="/api")
    app.include_router(analytics_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")

    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    async def health_check(
        search_client: VectorSearchClient | None = Depends(get_search_client),
        reporter: ErrorReporter = Depends(get_reporter),
    ):
        info = await search_client.info() if search_client is not None else None
        return HealthResponse(
            status="ok" if info is not None else "degraded",
            vector_db=info,
            error_counts=reporter.counts(),
        )

    return app


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
app = create_app()
