"""
FastAPI application factory for the genetic marker analysis dashboard
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from genedash.api.endpoints import analysis, chat, health, progress
from genedash.core.config import Settings, settings as default_settings
from genedash.services import AnalysisPipeline, GeneticAIService, LLMClient, ProgressBroker, Storage

logger = logging.getLogger(__name__)


def create_app(settings: Settings = default_settings, llm_client: Optional[LLMClient] = None) -> FastAPI:
    """Build the application; pass llm_client to replace the configured backend"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize services on startup using lifespan pattern"""
        logger.info(f"🔄 Starting {settings.PROJECT_NAME} v{settings.VERSION}")

        storage = Storage(settings.DATABASE_URL)
        storage.create_tables()

        client = llm_client or LLMClient.from_settings(settings)
        logger.info(f"  - LLM Provider: {client.provider}")
        logger.info(f"  - Model Name: {client.model_name}")
        if not await client.check_health():
            if settings.REFERENCE_FALLBACK:
                logger.warning("⚠️ LLM not reachable, using the reference table where possible")
            else:
                logger.warning("⚠️ LLM not reachable, markers will be reported as pending")

        ai_service = GeneticAIService(client, settings)
        broker = ProgressBroker(settings.PROGRESS_QUEUE_SIZE, settings.PROGRESS_KEEPALIVE_SECONDS)

        app.state.settings = settings
        app.state.storage = storage
        app.state.llm_client = client
        app.state.genetic_ai_service = ai_service
        app.state.progress_broker = broker
        app.state.pipeline = AnalysisPipeline.from_settings(ai_service, storage, broker, settings)
        logger.info("✅ Services initialized")

        yield  # Application is running

        storage.dispose()
        logger.info("🔌 Services shut down")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=settings.PROJECT_DESCRIPTION,
        version=settings.VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_api_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        if request.url.path.startswith(settings.API_PREFIX):
            duration_ms = (time.perf_counter() - started) * 1000
            logger.info(f"{request.method} {request.url.path} {response.status_code} in {duration_ms:.0f}ms")
        return response

    app.include_router(analysis.router, prefix=settings.API_PREFIX, tags=["Analysis"])
    app.include_router(progress.router, prefix=settings.API_PREFIX, tags=["Progress"])
    app.include_router(chat.router, prefix=settings.API_PREFIX, tags=["Chat"])
    app.include_router(health.router, prefix=settings.API_PREFIX, tags=["Health"])

    @app.get("/")
    async def root():
        """Root endpoint with API information"""
        prefix = settings.API_PREFIX
        return {
            "success": True,
            "message": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "endpoints": {
                "health": f"{prefix}/health",
                "upload": f"{prefix}/genetic-analysis",
                "progress": f"{prefix}/progress/{{progress_id}}",
                "overview": f"{prefix}/analysis-overview",
                "history": f"{prefix}/analysis-history",
                "analysis": f"{prefix}/analysis/{{analysis_id}}",
                "export": f"{prefix}/export/{{analysis_id}}",
                "chat": f"{prefix}/chat",
                "models": f"{prefix}/model-status",
                "docs": "/docs",
            },
        }

    return app
