"""
Health check and model status endpoints
"""

import logging
import time
from typing import List

from fastapi import APIRouter, HTTPException, Request

from genedash.schemas import HealthResponse, ModelStatus

logger = logging.getLogger(__name__)
router = APIRouter()

# Store start time for uptime calculation
_start_time = time.time()


@router.get("/model-status", response_model=List[ModelStatus])
async def model_status(api_request: Request):
    """Configured model, other installed models and the reference table"""
    ai_service = api_request.app.state.genetic_ai_service
    try:
        return await ai_service.model_status()
    except Exception as e:
        logger.error(f"Model status error: {e}")
        raise HTTPException(status_code=500, detail="Failed to get model status")


@router.get("/health", response_model=HealthResponse)
async def health_check(api_request: Request):
    """Health check endpoint"""
    settings = api_request.app.state.settings
    llm_client = api_request.app.state.llm_client
    broker = api_request.app.state.progress_broker

    llm_healthy = await llm_client.check_health()

    return HealthResponse(
        success=True,
        status="healthy" if llm_healthy else "degraded",
        version=settings.VERSION,
        services={
            "llm": {
                "status": "healthy" if llm_healthy else "unavailable",
                "provider": llm_client.provider,
                "model": llm_client.model_name,
                "reference_fallback": settings.REFERENCE_FALLBACK,
            },
            "storage": {"status": "healthy", "backend": api_request.app.state.storage.engine.url.get_backend_name()},
            "progress": {"status": "healthy", "connections": broker.connection_count()},
            "api": {"status": "healthy"},
        },
        uptime=time.time() - _start_time,
    )
