"""
Health Check Endpoints.
System health and readiness checks.
"""

from datetime import datetime
from fastapi import APIRouter, Request

from gadget_scout.config import get_settings

router = APIRouter()
settings = get_settings()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.APP_VERSION
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """
    Readiness check - verifies the catalog is loaded and the chat model is configured.

    Voice and embedding availability are reported but do not gate readiness.
    """
    state = request.app.state

    checks = {
        "catalog": hasattr(state, "catalog") and len(state.catalog) > 0,
        "llm_service": hasattr(state, "llm_service") and state.llm_service.is_configured,
        "orchestrator": hasattr(state, "orchestrator"),
        "session_manager": hasattr(state, "session_manager"),
    }

    all_ready = all(checks.values())

    response = {
        "status": "ready" if all_ready else "not_ready",
        "checks": checks,
        "retrieval": state.retriever.kind if hasattr(state, "retriever") else None,
        "voice_available": getattr(state, "live_service", None) is not None and state.live_service.is_configured,
        "timestamp": datetime.utcnow().isoformat()
    }

    if hasattr(state, "session_manager"):
        response["active_sessions"] = await state.session_manager.get_active_session_count()

    return response
