"""Health check endpoint.

Always returns 200 so load balancers keep routing. Reports whether the
Gemini credential is configured without calling the API.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter

from lumina.config import settings

logger = structlog.get_logger()

router = APIRouter(tags=["health"])

VERSION = "0.1.0"


def _check_gemini() -> str:
    """Whether a Gemini API key is available."""
    if settings.google_ai_api_key:
        return "configured"
    logger.debug("health_gemini_key_missing")
    return "missing"


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint — confirms the API process is alive."""
    return {
        "status": "ok",
        "version": VERSION,
        "environment": settings.environment,
        "gemini": _check_gemini(),
    }
