# adlaunch/api/deps.py
"""
API dependencies for internal authentication and orchestrator access.
"""
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from adlaunch.core import config
from adlaunch.services import get_orchestrator as build_orchestrator
from adlaunch.services.orchestrator import CampaignOrchestrator


# ────────────────────────────────────────────
# Internal API key
# ────────────────────────────────────────────

def require_internal_api_key(x_internal_api_key: Optional[str] = Header(None)):
    """
    Require the shared internal key on every campaign route.
    Disabled when INTERNAL_API_KEY is not configured (local development).
    """
    expected = config.INTERNAL_API_KEY
    if not expected:
        return
    if not x_internal_api_key or not secrets.compare_digest(x_internal_api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing X-Internal-API-Key header"
        )


# ────────────────────────────────────────────
# Orchestrator
# ────────────────────────────────────────────

def get_orchestrator(platform: str) -> CampaignOrchestrator:
    """Orchestrator for the ``{platform}`` path parameter"""
    return build_orchestrator(platform)
