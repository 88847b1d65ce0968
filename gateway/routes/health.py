"""
Health Check Routes

Endpoints for service health monitoring.
"""

from datetime import datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

from route_constants import scoring_weights, verify_weights


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    timestamp: str
    weights_valid: bool
    weights: dict


class ReadyResponse(BaseModel):
    """Readiness check response."""
    ready: bool
    services: dict


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns service status and the scoring weights in use.
    """
    return HealthResponse(
        status="healthy",
        service="routepilot-gateway",
        version=request.app.state.settings.api_version,
        timestamp=datetime.utcnow().isoformat(),
        weights_valid=verify_weights(),
        weights=scoring_weights(),
    )


@router.get("/ready", response_model=ReadyResponse)
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Reports whether the analysis loop runs and the tunnel tooling is usable.
    """
    service = request.app.state.service
    return ReadyResponse(
        ready=service is not None,
        services={
            "analysis_loop": bool(service and service.analysis.is_running),
            "tunnel_tooling": bool(service and service.provisioner.is_available()),
        },
    )


@router.get("/ping")
async def ping():
    """Simple ping endpoint."""
    return {"pong": True}
