"""
Route Analysis Routes

Status of the ranked route catalog and control of the analysis loop.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from route_engine import RouteService, Route, StatusSnapshot
from route_engine.scoring import score, score_breakdown


router = APIRouter()


# =============================================================================
# MODELS
# =============================================================================

class MetricsModel(BaseModel):
    """Latest metrics sample for a route."""
    latency_ms: float = Field(ge=0)
    throughput_mbps: float = Field(ge=0)
    stability: float = Field(ge=0, le=1)
    packet_loss: float = Field(ge=0, le=1)
    jitter_ms: float = Field(ge=0)
    error: Optional[str] = None
    measured_at: str


class RouteModel(BaseModel):
    """Candidate route with its score."""
    id: str
    name: str
    kind: str
    endpoint_hint: str
    interface: Optional[str] = None
    address: Optional[str] = None
    gateway: Optional[str] = None
    destination: Optional[str] = None
    ssid: Optional[str] = None
    signal: Optional[int] = None
    security: Optional[str] = None
    speed_mbps: Optional[float] = None
    metrics: Optional[MetricsModel] = None
    last_analyzed_at: Optional[str] = None
    score: float
    score_breakdown: dict


class StatusResponse(BaseModel):
    """Connection state with the ranked routes."""
    connected: bool
    phase: str
    active_route: Optional[RouteModel] = None
    ranked_routes: List[RouteModel]
    analysis_running: bool
    cycle_count: int
    timestamp: str


class AnalysisResponse(BaseModel):
    """Analysis command result."""
    success: bool
    message: str
    running: bool
    route_count: int


class CycleResponse(BaseModel):
    """Manual cycle result."""
    ran: bool
    cycle_count: int
    skipped_cycles: int
    ranked_routes: List[RouteModel]


class CacheEntryModel(BaseModel):
    """Cached metrics sample."""
    route_id: str
    sample: MetricsModel
    age_secs: float
    fresh: bool


# =============================================================================
# HELPERS
# =============================================================================

def get_service(request: Request) -> RouteService:
    """Route service built at application startup."""
    return request.app.state.service


def route_model(route: Route) -> RouteModel:
    """Convert a route to its API model."""
    return RouteModel(
        **route.to_dict(),
        score=score(route.metrics),
        score_breakdown=score_breakdown(route.metrics),
    )


def status_response(snapshot: StatusSnapshot) -> StatusResponse:
    """Convert a status snapshot to its API model."""
    return StatusResponse(
        connected=snapshot.connected,
        phase=snapshot.phase.value,
        active_route=route_model(snapshot.active_route) if snapshot.active_route else None,
        ranked_routes=[route_model(r) for r in snapshot.ranked_routes],
        analysis_running=snapshot.analysis_running,
        cycle_count=snapshot.cycle_count,
        timestamp=snapshot.timestamp.isoformat(),
    )


# =============================================================================
# ROUTES
# =============================================================================

@router.get("/status", response_model=StatusResponse)
async def get_status(service: RouteService = Depends(get_service)):
    """Get connection state and ranked routes."""
    return status_response(service.get_status())


@router.post("/analysis/start", response_model=AnalysisResponse)
async def start_analysis(service: RouteService = Depends(get_service)):
    """
    Start the analysis loop.

    Discovers routes, then re-measures them every interval.
    Returns 409 when the loop is already running.
    """
    await service.start_analysis()
    return AnalysisResponse(
        success=True,
        message="Analysis started",
        running=service.analysis.is_running,
        route_count=len(service.analysis.routes()),
    )


@router.post("/analysis/stop", response_model=AnalysisResponse)
async def stop_analysis(service: RouteService = Depends(get_service)):
    """Stop the analysis loop. Safe to call when already stopped."""
    service.stop_analysis()
    return AnalysisResponse(
        success=True,
        message="Analysis stopped",
        running=service.analysis.is_running,
        route_count=len(service.analysis.routes()),
    )


@router.post("/analysis/run", response_model=CycleResponse)
async def run_cycle(service: RouteService = Depends(get_service)):
    """Run one analysis cycle immediately."""
    ran = await service.run_cycle()
    return CycleResponse(
        ran=ran,
        cycle_count=service.analysis.cycle_count,
        skipped_cycles=service.analysis.skipped_cycles,
        ranked_routes=[route_model(r) for r in service.analysis.routes()],
    )


@router.post("/analysis/rediscover", response_model=List[RouteModel])
async def rediscover(service: RouteService = Depends(get_service)):
    """Re-run route discovery, keeping telemetry of surviving routes."""
    routes = await service.rediscover()
    return [route_model(r) for r in routes]


@router.get("/cache", response_model=List[CacheEntryModel])
async def get_cache(service: RouteService = Depends(get_service)):
    """List cached metrics samples."""
    return [CacheEntryModel(**entry) for entry in service.cache_entries()]


@router.delete("/cache")
async def clear_cache(service: RouteService = Depends(get_service)):
    """Drop all cached metrics so the next cycle re-measures everything."""
    service.clear_cache()
    return {"success": True}


@router.get("/network/stats")
async def network_stats(service: RouteService = Depends(get_service)):
    """Per-interface traffic counters."""
    return {"success": True, "stats": await service.network_stats()}
