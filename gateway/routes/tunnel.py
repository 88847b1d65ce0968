"""
Tunnel Routes

Connect and disconnect the tunnel over the ranked routes.

Engine failures are mapped to HTTP codes by the application's
exception handler: 409 for precondition violations, 503 when no route
is available, 502 when the tunnel collaborator fails.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from route_engine import RouteService

from .network import RouteModel, get_service, route_model


router = APIRouter()


class ConnectResponse(BaseModel):
    """Connect command result."""
    success: bool
    route: RouteModel


class DisconnectResponse(BaseModel):
    """Disconnect command result."""
    success: bool
    message: str


@router.post("/connect/best", response_model=ConnectResponse)
async def connect_best(service: RouteService = Depends(get_service)):
    """Bring the tunnel up over the top-ranked route."""
    route = await service.connect_best()
    return ConnectResponse(success=True, route=route_model(route))


@router.post("/connect/{route_id:path}", response_model=ConnectResponse)
async def connect_route(route_id: str, service: RouteService = Depends(get_service)):
    """Bring the tunnel up over a specific route."""
    route = await service.connect_route(route_id)
    return ConnectResponse(success=True, route=route_model(route))


@router.post("/disconnect", response_model=DisconnectResponse)
async def disconnect(service: RouteService = Depends(get_service)):
    """Tear the tunnel down. Succeeds when nothing is connected."""
    await service.disconnect()
    return DisconnectResponse(success=True, message="Disconnected")


@router.get("/tunnel/status")
async def tunnel_status(service: RouteService = Depends(get_service)):
    """Tunnel collaborator status and traffic counters."""
    return await service.tunnel_status()
