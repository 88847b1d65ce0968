"""
RoutePilot Gateway

FastAPI application exposing route telemetry and tunnel control to the
presentation layer.
"""

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from route_constants import verify_weights
from route_engine import RouteService
from route_engine.errors import (
    RouteEngineError,
    NoRoutesAvailable,
    AlreadyRunning,
    AlreadyConnecting,
    AlreadyConnected,
    TransitionInProgress,
    ProvisioningFailure,
    TeardownFailure,
)
from route_engine.ports import MetricsProbe, TunnelProvisioner
from route_probes import StaticProbe, SystemProbe
from system_commands import CommandRunner
from tunnel_control import InMemoryProvisioner, WireGuardProvisioner

from .config import Settings, get_settings


# Engine failures surfaced to HTTP callers
ERROR_STATUS = {
    NoRoutesAvailable: 503,
    AlreadyRunning: 409,
    AlreadyConnecting: 409,
    AlreadyConnected: 409,
    TransitionInProgress: 409,
    ProvisioningFailure: 502,
    TeardownFailure: 502,
}


# =============================================================================
# SERVICE WIRING
# =============================================================================

def build_probe(settings: Settings) -> MetricsProbe:
    """Pick the metrics probe for the configured mode."""
    if settings.probe_mode == "static":
        return StaticProbe.demo()
    return SystemProbe()


def build_provisioner(settings: Settings) -> TunnelProvisioner:
    """Pick the tunnel provisioner for the configured mode."""
    if settings.tunnel_mode == "memory":
        return InMemoryProvisioner()
    return WireGuardProvisioner(
        config_dir=Path(settings.wg_config_dir),
        runner=CommandRunner(),
        peer_public_key=settings.wg_peer_public_key or None,
        port=settings.wg_port,
        dns=settings.wg_dns,
        mtu=settings.wg_mtu,
        use_sudo=settings.wg_use_sudo,
    )


def build_service(settings: Settings) -> RouteService:
    """Construct the route service from settings."""
    return RouteService(
        probe=build_probe(settings),
        provisioner=build_provisioner(settings),
        interval_secs=settings.analysis_interval,
        cache_ttl_secs=settings.cache_ttl,
    )


def configure_logging(settings: Settings) -> None:
    """Route loguru output to stderr at the configured level."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if settings.debug else settings.log_level)


# =============================================================================
# LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings: Settings = app.state.settings

    # Startup
    assert verify_weights(), "Scoring weights must sum to 1"
    logger.info(f"Starting RoutePilot Gateway v{settings.api_version}")
    logger.info(f"Probe mode: {settings.probe_mode}, tunnel mode: {settings.tunnel_mode}")

    if app.state.service is None:
        app.state.service = build_service(settings)

    if settings.autostart_analysis:
        await app.state.service.start_analysis()

    yield

    # Shutdown: tear down an active tunnel before exit
    logger.info("Shutting down RoutePilot Gateway")
    await app.state.service.shutdown()


# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    service: Optional[RouteService] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings, read from the environment by default
        service: Prebuilt route service, built from settings at startup by default
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="Route telemetry, ranking and tunnel control",
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )
    app.state.settings = settings
    app.state.service = service

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    from .routes import health, network, tunnel, events

    app.include_router(health.router, prefix=settings.api_prefix, tags=["Health"])
    app.include_router(network.router, prefix=settings.api_prefix, tags=["Route Analysis"])
    app.include_router(tunnel.router, prefix=settings.api_prefix, tags=["Tunnel"])
    app.include_router(events.router, prefix=settings.api_prefix, tags=["Events"])

    # Exception handlers
    @app.exception_handler(RouteEngineError)
    async def engine_exception_handler(request: Request, exc: RouteEngineError):
        status_code = next(
            (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)),
            500,
        )
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.debug else "An error occurred",
            },
        )

    return app
