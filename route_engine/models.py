"""
Route Engine Models

Data models for route telemetry, ranking and the tunnel connection state.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum

from route_constants import DEFAULT_PROBE_TARGET, LOOPBACK_ENDPOINT


class RouteKind(str, Enum):
    """Where a candidate route was discovered."""
    PHYSICAL_INTERFACE = "physical-interface"
    WIFI = "wifi"
    GATEWAY_ROUTE = "gateway-route"


class ConnectionPhase(str, Enum):
    """Tunnel lifecycle phase."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


# =============================================================================
# RAW ENUMERATION (what the probe port reports)
# =============================================================================

@dataclass(frozen=True)
class InterfaceInfo:
    """A network interface as reported by the operating system."""
    name: str
    kind: str = "wired"
    address: Optional[str] = None
    mac: Optional[str] = None
    speed_mbps: float = 0.0
    is_up: bool = True
    is_loopback: bool = False


@dataclass(frozen=True)
class WirelessNetwork:
    """A visible wireless network."""
    ssid: str
    signal: int = 0
    security: str = ""
    interface: Optional[str] = None


@dataclass(frozen=True)
class DefaultRoute:
    """A configured default-gateway route."""
    destination: str
    gateway: str
    interface: str


# =============================================================================
# TELEMETRY
# =============================================================================

@dataclass(frozen=True)
class MetricsSample:
    """
    Result of one probe cycle for a route.

    When `error` is set the numeric fields carry no meaning and the
    sample scores zero.
    """
    latency_ms: float = 0.0
    throughput_mbps: float = 0.0
    stability: float = 0.0
    packet_loss: float = 0.0
    jitter_ms: float = 0.0
    error: Optional[str] = None
    measured_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def failed(cls, reason: str) -> "MetricsSample":
        """Build the sample recorded for a route whose probe failed."""
        return cls(error=reason or "probe failed")

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "latency_ms": self.latency_ms,
            "throughput_mbps": self.throughput_mbps,
            "stability": self.stability,
            "packet_loss": self.packet_loss,
            "jitter_ms": self.jitter_ms,
            "error": self.error,
            "measured_at": self.measured_at.isoformat(),
        }


@dataclass(frozen=True)
class Route:
    """
    A candidate network path considered for tunneling.

    Routes are value objects. The analysis loop attaches telemetry by
    producing copies with `metrics` and `last_analyzed_at` filled in.
    """
    id: str
    name: str
    kind: RouteKind
    endpoint_hint: str = LOOPBACK_ENDPOINT

    # Descriptive details from discovery
    interface: Optional[str] = None
    address: Optional[str] = None
    gateway: Optional[str] = None
    destination: Optional[str] = None
    ssid: Optional[str] = None
    signal: Optional[int] = None
    security: Optional[str] = None
    speed_mbps: Optional[float] = None

    # Telemetry
    metrics: Optional[MetricsSample] = None
    last_analyzed_at: Optional[datetime] = None

    @property
    def probe_target(self) -> str:
        """Address pinged for latency: gateway, else own address, else the default."""
        return self.gateway or self.address or DEFAULT_PROBE_TARGET

    @property
    def path_target(self) -> str:
        """Address stability, loss and jitter are measured against."""
        return self.gateway or DEFAULT_PROBE_TARGET

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "endpoint_hint": self.endpoint_hint,
            "interface": self.interface,
            "address": self.address,
            "gateway": self.gateway,
            "destination": self.destination,
            "ssid": self.ssid,
            "signal": self.signal,
            "security": self.security,
            "speed_mbps": self.speed_mbps,
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "last_analyzed_at": (
                self.last_analyzed_at.isoformat() if self.last_analyzed_at else None
            ),
        }


# =============================================================================
# CONNECTION STATE
# =============================================================================

@dataclass(frozen=True)
class ConnectionState:
    """Connection lifecycle value. `route` is set only while connected."""
    phase: ConnectionPhase = ConnectionPhase.DISCONNECTED
    route: Optional[Route] = None

    @property
    def connected(self) -> bool:
        return self.phase == ConnectionPhase.CONNECTED


@dataclass
class StatusSnapshot:
    """
    Status published to the presentation layer.

    Returned by `RouteService.get_status()` and pushed to subscribers
    after each analysis cycle and each state transition.
    """
    connected: bool
    phase: ConnectionPhase
    active_route: Optional[Route]
    ranked_routes: List[Route]
    analysis_running: bool = False
    cycle_count: int = 0
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        # scoring imports this module
        from .scoring import score

        return {
            "connected": self.connected,
            "phase": self.phase.value,
            "active_route": self.active_route.to_dict() if self.active_route else None,
            "ranked_routes": [
                {**route.to_dict(), "score": score(route.metrics)}
                for route in self.ranked_routes
            ],
            "analysis_running": self.analysis_running,
            "cycle_count": self.cycle_count,
            "timestamp": self.timestamp.isoformat(),
        }
