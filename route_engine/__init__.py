"""
Route Engine - Telemetry, Ranking and Tunnel Lifecycle

Measures candidate network paths, ranks them by a weighted score and
drives a tunnel over the best one.
"""

from .models import (
    Route,
    RouteKind,
    MetricsSample,
    ConnectionPhase,
    ConnectionState,
    StatusSnapshot,
)
from .errors import (
    RouteEngineError,
    ProbeFailure,
    DiscoveryFailure,
    NoRoutesAvailable,
    AlreadyRunning,
    AlreadyConnecting,
    AlreadyConnected,
    TransitionInProgress,
    ProvisioningFailure,
    TeardownFailure,
)
from .scoring import score
from .cache import MetricsCache
from .catalog import RouteCatalogBuilder
from .analysis import AnalysisLoop
from .selector import select_best
from .lifecycle import ConnectionLifecycleManager
from .ports import MetricsProbe, TunnelProvisioner
from .scheduler import AsyncioTicker, ManualTicker
from .service import RouteService

__all__ = [
    # Models
    "Route",
    "RouteKind",
    "MetricsSample",
    "ConnectionPhase",
    "ConnectionState",
    "StatusSnapshot",
    # Errors
    "RouteEngineError",
    "ProbeFailure",
    "DiscoveryFailure",
    "NoRoutesAvailable",
    "AlreadyRunning",
    "AlreadyConnecting",
    "AlreadyConnected",
    "TransitionInProgress",
    "ProvisioningFailure",
    "TeardownFailure",
    # Components
    "score",
    "MetricsCache",
    "RouteCatalogBuilder",
    "AnalysisLoop",
    "select_best",
    "ConnectionLifecycleManager",
    "MetricsProbe",
    "TunnelProvisioner",
    "AsyncioTicker",
    "ManualTicker",
    "RouteService",
]
