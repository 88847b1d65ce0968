"""
Route Telemetry Constants for RoutePilot Services

Shared numbers used across the engine for:
- Route scoring weights
- Cache freshness window
- Analysis interval
- Probe defaults
"""

from typing import Dict

# =============================================================================
# SCORING
# =============================================================================

# Latency and throughput carry equal weight; stability breaks ties.
LATENCY_WEIGHT: float = 0.4
THROUGHPUT_WEIGHT: float = 0.4
STABILITY_WEIGHT: float = 0.2

# Component scores are clamped to this ceiling
MAX_COMPONENT_SCORE: float = 100.0

# Throughput is scored as Mbps / divisor (1000 Mbps saturates at 100)
THROUGHPUT_DIVISOR: float = 10.0

# =============================================================================
# TIMING
# =============================================================================

# Analysis loop period
ANALYSIS_INTERVAL_SECS: float = 5.0

# Metrics cache freshness window
CACHE_TTL_SECS: float = 30.0

# =============================================================================
# PROBING
# =============================================================================

# Reported latency when the target does not answer
UNREACHABLE_LATENCY_MS: float = 999.0

# Target used when a route has neither gateway nor address
DEFAULT_PROBE_TARGET: str = "8.8.8.8"

# Tunnel endpoint used when a route has neither gateway nor address
LOOPBACK_ENDPOINT: str = "127.0.0.1"

# Interface speed assumed when the OS does not report one
DEFAULT_INTERFACE_SPEED_MBPS: float = 100.0

# Ping counts per measurement
LATENCY_PING_COUNT: int = 3
STABILITY_SAMPLE_COUNT: int = 5
PACKET_LOSS_PING_COUNT: int = 10
JITTER_SAMPLE_COUNT: int = 10

# =============================================================================
# TUNNEL
# =============================================================================

WIREGUARD_PORT: int = 51820
WIREGUARD_MTU: int = 1420
WIREGUARD_KEEPALIVE: int = 25
WIREGUARD_DNS: str = "8.8.8.8, 1.1.1.1"


def scoring_weights() -> Dict[str, float]:
    """Get the scoring weights keyed by component."""
    return {
        "latency": LATENCY_WEIGHT,
        "throughput": THROUGHPUT_WEIGHT,
        "stability": STABILITY_WEIGHT,
    }


def verify_weights() -> bool:
    """Verify the scoring weights sum to one."""
    return abs(LATENCY_WEIGHT + THROUGHPUT_WEIGHT + STABILITY_WEIGHT - 1.0) < 1e-9
