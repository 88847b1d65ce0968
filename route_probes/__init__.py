"""
RoutePilot Probes

Implementations of the metrics probe port:
- SystemProbe: ping, ip route, nmcli and psutil counters
- StaticProbe: scripted in-memory answers for tests and simulation
"""

from route_engine.ports import MetricsProbe
from .static import StaticProbe, PathProfile
from .system import SystemProbe

__all__ = ["MetricsProbe", "StaticProbe", "PathProfile", "SystemProbe"]
