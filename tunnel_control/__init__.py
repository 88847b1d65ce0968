"""
RoutePilot Tunnel Control

Implementations of the tunnel provisioning port:
- WireGuardProvisioner: wg-quick over the selected route
- InMemoryProvisioner: recorded calls for tests and simulation
"""

from route_engine.ports import TunnelProvisioner
from .memory import InMemoryProvisioner
from .wireguard import WireGuardProvisioner

__all__ = ["TunnelProvisioner", "InMemoryProvisioner", "WireGuardProvisioner"]
