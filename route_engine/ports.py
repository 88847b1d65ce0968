"""
Collaborator Ports

Abstract interfaces the engine depends on:
- MetricsProbe: measure and enumerate network paths
- TunnelProvisioner: bring a tunnel up or down over a route

Implementations own every platform detail and are injected.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from .models import InterfaceInfo, WirelessNetwork, DefaultRoute, Route


class MetricsProbe(ABC):
    """Abstract base class for metrics probes."""

    # -------------------------------------------------------------------------
    # Measurements
    # -------------------------------------------------------------------------

    @abstractmethod
    async def probe_latency(self, target: str) -> float:
        """Round-trip latency in ms, or UNREACHABLE_LATENCY_MS."""
        pass

    @abstractmethod
    async def probe_throughput(self, interface: str) -> float:
        """Estimated available bandwidth on an interface in Mbps."""
        pass

    @abstractmethod
    async def probe_stability(self, target: str) -> float:
        """Stability in [0, 1] derived from latency variance."""
        pass

    @abstractmethod
    async def probe_packet_loss(self, target: str) -> float:
        """Packet loss ratio in [0, 1]."""
        pass

    @abstractmethod
    async def probe_jitter(self, target: str) -> float:
        """Mean absolute difference between consecutive latencies in ms."""
        pass

    # -------------------------------------------------------------------------
    # Enumeration
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_interfaces(self) -> List[InterfaceInfo]:
        """List network interfaces."""
        pass

    @abstractmethod
    async def list_wireless_networks(self) -> List[WirelessNetwork]:
        """List visible wireless networks."""
        pass

    @abstractmethod
    async def list_default_routes(self) -> List[DefaultRoute]:
        """List configured default-gateway routes."""
        pass

    async def network_stats(self) -> Dict[str, Any]:
        """General per-interface statistics. Optional."""
        return {}


class TunnelProvisioner(ABC):
    """
    Abstract base class for tunnel provisioning.

    `provision` and `teardown` raise ProvisioningFailure / TeardownFailure
    when the tunnel could not be brought up or down.
    """

    @abstractmethod
    async def provision(self, route: Route) -> None:
        """Bring up a tunnel over the route."""
        pass

    @abstractmethod
    async def teardown(self) -> None:
        """Bring down the active tunnel."""
        pass

    @abstractmethod
    async def teardown_all(self) -> None:
        """Bring down every tunnel this provisioner knows of. Never raises."""
        pass

    async def status(self) -> Dict[str, Any]:
        """Collaborator-specific tunnel status. Optional."""
        return {}

    def is_available(self) -> bool:
        """Whether the tunneling tooling is usable on this host."""
        return True
