"""
Static Probe

In-memory metrics probe with scripted answers. Used by the test suite
and by the gateway's simulation mode.
"""

import asyncio
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from route_constants import UNREACHABLE_LATENCY_MS
from route_engine.errors import ProbeFailure, DiscoveryFailure
from route_engine.models import InterfaceInfo, WirelessNetwork, DefaultRoute
from route_engine.ports import MetricsProbe


@dataclass
class PathProfile:
    """Scripted measurements for one probe target."""
    latency_ms: float = UNREACHABLE_LATENCY_MS
    stability: float = 0.0
    packet_loss: float = 1.0
    jitter_ms: float = 0.0


class StaticProbe(MetricsProbe):
    """
    Probe returning configured values.

    Unknown targets look unreachable and unknown interfaces report zero
    throughput, mirroring what the system probe reports for a dead path.
    """

    def __init__(
        self,
        interfaces: Optional[List[InterfaceInfo]] = None,
        wireless: Optional[List[WirelessNetwork]] = None,
        default_routes: Optional[List[DefaultRoute]] = None,
    ):
        self.interfaces = list(interfaces or [])
        self.wireless = list(wireless or [])
        self.default_routes = list(default_routes or [])

        self.profiles: Dict[str, PathProfile] = {}
        self.throughput: Dict[str, float] = {}

        # Failure injection
        self.failing_targets: Set[str] = set()
        self.failing_sources: Set[str] = set()

        # When set, latency probes wait on it before answering
        self.gate: Optional[asyncio.Event] = None

        self.calls: Counter = Counter()

    def add_path(
        self,
        target: str,
        interface: Optional[str] = None,
        latency_ms: float = 10.0,
        throughput_mbps: float = 100.0,
        stability: float = 1.0,
        packet_loss: float = 0.0,
        jitter_ms: float = 0.0,
    ) -> None:
        """Script the measurements for a target and its interface."""
        self.profiles[target] = PathProfile(
            latency_ms=latency_ms,
            stability=stability,
            packet_loss=packet_loss,
            jitter_ms=jitter_ms,
        )
        if interface:
            self.throughput[interface] = throughput_mbps

    def _profile(self, target: str, kind: str) -> PathProfile:
        self.calls[kind] += 1
        if target in self.failing_targets:
            raise ProbeFailure(target, "scripted failure")
        return self.profiles.get(target, PathProfile())

    async def probe_latency(self, target: str) -> float:
        if self.gate is not None:
            await self.gate.wait()
        return self._profile(target, "latency").latency_ms

    async def probe_throughput(self, interface: str) -> float:
        self.calls["throughput"] += 1
        return self.throughput.get(interface, 0.0)

    async def probe_stability(self, target: str) -> float:
        return self._profile(target, "stability").stability

    async def probe_packet_loss(self, target: str) -> float:
        return self._profile(target, "packet_loss").packet_loss

    async def probe_jitter(self, target: str) -> float:
        return self._profile(target, "jitter").jitter_ms

    def _check_source(self, source: str) -> None:
        if source in self.failing_sources:
            raise DiscoveryFailure(source, "scripted failure")

    async def list_interfaces(self) -> List[InterfaceInfo]:
        self._check_source("interfaces")
        return list(self.interfaces)

    async def list_wireless_networks(self) -> List[WirelessNetwork]:
        self._check_source("wireless")
        return list(self.wireless)

    async def list_default_routes(self) -> List[DefaultRoute]:
        self._check_source("default-routes")
        return list(self.default_routes)

    async def network_stats(self) -> Dict[str, Any]:
        return {
            iface.name: {"bytes_sent": 0, "bytes_recv": 0, "speed_mbps": iface.speed_mbps}
            for iface in self.interfaces
        }

    # =========================================================================
    # SIMULATION DATA
    # =========================================================================

    @classmethod
    def demo(cls) -> "StaticProbe":
        """A probe describing a typical laptop with wired, Wi-Fi and LTE paths."""
        probe = cls(
            interfaces=[
                InterfaceInfo(name="lo", kind="wired", address="127.0.0.1", is_loopback=True),
                InterfaceInfo(name="eth0", kind="wired", address="192.168.1.20",
                              mac="02:00:00:00:00:01", speed_mbps=1000),
                InterfaceInfo(name="wlan0", kind="wireless", address="192.168.50.14",
                              mac="02:00:00:00:00:02", speed_mbps=300),
                InterfaceInfo(name="wwan0", kind="wired", address="10.64.12.7",
                              speed_mbps=50),
                InterfaceInfo(name="eth1", kind="wired", is_up=False),
            ],
            wireless=[
                WirelessNetwork(ssid="HomeNet-5G", signal=82, security="WPA2", interface="wlan0"),
                WirelessNetwork(ssid="Cafe Guest", signal=41, security="", interface="wlan0"),
                WirelessNetwork(ssid="", signal=20, security="WPA2", interface="wlan0"),
            ],
            default_routes=[
                DefaultRoute(destination="0.0.0.0/0", gateway="192.168.1.1", interface="eth0"),
                DefaultRoute(destination="0.0.0.0/0", gateway="192.168.50.1", interface="wlan0"),
            ],
        )

        probe.add_path("192.168.1.20", "eth0", latency_ms=4, throughput_mbps=940,
                       stability=0.98, packet_loss=0.0, jitter_ms=0.4)
        probe.add_path("192.168.1.1", "eth0", latency_ms=6, throughput_mbps=940,
                       stability=0.97, packet_loss=0.0, jitter_ms=0.6)
        probe.add_path("192.168.50.14", "wlan0", latency_ms=18, throughput_mbps=210,
                       stability=0.85, packet_loss=0.01, jitter_ms=3.5)
        probe.add_path("192.168.50.1", "wlan0", latency_ms=21, throughput_mbps=210,
                       stability=0.82, packet_loss=0.01, jitter_ms=4.2)
        probe.add_path("10.64.12.7", "wwan0", latency_ms=48, throughput_mbps=35,
                       stability=0.6, packet_loss=0.03, jitter_ms=12.0)
        # Routes without a gateway measure path quality against the default target
        probe.add_path("8.8.8.8", None, latency_ms=32, stability=0.7,
                       packet_loss=0.02, jitter_ms=6.0)
        return probe
