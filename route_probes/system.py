"""
System Probe

Production metrics probe. Shells out to `ping`, `ip route` / `route print`
and `nmcli`, and reads interface counters with psutil.
"""

import re
import sys
import asyncio
import socket
from typing import Any, Dict, List, Optional

import numpy as np
import psutil
from loguru import logger

from route_constants import (
    UNREACHABLE_LATENCY_MS,
    DEFAULT_INTERFACE_SPEED_MBPS,
    LATENCY_PING_COUNT,
    STABILITY_SAMPLE_COUNT,
    PACKET_LOSS_PING_COUNT,
    JITTER_SAMPLE_COUNT,
)
from route_engine.errors import ProbeFailure
from route_engine.models import InterfaceInfo, WirelessNetwork, DefaultRoute
from route_engine.ports import MetricsProbe
from system_commands import CommandRunner, CommandError


# Interface name prefixes used to tag the interface kind
WIRELESS_PREFIXES = ("wl", "wlan", "wifi")
VIRTUAL_PREFIXES = ("wg", "tun", "tap", "utun", "docker", "veth", "br", "virbr", "vmnet")

DEFAULT_DESTINATION = "0.0.0.0/0"

_PING_TIME_RE = re.compile(r"time[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)
_PING_LOSS_RE = re.compile(r"([\d.]+)%\s*(?:packet\s+)?loss", re.IGNORECASE)


# =============================================================================
# PARSERS
# =============================================================================

def parse_ping_times(output: str) -> List[float]:
    """Extract per-reply round-trip times (ms) from ping output."""
    return [float(match) for match in _PING_TIME_RE.findall(output)]


def parse_packet_loss(output: str) -> Optional[float]:
    """Extract the packet loss ratio (0-1) from a ping summary."""
    match = _PING_LOSS_RE.search(output)
    if not match:
        return None
    return min(1.0, float(match.group(1)) / 100.0)


def parse_linux_routes(output: str) -> List[DefaultRoute]:
    """
    Parse `ip route show` output.

    Only `default via <gateway> dev <iface>` lines are kept.
    """
    routes = []
    for line in output.splitlines():
        parts = line.split()
        if not parts or parts[0] != "default":
            continue
        if "via" not in parts or "dev" not in parts:
            continue

        via = parts.index("via")
        dev = parts.index("dev")
        if via + 1 >= len(parts) or dev + 1 >= len(parts):
            continue

        routes.append(DefaultRoute(
            destination=DEFAULT_DESTINATION,
            gateway=parts[via + 1],
            interface=parts[dev + 1],
        ))
    return routes


def parse_windows_routes(output: str) -> List[DefaultRoute]:
    """
    Parse `route print -4` output.

    Default routes are the rows with network destination and netmask
    both 0.0.0.0.
    """
    routes = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 4:
            continue
        if parts[0] == "0.0.0.0" and parts[1] == "0.0.0.0" and parts[2] != "On-link":
            routes.append(DefaultRoute(
                destination=DEFAULT_DESTINATION,
                gateway=parts[2],
                interface=parts[3],
            ))
    return routes


def parse_nmcli_wifi(output: str) -> List[WirelessNetwork]:
    """
    Parse `nmcli -t -f SSID,SIGNAL,SECURITY,DEVICE dev wifi list`.

    Terse mode escapes literal colons as `\\:`.
    """
    networks = []
    for line in output.splitlines():
        if not line.strip():
            continue
        fields = [f.replace("\\:", ":") for f in re.split(r"(?<!\\):", line)]
        if len(fields) < 4:
            continue

        ssid, signal, security, device = fields[:4]
        if not ssid:
            continue
        try:
            strength = int(signal)
        except ValueError:
            strength = 0

        networks.append(WirelessNetwork(
            ssid=ssid,
            signal=strength,
            security=security,
            interface=device or None,
        ))
    return networks


def stability_from_latencies(samples: List[float]) -> float:
    """
    Stability in [0, 1]: 1 - variance / mean of latency samples.
    """
    if not samples:
        return 0.0
    values = np.asarray(samples, dtype=float)
    mean = float(values.mean())
    if mean <= 0:
        return 1.0
    variance = float(values.var())
    return float(min(1.0, max(0.0, 1.0 - variance / mean)))


def jitter_from_latencies(samples: List[float]) -> float:
    """Mean absolute deviation between consecutive latency samples."""
    if len(samples) < 2:
        return 0.0
    return float(np.abs(np.diff(np.asarray(samples, dtype=float))).mean())


def classify_interface(name: str) -> str:
    """Guess the interface kind from its name."""
    lowered = name.lower()
    if lowered.startswith(WIRELESS_PREFIXES):
        return "wireless"
    if lowered.startswith(VIRTUAL_PREFIXES):
        return "virtual"
    return "wired"


# =============================================================================
# PROBE
# =============================================================================

class SystemProbe(MetricsProbe):
    """
    Metrics probe backed by the host operating system.

    Measurements that cannot run at all (missing `ping`, timeouts) raise
    ProbeFailure; an unreachable target is reported as a value, not an error.
    """

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        ping_timeout_secs: float = 3.0,
        throughput_window_secs: float = 1.0,
    ):
        """
        Initialize the system probe.

        Args:
            runner: Command runner, shared with other collaborators
            ping_timeout_secs: Per-reply wait passed to ping
            throughput_window_secs: Counter sampling window for throughput
        """
        self.runner = runner or CommandRunner()
        self.ping_timeout = ping_timeout_secs
        self.throughput_window = throughput_window_secs

    async def _ping(self, target: str, count: int, interval: float = 0.2) -> str:
        """Run ping and return its stdout."""
        if sys.platform == "win32":
            argv = ["ping", "-n", str(count), "-w", str(int(self.ping_timeout * 1000)), target]
        else:
            argv = ["ping", "-c", str(count), "-i", str(interval),
                    "-W", str(int(self.ping_timeout)), target]

        # A generous ceiling: every reply may wait the full timeout
        timeout = count * (self.ping_timeout + interval) + 2.0
        try:
            _, out, _ = await self.runner.run(*argv, timeout=timeout)
        except CommandError as e:
            raise ProbeFailure(target, str(e))
        return out

    async def probe_latency(self, target: str) -> float:
        times = parse_ping_times(await self._ping(target, LATENCY_PING_COUNT))
        if not times:
            return UNREACHABLE_LATENCY_MS
        return sum(times) / len(times)

    async def probe_throughput(self, interface: str) -> float:
        stats = psutil.net_if_stats().get(interface)
        before = psutil.net_io_counters(pernic=True).get(interface)
        if stats is None or before is None:
            logger.debug(f"No counters for interface {interface}")
            return 0.0

        speed = float(stats.speed) if stats.speed else DEFAULT_INTERFACE_SPEED_MBPS

        await asyncio.sleep(self.throughput_window)
        after = psutil.net_io_counters(pernic=True).get(interface)
        if after is None:
            return 0.0

        rx_bits_per_sec = (after.bytes_recv - before.bytes_recv) * 8 / self.throughput_window
        utilization = rx_bits_per_sec / (speed * 1_000_000)
        return max(0.0, speed * (1.0 - utilization))

    async def probe_stability(self, target: str) -> float:
        times = parse_ping_times(await self._ping(target, STABILITY_SAMPLE_COUNT))
        # Lost replies count as unreachable samples
        missing = STABILITY_SAMPLE_COUNT - len(times)
        samples = times + [UNREACHABLE_LATENCY_MS] * max(0, missing)
        return stability_from_latencies(samples)

    async def probe_packet_loss(self, target: str) -> float:
        out = await self._ping(target, PACKET_LOSS_PING_COUNT)
        loss = parse_packet_loss(out)
        if loss is None:
            replies = len(parse_ping_times(out))
            return 1.0 - replies / PACKET_LOSS_PING_COUNT
        return loss

    async def probe_jitter(self, target: str) -> float:
        times = parse_ping_times(await self._ping(target, JITTER_SAMPLE_COUNT))
        return jitter_from_latencies(times)

    async def list_interfaces(self) -> List[InterfaceInfo]:
        addrs = psutil.net_if_addrs()
        stats = psutil.net_if_stats()

        interfaces = []
        for name, nic_stats in stats.items():
            address = None
            mac = None
            for addr in addrs.get(name, []):
                if addr.family == socket.AF_INET and address is None:
                    address = addr.address
                elif addr.family == psutil.AF_LINK and mac is None:
                    mac = addr.address

            interfaces.append(InterfaceInfo(
                name=name,
                kind=classify_interface(name),
                address=address,
                mac=mac,
                speed_mbps=float(nic_stats.speed or 0),
                is_up=nic_stats.isup,
                is_loopback=name == "lo" or bool(address and address.startswith("127.")),
            ))
        return interfaces

    async def list_wireless_networks(self) -> List[WirelessNetwork]:
        if not self.runner.is_installed("nmcli"):
            logger.debug("nmcli not available, skipping wireless scan")
            return []

        rc, out, err = await self.runner.run(
            "nmcli", "-t", "-f", "SSID,SIGNAL,SECURITY,DEVICE", "dev", "wifi", "list",
            timeout=15.0,
        )
        if rc != 0:
            raise CommandError(f"nmcli exited with {rc}: {err.strip()}")
        return parse_nmcli_wifi(out)

    async def list_default_routes(self) -> List[DefaultRoute]:
        if sys.platform == "win32":
            rc, out, err = await self.runner.run("route", "print", "-4", timeout=10.0)
            parser = parse_windows_routes
        else:
            rc, out, err = await self.runner.run("ip", "route", "show", timeout=10.0)
            parser = parse_linux_routes

        if rc != 0:
            raise CommandError(f"route listing exited with {rc}: {err.strip()}")
        return parser(out)

    async def network_stats(self) -> Dict[str, Any]:
        counters = psutil.net_io_counters(pernic=True)
        return {
            name: {
                "bytes_sent": c.bytes_sent,
                "bytes_recv": c.bytes_recv,
                "packets_sent": c.packets_sent,
                "packets_recv": c.packets_recv,
                "errin": c.errin,
                "errout": c.errout,
                "dropin": c.dropin,
                "dropout": c.dropout,
            }
            for name, c in counters.items()
        }
