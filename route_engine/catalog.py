"""
Route Catalog Builder

Turns interface, Wi-Fi and default-route enumeration into one flat,
uniform list of candidate routes.

Sources are not de-duplicated against each other: a default route and
the interface it rides on are listed as two separate candidates.
"""

from dataclasses import replace
from typing import Awaitable, Callable, List, Set

from loguru import logger

from route_constants import LOOPBACK_ENDPOINT

from .errors import DiscoveryFailure
from .models import (
    Route,
    RouteKind,
    InterfaceInfo,
    WirelessNetwork,
    DefaultRoute,
)
from .ports import MetricsProbe


def interface_route(iface: InterfaceInfo) -> Route:
    """Build the candidate route for an interface."""
    return Route(
        id=iface.name,
        name=f"{iface.name} ({iface.kind})",
        kind=RouteKind.PHYSICAL_INTERFACE,
        endpoint_hint=iface.address or LOOPBACK_ENDPOINT,
        interface=iface.name,
        address=iface.address,
        speed_mbps=iface.speed_mbps or None,
    )


def wifi_route(network: WirelessNetwork) -> Route:
    """Build the candidate route for a wireless network."""
    return Route(
        id=f"wifi-{network.ssid}",
        name=f"WiFi: {network.ssid}",
        kind=RouteKind.WIFI,
        endpoint_hint=LOOPBACK_ENDPOINT,
        interface=network.interface,
        ssid=network.ssid,
        signal=network.signal,
        security=network.security,
    )


def gateway_route(route: DefaultRoute) -> Route:
    """Build the candidate route for a default-gateway route."""
    return Route(
        id=f"route-{route.destination}-via-{route.gateway}",
        name=f"Route: {route.destination} via {route.gateway} ({route.interface})",
        kind=RouteKind.GATEWAY_ROUTE,
        endpoint_hint=route.gateway or LOOPBACK_ENDPOINT,
        interface=route.interface,
        gateway=route.gateway,
        destination=route.destination,
    )


def assign_unique_ids(routes: List[Route]) -> List[Route]:
    """
    Make ids unique within a snapshot.

    Later duplicates get `#2`, `#3`, ... suffixes in discovery order, so the
    same enumeration always yields the same ids.
    """
    seen: Set[str] = set()
    unique = []

    for route in routes:
        route_id = route.id
        n = 1
        while route_id in seen:
            n += 1
            route_id = f"{route.id}#{n}"

        if route_id != route.id:
            route = replace(route, id=route_id)
        seen.add(route_id)
        unique.append(route)

    return unique


class RouteCatalogBuilder:
    """
    Discovers candidate routes through the metrics probe port.

    Best effort: a failing source is logged and skipped, and
    `discover_routes()` never raises.
    """

    def __init__(self, probe: MetricsProbe):
        self.probe = probe
        self.last_failures: List[DiscoveryFailure] = []

    async def _collect(self, source: str, collector: Callable[[], Awaitable[list]]) -> list:
        try:
            return list(await collector())
        except Exception as e:
            failure = e if isinstance(e, DiscoveryFailure) else DiscoveryFailure(source, str(e))
            self.last_failures.append(failure)
            logger.warning(f"Route discovery source '{source}' failed: {failure}")
            return []

    async def discover_routes(self) -> List[Route]:
        """Discover every candidate route with no metrics attached."""
        logger.info("Discovering network routes...")
        self.last_failures = []

        interfaces = await self._collect("interfaces", self.probe.list_interfaces)
        networks = await self._collect("wireless", self.probe.list_wireless_networks)
        defaults = await self._collect("default-routes", self.probe.list_default_routes)

        routes: List[Route] = []
        routes.extend(
            interface_route(iface)
            for iface in interfaces
            if iface.is_up and not iface.is_loopback
        )
        routes.extend(wifi_route(net) for net in networks if net.ssid)
        routes.extend(gateway_route(r) for r in defaults if r.gateway)

        routes = assign_unique_ids(routes)

        if not routes and len(self.last_failures) == 3:
            logger.error("Route discovery failed for every source, catalog is empty")
        else:
            logger.info(f"Found {len(routes)} candidate routes")

        return routes
