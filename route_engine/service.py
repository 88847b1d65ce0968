"""
Route Service

Explicitly constructed facade tying the analysis loop, metrics cache and
connection lifecycle together, and exposing the commands the
presentation layer issues.
"""

from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from route_constants import ANALYSIS_INTERVAL_SECS, CACHE_TTL_SECS

from .analysis import AnalysisLoop
from .cache import MetricsCache
from .errors import NoRoutesAvailable
from .lifecycle import ConnectionLifecycleManager
from .models import ConnectionState, Route, StatusSnapshot
from .ports import MetricsProbe, TunnelProvisioner
from .scheduler import Ticker


StatusObserver = Callable[[StatusSnapshot], None]


class RouteService:
    """
    Route telemetry and tunnel control for one host.

    Several instances can coexist; nothing here is module-level state.
    Subscribers receive a StatusSnapshot after every analysis cycle and
    every connection state transition.
    """

    def __init__(
        self,
        probe: MetricsProbe,
        provisioner: TunnelProvisioner,
        ticker: Optional[Ticker] = None,
        cache: Optional[MetricsCache] = None,
        interval_secs: float = ANALYSIS_INTERVAL_SECS,
        cache_ttl_secs: float = CACHE_TTL_SECS,
    ):
        self.probe = probe
        self.provisioner = provisioner
        self.cache = cache or MetricsCache(ttl_secs=cache_ttl_secs)
        self.analysis = AnalysisLoop(
            probe,
            cache=self.cache,
            ticker=ticker,
            interval_secs=interval_secs,
        )
        self.lifecycle = ConnectionLifecycleManager(
            provisioner,
            routes_provider=self.analysis.routes,
        )
        self._subscribers: List[StatusObserver] = []

        self.analysis.add_observer(self._on_cycle)
        self.lifecycle.add_observer(self._on_transition)

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_status(self) -> StatusSnapshot:
        """Get the current connection state and ranked routes."""
        state = self.lifecycle.state
        return StatusSnapshot(
            connected=state.connected,
            phase=state.phase,
            active_route=state.route,
            ranked_routes=self.analysis.routes(),
            analysis_running=self.analysis.is_running,
            cycle_count=self.analysis.cycle_count,
        )

    def subscribe(self, callback: StatusObserver) -> Callable[[], None]:
        """
        Register for status pushes.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self) -> None:
        snapshot = self.get_status()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Status subscriber failed: {e}")

    def _on_cycle(self, routes: List[Route]) -> None:
        self._publish()

    def _on_transition(self, state: ConnectionState) -> None:
        self._publish()

    # =========================================================================
    # ANALYSIS COMMANDS
    # =========================================================================

    async def start_analysis(self) -> None:
        """Start the analysis loop. Raises AlreadyRunning when active."""
        await self.analysis.start()

    def stop_analysis(self) -> None:
        """Stop the analysis loop. No-op when not running."""
        self.analysis.stop()

    async def run_cycle(self) -> bool:
        """Run one analysis cycle now."""
        return await self.analysis.run_cycle()

    async def rediscover(self) -> List[Route]:
        """Re-run route discovery."""
        routes = await self.analysis.rediscover()
        self._publish()
        return routes

    def cache_entries(self) -> List[Dict[str, Any]]:
        return self.cache.entries()

    def clear_cache(self) -> None:
        self.cache.clear()

    async def network_stats(self) -> Dict[str, Any]:
        return await self.probe.network_stats()

    # =========================================================================
    # CONNECTION COMMANDS
    # =========================================================================

    async def connect_best(self) -> Route:
        """Connect over the top-ranked route."""
        return await self.lifecycle.connect()

    async def connect_route(self, route_id: str) -> Route:
        """
        Connect over a specific catalog route.

        Raises:
            NoRoutesAvailable: no route with that id is known
        """
        route = self.analysis.get_route(route_id)
        if route is None:
            raise NoRoutesAvailable(f"unknown route: {route_id}")
        return await self.lifecycle.connect(route)

    async def disconnect(self) -> bool:
        return await self.lifecycle.disconnect()

    async def tunnel_status(self) -> Dict[str, Any]:
        """Collaborator-reported tunnel status merged with the lifecycle state."""
        status = dict(await self.provisioner.status())
        status.update({
            "phase": self.lifecycle.phase.value,
            "active_route": self.lifecycle.active_route.id if self.lifecycle.active_route else None,
            "tooling_available": self.provisioner.is_available(),
        })
        return status

    async def shutdown(self) -> None:
        """Stop analysis and tear down any active tunnel. Never raises."""
        logger.info("Shutting down route service")
        self.analysis.stop()
        await self.lifecycle.shutdown()
