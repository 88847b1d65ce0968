"""
Analysis Loop

Recurring probe cycle: re-measures every known route, refreshes scores
and re-ranks the catalog, then notifies observers.
"""

from dataclasses import replace
from typing import Callable, List, Optional

from loguru import logger

from route_constants import ANALYSIS_INTERVAL_SECS

from .cache import MetricsCache
from .catalog import RouteCatalogBuilder
from .errors import AlreadyRunning
from .measure import measure_route
from .models import MetricsSample, Route
from .ports import MetricsProbe
from .scheduler import AsyncioTicker, TickHandle, Ticker
from .scoring import score


CycleObserver = Callable[[List[Route]], None]


def rank_routes(routes: List[Route]) -> List[Route]:
    """Sort routes by score, highest first. Unmeasured and failed routes score 0."""
    return sorted(routes, key=lambda r: score(r.metrics), reverse=True)


class AnalysisLoop:
    """
    Owner of the route catalog.

    Cycles never overlap: a tick arriving while the previous cycle is
    still probing is skipped, not queued. Within a cycle routes are
    measured one at a time and the catalog is re-sorted only once every
    route has reported.
    """

    def __init__(
        self,
        probe: MetricsProbe,
        cache: Optional[MetricsCache] = None,
        builder: Optional[RouteCatalogBuilder] = None,
        ticker: Optional[Ticker] = None,
        interval_secs: float = ANALYSIS_INTERVAL_SECS,
    ):
        """
        Initialize the analysis loop.

        Args:
            probe: Metrics probe port
            cache: Metrics cache, a fresh one by default
            builder: Catalog builder, one over `probe` by default
            ticker: Periodic trigger, an asyncio ticker by default
            interval_secs: Tick period for the default ticker
        """
        self.probe = probe
        self.cache = cache or MetricsCache()
        self.builder = builder or RouteCatalogBuilder(probe)
        self.ticker = ticker or AsyncioTicker(interval_secs)
        self.interval = interval_secs

        # State
        self._running = False
        self._catalog: List[Route] = []
        self._handle: Optional[TickHandle] = None
        self._cycle_in_flight = False
        self._observers: List[CycleObserver] = []

        # Bumped whenever the catalog is replaced by discovery
        self._generation = 0
        # Bumped by every start(); a stale start() must not arm the ticker
        self._start_token = 0

        # Stats
        self.cycle_count = 0
        self.skipped_cycles = 0

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def cycle_in_flight(self) -> bool:
        return self._cycle_in_flight

    def routes(self) -> List[Route]:
        """Get a copy of the ranked catalog."""
        return list(self._catalog)

    def get_route(self, route_id: str) -> Optional[Route]:
        """Find a route in the catalog by id."""
        return next((r for r in self._catalog if r.id == route_id), None)

    def add_observer(self, observer: CycleObserver) -> None:
        """Register a callback receiving the ranked catalog after each cycle."""
        self._observers.append(observer)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """
        Start the loop.

        Seeds the catalog through discovery and arms the ticker.

        Raises:
            AlreadyRunning: the loop is already active
        """
        if self._running:
            raise AlreadyRunning()

        self._running = True
        self._start_token += 1
        token = self._start_token
        logger.info("Starting network analysis...")

        routes = await self.builder.discover_routes()
        if not self._running or token != self._start_token:
            # stopped (and possibly restarted) while discovery was in flight
            logger.debug("Discarding discovery from a superseded start")
            return

        self._catalog = routes
        self._generation += 1
        self._handle = self.ticker.arm(self._on_tick)

    def stop(self) -> None:
        """Disarm the ticker. No-op when not running."""
        if not self._running:
            return

        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        logger.info("Network analysis stopped")

    async def rediscover(self) -> List[Route]:
        """
        Rebuild the catalog from a fresh discovery.

        Telemetry already gathered is carried over for routes that survive.
        """
        discovered = await self.builder.discover_routes()
        previous = {r.id: r for r in self._catalog}

        routes = []
        for route in discovered:
            old = previous.get(route.id)
            if old is not None and old.metrics is not None:
                route = replace(route, metrics=old.metrics, last_analyzed_at=old.last_analyzed_at)
            routes.append(route)

        self._catalog = rank_routes(routes)
        self._generation += 1
        return self.routes()

    # =========================================================================
    # CYCLE
    # =========================================================================

    async def _on_tick(self) -> None:
        if not self._running:
            return
        await self.run_cycle()

    async def _sample_for(self, route: Route) -> MetricsSample:
        cached = self.cache.get(route.id)
        if cached is not None:
            return cached

        try:
            sample = await measure_route(self.probe, route)
        except Exception as e:
            logger.warning(f"Error analyzing route {route.name}: {e}")
            return MetricsSample.failed(str(e))

        self.cache.put(route.id, sample)
        return sample

    async def run_cycle(self) -> bool:
        """
        Measure, score and rank every route once.

        Returns:
            False when skipped because another cycle is still in flight
        """
        if self._cycle_in_flight:
            self.skipped_cycles += 1
            logger.debug("Previous analysis cycle still in flight, skipping tick")
            return False

        self._cycle_in_flight = True
        try:
            generation = self._generation
            logger.debug(f"Analyzing {len(self._catalog)} routes...")
            updated = []
            for route in list(self._catalog):
                sample = await self._sample_for(route)
                analyzed_at = sample.measured_at if sample.ok else route.last_analyzed_at
                updated.append(replace(route, metrics=sample, last_analyzed_at=analyzed_at))

            if generation != self._generation:
                # The catalog was rediscovered mid-cycle: keep its routes
                updated = self._merge_samples(updated)
            self._catalog = rank_routes(updated)
            self.cycle_count += 1
        finally:
            self._cycle_in_flight = False

        self._notify()
        return True

    def _merge_samples(self, measured: List[Route]) -> List[Route]:
        """Attach samples taken this cycle to the current catalog, by route id."""
        by_id = {r.id: r for r in measured}
        merged = []
        for route in self._catalog:
            fresh = by_id.get(route.id)
            if fresh is not None:
                route = replace(
                    route,
                    metrics=fresh.metrics,
                    last_analyzed_at=fresh.last_analyzed_at,
                )
            merged.append(route)
        return merged

    def _notify(self) -> None:
        ranked = self.routes()
        for observer in list(self._observers):
            try:
                observer(ranked)
            except Exception as e:
                logger.error(f"Analysis observer failed: {e}")
