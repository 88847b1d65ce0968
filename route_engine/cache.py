"""
Metrics Cache

Time-bounded memoization of probe results keyed by route id.
"""

import time
from typing import Callable, Dict, List, Optional, Tuple, Any

from route_constants import CACHE_TTL_SECS

from .models import MetricsSample


class MetricsCache:
    """
    Route id -> (MetricsSample, cached_at) store.

    A read at or past the TTL is a miss. There is no background sweeping;
    the store is bounded by the number of known routes.
    """

    def __init__(
        self,
        ttl_secs: float = CACHE_TTL_SECS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            ttl_secs: Freshness window in seconds
            clock: Monotonic clock in seconds, injectable for tests
        """
        self.ttl = ttl_secs
        self._clock = clock
        self._entries: Dict[str, Tuple[MetricsSample, float]] = {}

    def get(self, route_id: str) -> Optional[MetricsSample]:
        """Get a fresh sample for a route, or None on a miss."""
        entry = self._entries.get(route_id)
        if entry is None:
            return None

        sample, cached_at = entry
        if self._clock() - cached_at >= self.ttl:
            return None
        return sample

    def put(self, route_id: str, sample: MetricsSample) -> None:
        """Store a sample, replacing any previous entry for the route."""
        self._entries[route_id] = (sample, self._clock())

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def entries(self) -> List[Dict[str, Any]]:
        """Get all entries with their age, expired ones included."""
        now = self._clock()
        return [
            {
                "route_id": route_id,
                "sample": sample.to_dict(),
                "age_secs": now - cached_at,
                "fresh": now - cached_at < self.ttl,
            }
            for route_id, (sample, cached_at) in self._entries.items()
        ]

    def __len__(self) -> int:
        return len(self._entries)
