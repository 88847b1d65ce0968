"""
Tests for Analysis Loop

Steps the loop with a manual ticker so every cycle is deterministic.
"""

import sys
import asyncio
from dataclasses import replace
from pathlib import Path

import pytest

# Add parent for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from route_engine import (
    AnalysisLoop,
    AlreadyRunning,
    AsyncioTicker,
    ManualTicker,
    MetricsCache,
    score,
)
from route_engine.analysis import rank_routes
from route_engine.catalog import gateway_route, interface_route
from route_engine.models import DefaultRoute, InterfaceInfo
from route_engine.measure import measure_route
from route_probes import StaticProbe


WIRED = "route-0.0.0.0/0-via-10.0.0.1"
WIRELESS = "route-0.0.0.0/0-via-10.0.1.1"
CELLULAR = "route-0.0.0.0/0-via-10.0.2.1"


def default_route(interface: str, gateway: str) -> DefaultRoute:
    return DefaultRoute(destination="0.0.0.0/0", gateway=gateway, interface=interface)


def build_probe() -> StaticProbe:
    """Three gateways: a fast, a slow and a middling path."""
    probe = StaticProbe(default_routes=[
        default_route("eth0", "10.0.0.1"),
        default_route("wlan0", "10.0.1.1"),
        default_route("wwan0", "10.0.2.1"),
    ])
    probe.add_path("10.0.0.1", "eth0", latency_ms=10, throughput_mbps=500, stability=0.95)
    probe.add_path("10.0.1.1", "wlan0", latency_ms=200, throughput_mbps=5, stability=0.2)
    probe.add_path("10.0.2.1", "wwan0", latency_ms=50, throughput_mbps=40, stability=0.6)
    return probe


class TestRankRoutes:
    """Test catalog ordering."""

    def test_ranking_invariant(self):
        async def scenario():
            loop = AnalysisLoop(build_probe(), ticker=ManualTicker())
            await loop.start()
            await loop.run_cycle()
            return loop.routes()

        routes = asyncio.run(scenario())
        scores = [score(r.metrics) for r in routes]
        assert all(scores[i] >= scores[i + 1] for i in range(len(scores) - 1))
        assert [r.id for r in routes] == [WIRED, CELLULAR, WIRELESS]

    def test_unmeasured_last(self):
        async def scenario():
            loop = AnalysisLoop(build_probe(), ticker=ManualTicker())
            await loop.start()
            await loop.run_cycle()
            return loop.routes()

        routes = asyncio.run(scenario())
        mixed = [replace(routes[0], metrics=None)] + routes[1:]
        assert rank_routes(mixed)[-1].id == routes[0].id


class TestAnalysisLoop:
    """Test AnalysisLoop functionality."""

    def setup_method(self):
        self.probe = build_probe()
        self.ticker = ManualTicker()
        self.loop = AnalysisLoop(self.probe, ticker=self.ticker)

    def test_start_seeds_catalog(self):
        """Test start discovers routes and arms the ticker."""
        async def scenario():
            await self.loop.start()

        asyncio.run(scenario())
        assert self.loop.is_running
        assert self.ticker.armed
        assert [r.id for r in self.loop.routes()] == [WIRED, WIRELESS, CELLULAR]
        assert all(r.metrics is None for r in self.loop.routes())

    def test_tick_runs_cycle(self):
        async def scenario():
            await self.loop.start()
            return await self.ticker.tick()

        assert asyncio.run(scenario())
        assert self.loop.cycle_count == 1
        eth0 = self.loop.get_route(WIRED)
        assert eth0.metrics.ok
        assert abs(score(eth0.metrics) - 75.0) < 1e-9
        assert eth0.last_analyzed_at == eth0.metrics.measured_at

    def test_start_twice_raises(self):
        async def scenario():
            await self.loop.start()
            with pytest.raises(AlreadyRunning):
                await self.loop.start()

        asyncio.run(scenario())
        assert self.ticker.arm_count == 1

    def test_stop_idempotent(self):
        """Test stop on a stopped loop is a no-op."""
        self.loop.stop()

        async def scenario():
            await self.loop.start()
            self.loop.stop()
            self.loop.stop()
            return await self.ticker.tick()

        assert asyncio.run(scenario()) is False
        assert not self.loop.is_running
        assert self.loop.cycle_count == 0

    def test_restart_after_stop(self):
        async def scenario():
            await self.loop.start()
            self.loop.stop()
            await self.loop.start()

        asyncio.run(scenario())
        assert self.loop.is_running
        assert self.ticker.arm_count == 2

    def test_partial_failure_isolation(self):
        """Test one failing route does not abort the cycle."""
        self.probe.failing_targets.add("10.0.1.1")

        async def scenario():
            await self.loop.start()
            return await self.loop.run_cycle()

        assert asyncio.run(scenario())
        wlan0 = self.loop.get_route(WIRELESS)
        assert wlan0.metrics.error
        assert score(wlan0.metrics) == 0
        assert wlan0.last_analyzed_at is None
        assert self.loop.get_route(WIRED).metrics.ok
        assert self.loop.get_route(CELLULAR).metrics.ok
        assert self.loop.routes()[-1].id == WIRELESS

    def test_failed_sample_not_cached(self):
        self.probe.failing_targets.add("10.0.1.1")

        async def scenario():
            await self.loop.start()
            await self.loop.run_cycle()

        asyncio.run(scenario())
        assert self.loop.cache.get(WIRELESS) is None
        assert self.loop.cache.get(WIRED) is not None
        assert len(self.loop.cache) == 2

    def test_failed_route_keeps_last_success_time(self):
        async def scenario():
            await self.loop.start()
            await self.loop.run_cycle()
            first = self.loop.get_route(WIRELESS).last_analyzed_at
            self.loop.cache.clear()
            self.probe.failing_targets.add("10.0.1.1")
            await self.loop.run_cycle()
            return first

        first = asyncio.run(scenario())
        wlan0 = self.loop.get_route(WIRELESS)
        assert wlan0.metrics.error
        assert wlan0.last_analyzed_at == first

    def test_cache_hits_skip_probing(self):
        """Test a fresh cached sample is reused instead of re-probing."""
        async def scenario():
            await self.loop.start()
            await self.loop.run_cycle()
            probed = self.probe.calls["latency"]
            await self.loop.run_cycle()
            return probed

        probed = asyncio.run(scenario())
        assert probed == 3
        assert self.probe.calls["latency"] == 3
        assert self.loop.cycle_count == 2

    def test_expired_cache_reprobes(self):
        clock = [0.0]
        loop = AnalysisLoop(
            self.probe,
            cache=MetricsCache(clock=lambda: clock[0]),
            ticker=self.ticker,
        )

        async def scenario():
            await loop.start()
            await loop.run_cycle()
            clock[0] = 30.0
            await loop.run_cycle()

        asyncio.run(scenario())
        assert self.probe.calls["latency"] == 6

    def test_overlapping_cycle_skipped(self):
        """Test a cycle requested while one is in flight is skipped."""
        async def scenario():
            await self.loop.start()
            self.probe.gate = asyncio.Event()

            first = asyncio.create_task(self.loop.run_cycle())
            await asyncio.sleep(0)
            assert self.loop.cycle_in_flight

            second = await self.loop.run_cycle()
            self.probe.gate.set()
            return await first, second

        first, second = asyncio.run(scenario())
        assert first is True
        assert second is False
        assert self.loop.skipped_cycles == 1
        assert self.loop.cycle_count == 1
        assert not self.loop.cycle_in_flight

    def test_stop_during_cycle_does_not_rearm(self):
        """Test a cycle finishing after stop() leaves the loop stopped."""
        async def scenario():
            await self.loop.start()
            self.probe.gate = asyncio.Event()

            tick = asyncio.create_task(self.ticker.tick())
            await asyncio.sleep(0)
            self.loop.stop()
            self.probe.gate.set()
            await tick

        asyncio.run(scenario())
        assert not self.loop.is_running
        assert not self.ticker.armed
        assert self.ticker.arm_count == 1
        assert self.loop.cycle_count == 1

    def test_observers_receive_ranked_routes(self):
        received = []
        self.loop.add_observer(received.append)

        async def scenario():
            await self.loop.start()
            await self.loop.run_cycle()

        asyncio.run(scenario())
        assert len(received) == 1
        assert [r.id for r in received[0]] == [WIRED, CELLULAR, WIRELESS]

    def test_failing_observer_isolated(self):
        def broken(routes):
            raise RuntimeError("observer bug")

        received = []
        self.loop.add_observer(broken)
        self.loop.add_observer(received.append)

        async def scenario():
            await self.loop.start()
            return await self.loop.run_cycle()

        assert asyncio.run(scenario())
        assert len(received) == 1

    def test_routes_returns_copy(self):
        async def scenario():
            await self.loop.start()

        asyncio.run(scenario())
        routes = self.loop.routes()
        routes.clear()
        assert len(self.loop.routes()) == 3

    def test_rediscover_keeps_metrics(self):
        """Test surviving routes keep their telemetry, new ones start blank."""
        async def scenario():
            await self.loop.start()
            await self.loop.run_cycle()
            self.probe.interfaces.append(InterfaceInfo(name="eth9", address="10.0.9.2"))
            self.probe.default_routes = [r for r in self.probe.default_routes if r.interface != "wwan0"]
            return await self.loop.rediscover()

        routes = asyncio.run(scenario())
        ids = [r.id for r in routes]
        assert CELLULAR not in ids
        assert self.loop.get_route(WIRED).metrics.ok
        assert self.loop.get_route("eth9").metrics is None
        assert ids[0] == WIRED

    def test_rediscover_during_cycle_wins(self):
        """Test a cycle finishing after rediscover keeps the new catalog."""
        async def scenario():
            await self.loop.start()
            self.probe.gate = asyncio.Event()

            cycle = asyncio.create_task(self.loop.run_cycle())
            await asyncio.sleep(0)
            assert self.loop.cycle_in_flight

            self.probe.interfaces.append(InterfaceInfo(name="eth9", address="10.0.9.2"))
            self.probe.default_routes = [r for r in self.probe.default_routes if r.interface != "wwan0"]
            await self.loop.rediscover()

            self.probe.gate.set()
            return await cycle

        assert asyncio.run(scenario())
        ids = [r.id for r in self.loop.routes()]
        assert set(ids) == {WIRED, WIRELESS, "eth9"}
        assert ids[0] == WIRED
        assert self.loop.get_route(WIRED).metrics.ok
        assert self.loop.get_route(WIRELESS).metrics.ok
        assert self.loop.get_route("eth9").metrics is None
        assert self.loop.cycle_count == 1

    def test_restart_while_discovering_arms_once(self):
        """Test start, stop, start with discovery pending leaves one live tick."""
        gate = asyncio.Event()
        list_interfaces = self.probe.list_interfaces

        async def slow_interfaces():
            await gate.wait()
            return await list_interfaces()

        self.probe.list_interfaces = slow_interfaces

        async def scenario():
            first = asyncio.create_task(self.loop.start())
            await asyncio.sleep(0)
            self.loop.stop()
            second = asyncio.create_task(self.loop.start())
            await asyncio.sleep(0)
            gate.set()
            await asyncio.gather(first, second)

            assert self.loop.is_running
            assert self.ticker.arm_count == 1
            assert len(self.loop.routes()) == 3

            self.loop.stop()

        asyncio.run(scenario())
        assert not self.loop.is_running
        assert not self.ticker.armed

    def test_stop_while_discovering(self):
        """Test a start abandoned by stop() never arms the ticker."""
        gate = asyncio.Event()
        list_interfaces = self.probe.list_interfaces

        async def slow_interfaces():
            await gate.wait()
            return await list_interfaces()

        self.probe.list_interfaces = slow_interfaces

        async def scenario():
            start = asyncio.create_task(self.loop.start())
            await asyncio.sleep(0)
            self.loop.stop()
            gate.set()
            await start

        asyncio.run(scenario())
        assert not self.loop.is_running
        assert self.ticker.arm_count == 0
        assert self.loop.routes() == []


class TestMeasureRoute:
    """Test which targets each measurement is taken against."""

    def setup_method(self):
        self.probe = StaticProbe()
        self.probe.add_path("10.0.0.2", "eth0", latency_ms=10, throughput_mbps=500,
                            stability=0.95, packet_loss=0.0, jitter_ms=1.0)
        self.probe.add_path("10.0.0.1", None, latency_ms=12, stability=0.9,
                            packet_loss=0.02, jitter_ms=2.0)
        self.probe.add_path("8.8.8.8", None, latency_ms=40, stability=0.5,
                            packet_loss=0.1, jitter_ms=7.0)

    def test_interface_route_targets(self):
        """Test latency uses the address while path quality uses the default target."""
        route = interface_route(InterfaceInfo(name="eth0", address="10.0.0.2"))
        assert route.probe_target == "10.0.0.2"
        assert route.path_target == "8.8.8.8"

        sample = asyncio.run(measure_route(self.probe, route))
        assert sample.latency_ms == 10
        assert sample.throughput_mbps == 500
        assert sample.stability == 0.5
        assert sample.packet_loss == 0.1
        assert sample.jitter_ms == 7.0

    def test_gateway_route_targets(self):
        route = gateway_route(default_route("eth0", "10.0.0.1"))
        assert route.probe_target == "10.0.0.1"
        assert route.path_target == "10.0.0.1"

        sample = asyncio.run(measure_route(self.probe, route))
        assert sample.latency_ms == 12
        assert sample.throughput_mbps == 500
        assert sample.stability == 0.9
        assert sample.packet_loss == 0.02
        assert sample.jitter_ms == 2.0

    def test_addressless_route_uses_default(self):
        route = interface_route(InterfaceInfo(name="wlan0", kind="wireless"))
        assert route.probe_target == "8.8.8.8"

        sample = asyncio.run(measure_route(self.probe, route))
        assert sample.latency_ms == 40
        assert sample.throughput_mbps == 0.0
        assert sample.stability == 0.5


class TestAsyncioTicker:
    """Test the event-loop driven ticker."""

    def test_ticks_until_stopped(self):
        loop = AnalysisLoop(build_probe(), ticker=AsyncioTicker(0.01), interval_secs=0.01)

        async def scenario():
            await loop.start()
            await asyncio.sleep(0.1)
            loop.stop()
            await asyncio.sleep(0.02)
            stopped_at = loop.cycle_count
            await asyncio.sleep(0.05)
            return stopped_at

        stopped_at = asyncio.run(scenario())
        assert stopped_at >= 1
        assert loop.cycle_count == stopped_at


# =============================================================================
# RUN TESTS
# =============================================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v"])
