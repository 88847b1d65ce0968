"""
Route Measurement

Runs one full probe pass for a route against the metrics probe port.
"""

from datetime import datetime

from .ports import MetricsProbe
from .models import MetricsSample, Route


async def measure_route(probe: MetricsProbe, route: Route) -> MetricsSample:
    """
    Measure latency, throughput, stability, loss and jitter for a route.

    Latency is taken against the route's own gateway or address; the path
    quality measurements go to the gateway, or to the default target for
    routes without one.

    Probe calls run one after another, matching how a single route is
    measured within a cycle. Exceptions propagate to the caller, which
    turns them into an error sample.
    """
    path = route.path_target

    latency = await probe.probe_latency(route.probe_target)
    throughput = await probe.probe_throughput(route.interface) if route.interface else 0.0
    stability = await probe.probe_stability(path)
    packet_loss = await probe.probe_packet_loss(path)
    jitter = await probe.probe_jitter(path)

    return MetricsSample(
        latency_ms=max(0.0, float(latency)),
        throughput_mbps=max(0.0, float(throughput)),
        stability=min(1.0, max(0.0, float(stability))),
        packet_loss=min(1.0, max(0.0, float(packet_loss))),
        jitter_ms=max(0.0, float(jitter)),
        measured_at=datetime.utcnow(),
    )
