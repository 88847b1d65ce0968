"""
Route Scoring

Pure mapping from a metrics sample to a 0-100 desirability score.

Scoring formula:
    score = 0.4 * latency_score + 0.4 * throughput_score + 0.2 * stability_score

Where:
    - latency_score    = max(0, 100 - latency_ms)
    - throughput_score = min(100, throughput_mbps / 10)
    - stability_score  = stability * 100

A sample carrying an error scores 0, with no partial credit.
"""

from typing import Dict, Optional

from route_constants import (
    LATENCY_WEIGHT,
    THROUGHPUT_WEIGHT,
    STABILITY_WEIGHT,
    MAX_COMPONENT_SCORE,
    THROUGHPUT_DIVISOR,
)

from .models import MetricsSample


def latency_score(latency_ms: float) -> float:
    """Lower latency = higher score. Floors at 0 from 100 ms."""
    return max(0.0, MAX_COMPONENT_SCORE - latency_ms)


def throughput_score(throughput_mbps: float) -> float:
    """Higher throughput = higher score. Saturates at 1000 Mbps."""
    return min(MAX_COMPONENT_SCORE, throughput_mbps / THROUGHPUT_DIVISOR)


def stability_score(stability: float) -> float:
    """Stability in [0, 1] scaled to [0, 100]."""
    return stability * MAX_COMPONENT_SCORE


def score(sample: Optional[MetricsSample]) -> float:
    """
    Calculate the desirability score of a metrics sample.

    Routes that have not been measured yet (`None`) score 0, the same
    as a failed measurement.
    """
    if sample is None or sample.error is not None:
        return 0.0

    return (
        LATENCY_WEIGHT * latency_score(sample.latency_ms)
        + THROUGHPUT_WEIGHT * throughput_score(sample.throughput_mbps)
        + STABILITY_WEIGHT * stability_score(sample.stability)
    )


def score_breakdown(sample: Optional[MetricsSample]) -> Dict[str, float]:
    """Get the component scores alongside the combined score."""
    if sample is None or sample.error is not None:
        return {"latency": 0.0, "throughput": 0.0, "stability": 0.0, "score": 0.0}

    return {
        "latency": latency_score(sample.latency_ms),
        "throughput": throughput_score(sample.throughput_mbps),
        "stability": stability_score(sample.stability),
        "score": score(sample),
    }
