"""Gateway routes."""

from . import health, network, tunnel, events

__all__ = ["health", "network", "tunnel", "events"]
