"""
Route Engine Errors

Typed failures raised by the engine. None of these are fatal to the
process: probe and discovery failures are absorbed into the ranking,
the rest are surfaced to whoever issued the command.
"""

from typing import Optional


class RouteEngineError(Exception):
    """Base class for all route engine failures."""


# =============================================================================
# TELEMETRY
# =============================================================================

class ProbeFailure(RouteEngineError):
    """Measuring a single route failed."""

    def __init__(self, route_id: str, reason: str):
        super().__init__(f"probe failed for route {route_id}: {reason}")
        self.route_id = route_id
        self.reason = reason


class DiscoveryFailure(RouteEngineError):
    """A route collector (interfaces, Wi-Fi, default routes) failed."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source} discovery failed: {reason}")
        self.source = source
        self.reason = reason


class NoRoutesAvailable(RouteEngineError):
    """Selection was requested on an empty catalog."""

    def __init__(self, message: str = "no routes available"):
        super().__init__(message)


# =============================================================================
# PRECONDITIONS
# =============================================================================

class AlreadyRunning(RouteEngineError):
    """The analysis loop is already active."""

    def __init__(self, message: str = "analysis loop already running"):
        super().__init__(message)


class AlreadyConnecting(RouteEngineError):
    """A tunnel is being provisioned."""

    def __init__(self, message: str = "a connection attempt is already in progress"):
        super().__init__(message)


class AlreadyConnected(RouteEngineError):
    """A tunnel is already active; disconnect first."""

    def __init__(self, route_id: Optional[str] = None):
        message = "already connected"
        if route_id:
            message = f"already connected via route {route_id}"
        super().__init__(message)
        self.route_id = route_id


class TransitionInProgress(RouteEngineError):
    """The requested command conflicts with a transition underway."""

    def __init__(self, phase: str):
        super().__init__(f"cannot proceed while {phase}")
        self.phase = phase


# =============================================================================
# TUNNEL COLLABORATOR
# =============================================================================

class ProvisioningFailure(RouteEngineError):
    """The tunnel collaborator could not bring the tunnel up."""

    def __init__(self, reason: str, route_id: Optional[str] = None):
        super().__init__(f"tunnel provisioning failed: {reason}")
        self.reason = reason
        self.route_id = route_id


class TeardownFailure(RouteEngineError):
    """The tunnel collaborator could not bring the tunnel down."""

    def __init__(self, reason: str):
        super().__init__(f"tunnel teardown failed: {reason}")
        self.reason = reason
