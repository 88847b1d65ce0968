"""
Connection Lifecycle Manager

State machine governing the tunnel over the selected route.

Transitions:
    Disconnected  --connect(route)-->        Connecting
    Connecting    --provisioning ok-->       Connected{route}
    Connecting    --provisioning failed-->   Disconnected
    Connected     --disconnect()-->          Disconnecting
    Disconnecting --teardown ok/failed-->    Disconnected

Exactly one tunnel may be active; a second connect() is rejected, never
a silent replacement.
"""

from typing import Callable, List, Optional

from loguru import logger

from .errors import (
    AlreadyConnected,
    AlreadyConnecting,
    ProvisioningFailure,
    TeardownFailure,
    TransitionInProgress,
)
from .models import ConnectionPhase, ConnectionState, Route
from .ports import TunnelProvisioner
from .selector import select_best


StateObserver = Callable[[ConnectionState], None]
RoutesProvider = Callable[[], List[Route]]


class ConnectionLifecycleManager:
    """
    Owner of the connection state.

    Every check on the current phase happens before the first await, so
    on a single event loop two commands can never both pass the same
    precondition.
    """

    def __init__(
        self,
        provisioner: TunnelProvisioner,
        routes_provider: Optional[RoutesProvider] = None,
    ):
        """
        Initialize the manager.

        Args:
            provisioner: Tunnel provisioning collaborator
            routes_provider: Accessor for the ranked catalog, used when
                connect() is called without a route
        """
        self.provisioner = provisioner
        self.routes_provider = routes_provider or (lambda: [])
        self._state = ConnectionState()
        self._observers: List[StateObserver] = []

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def phase(self) -> ConnectionPhase:
        return self._state.phase

    @property
    def active_route(self) -> Optional[Route]:
        return self._state.route

    @property
    def is_connected(self) -> bool:
        return self._state.connected

    def add_observer(self, observer: StateObserver) -> None:
        """Register a callback receiving every new state."""
        self._observers.append(observer)

    def _transition(self, phase: ConnectionPhase, route: Optional[Route] = None) -> None:
        previous = self._state.phase
        self._state = ConnectionState(phase=phase, route=route)
        logger.debug(f"Connection state {previous.value} -> {phase.value}")

        for observer in list(self._observers):
            try:
                observer(self._state)
            except Exception as e:
                logger.error(f"Connection observer failed: {e}")

    # =========================================================================
    # COMMANDS
    # =========================================================================

    async def connect(self, route: Optional[Route] = None) -> Route:
        """
        Bring up a tunnel over `route`, or over the best ranked route.

        Returns:
            The route now carrying the tunnel

        Raises:
            AlreadyConnecting: a connect is in progress
            AlreadyConnected: a tunnel is active
            TransitionInProgress: a disconnect is in progress
            NoRoutesAvailable: no route given and the catalog is empty
            ProvisioningFailure: the tunnel could not be brought up
        """
        phase = self._state.phase
        if phase == ConnectionPhase.CONNECTING:
            raise AlreadyConnecting()
        if phase == ConnectionPhase.CONNECTED:
            raise AlreadyConnected(self._state.route.id if self._state.route else None)
        if phase == ConnectionPhase.DISCONNECTING:
            raise TransitionInProgress(phase.value)

        if route is None:
            route = select_best(self.routes_provider())

        logger.info(f"Connecting to route: {route.name}")
        self._transition(ConnectionPhase.CONNECTING)

        try:
            await self.provisioner.provision(route)
        except ProvisioningFailure as e:
            logger.error(f"Error connecting to route {route.name}: {e}")
            self._transition(ConnectionPhase.DISCONNECTED)
            raise
        except Exception as e:
            logger.error(f"Error connecting to route {route.name}: {e}")
            self._transition(ConnectionPhase.DISCONNECTED)
            raise ProvisioningFailure(str(e), route.id) from e

        self._transition(ConnectionPhase.CONNECTED, route)
        logger.info(f"Connected to route: {route.name}")
        return route

    async def disconnect(self) -> bool:
        """
        Tear down the active tunnel.

        Always ends Disconnected once teardown is attempted. Calling it
        while already disconnected is a no-op.

        Returns:
            True when the tunnel is down (or there was none)

        Raises:
            TransitionInProgress: a connect or disconnect is in progress
            TeardownFailure: the collaborator reported a failure; the
                state is Disconnected regardless
        """
        phase = self._state.phase
        if phase == ConnectionPhase.DISCONNECTED:
            logger.debug("No active connection")
            return True
        if phase in (ConnectionPhase.CONNECTING, ConnectionPhase.DISCONNECTING):
            raise TransitionInProgress(phase.value)

        route = self._state.route
        logger.info(f"Disconnecting from route: {route.name if route else 'unknown'}")
        self._transition(ConnectionPhase.DISCONNECTING)

        try:
            await self.provisioner.teardown()
        except TeardownFailure as e:
            logger.error(f"Error disconnecting: {e}")
            self._transition(ConnectionPhase.DISCONNECTED)
            raise
        except Exception as e:
            logger.error(f"Error disconnecting: {e}")
            self._transition(ConnectionPhase.DISCONNECTED)
            raise TeardownFailure(str(e)) from e

        self._transition(ConnectionPhase.DISCONNECTED)
        logger.info("Disconnected")
        return True

    async def shutdown(self) -> None:
        """
        Best-effort teardown before process exit. Never raises.
        """
        if not self.is_connected:
            return

        try:
            await self.disconnect()
        except TeardownFailure as e:
            logger.warning(f"Teardown failed during shutdown, forcing cleanup: {e}")
            try:
                await self.provisioner.teardown_all()
            except Exception as cleanup_error:
                logger.error(f"Forced tunnel cleanup failed: {cleanup_error}")
        except Exception as e:
            logger.error(f"Disconnect during shutdown failed: {e}")
