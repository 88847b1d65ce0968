"""
In-Memory Provisioner

Tunnel provisioner that records calls instead of touching the system.
Used by the test suite and the gateway's simulation mode.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional

from route_engine.errors import ProvisioningFailure, TeardownFailure
from route_engine.models import Route
from route_engine.ports import TunnelProvisioner


class InMemoryProvisioner(TunnelProvisioner):
    """Scriptable fake tunnel."""

    def __init__(self, fail_provision: bool = False, fail_teardown: bool = False):
        self.fail_provision = fail_provision
        self.fail_teardown = fail_teardown

        self.active: Optional[Route] = None
        self.connected_at: Optional[datetime] = None
        self.provisioned: List[str] = []
        self.teardowns = 0
        self.teardown_all_calls = 0

        # When set, provision() waits on it before completing
        self.gate: Optional[asyncio.Event] = None

    async def provision(self, route: Route) -> None:
        if self.gate is not None:
            await self.gate.wait()

        self.provisioned.append(route.id)
        if self.fail_provision:
            raise ProvisioningFailure("simulated provisioning failure", route.id)

        self.active = route
        self.connected_at = datetime.utcnow()

    async def teardown(self) -> None:
        self.teardowns += 1
        if self.fail_teardown:
            raise TeardownFailure("simulated teardown failure")
        self.active = None
        self.connected_at = None

    async def teardown_all(self) -> None:
        self.teardown_all_calls += 1
        self.active = None
        self.connected_at = None

    async def status(self) -> Dict[str, Any]:
        return {
            "backend": "memory",
            "interface_up": self.active is not None,
            "route_id": self.active.id if self.active else None,
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
        }
