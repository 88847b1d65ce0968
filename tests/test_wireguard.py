"""
Tests for WireGuard Provisioner

Config rendering, `wg show` parsing and wg-quick orchestration against a
fake command runner.
"""

import os
import sys
import random
import asyncio
from pathlib import Path

import pytest

# Add parent for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from route_engine import Route, RouteKind, ProvisioningFailure, TeardownFailure
from tunnel_control import WireGuardProvisioner, InMemoryProvisioner
from tunnel_control.wireguard import (
    interface_name,
    tunnel_address,
    render_config,
    parse_wg_dump,
)
from system_commands import CommandError


ROUTE = Route(
    id="route-0.0.0.0/0-via-192.168.1.1",
    name="Route: 0.0.0.0/0 via 192.168.1.1 (eth0)",
    kind=RouteKind.GATEWAY_ROUTE,
    endpoint_hint="192.168.1.1",
    interface="eth0",
    gateway="192.168.1.1",
)

WG_DUMP = (
    "rp0a1b2c3d4e\tPRIVKEY\tPUBKEY\t51820\toff\n"
    "rp0a1b2c3d4e\tPEERKEY\t(none)\t192.168.1.1:51820\t0.0.0.0/0\t1700000000\t4096\t2048\t25\n"
    "rp0a1b2c3d4e\tPEERKEY2\t(none)\t10.0.0.1:51820\t10.0.0.0/8\t0\t100\t50\toff\n"
)


class FakeRunner:
    """Command runner answering wg / wg-quick from a script."""

    def __init__(self, up_rc: int = 0, down_rc: int = 0, missing: bool = False):
        self.up_rc = up_rc
        self.down_rc = down_rc
        self.missing = missing
        self.calls = []

    async def run(self, *argv, timeout=None, input_text=None):
        self.calls.append((argv, input_text))
        if self.missing:
            raise CommandError(f"executable not found: {argv[0]}")

        cmd = [a for a in argv if a != "sudo"]
        if cmd[:2] == ["wg", "genkey"]:
            return 0, "PRIVATEKEY=\n", ""
        if cmd[:2] == ["wg", "pubkey"]:
            return 0, "PUBLICKEY=\n", ""
        if cmd[:2] == ["wg", "show"]:
            return 0, WG_DUMP, ""
        if cmd[:2] == ["wg-quick", "up"]:
            return self.up_rc, "", "" if self.up_rc == 0 else "RTNETLINK answers: Operation not permitted"
        if cmd[:2] == ["wg-quick", "down"]:
            return self.down_rc, "", "" if self.down_rc == 0 else "is not a WireGuard interface"
        return 1, "", "unexpected command"

    def is_installed(self, program):
        return not self.missing

    def commands(self):
        return [[a for a in argv if a != "sudo"][:2] for argv, _ in self.calls]


class TestConfigRendering:
    """Test config and name helpers."""

    def test_interface_name_deterministic(self):
        assert interface_name(ROUTE) == interface_name(ROUTE)
        assert interface_name(ROUTE).startswith("rp")
        assert len(interface_name(ROUTE)) <= 15

    def test_interface_name_distinct(self):
        other = Route(id="eth0", name="eth0", kind=RouteKind.PHYSICAL_INTERFACE)
        assert interface_name(ROUTE) != interface_name(other)

    def test_tunnel_address(self):
        address = tunnel_address(random.Random(7))
        octets = address.split("/")[0].split(".")
        assert address.endswith(".1/24")
        assert octets[0] == "10"
        assert 1 <= int(octets[1]) <= 255

    def test_render_config(self):
        config = render_config(
            private_key="PRIV",
            address="10.8.0.1/24",
            peer_public_key="PEER",
            endpoint="192.168.1.1:51820",
        )
        assert config.startswith("[Interface]\n")
        assert "PrivateKey = PRIV\n" in config
        assert "Address = 10.8.0.1/24\n" in config
        assert "DNS = 8.8.8.8, 1.1.1.1\n" in config
        assert "MTU = 1420\n" in config
        assert "[Peer]\nPublicKey = PEER\n" in config
        assert "Endpoint = 192.168.1.1:51820\n" in config
        assert "AllowedIPs = 0.0.0.0/0\n" in config
        assert config.endswith("PersistentKeepalive = 25\n")


class TestWgDump:
    """Test `wg show all dump` parsing."""

    def test_totals(self):
        status = parse_wg_dump(WG_DUMP)
        assert status["total_rx"] == 4196
        assert status["total_tx"] == 2098

    def test_interfaces(self):
        (iface,) = parse_wg_dump(WG_DUMP)["interfaces"]
        assert iface["name"] == "rp0a1b2c3d4e"
        assert iface["listen_port"] == "51820"
        assert len(iface["peers"]) == 2
        assert iface["peers"][0]["endpoint"] == "192.168.1.1:51820"
        assert iface["peers"][0]["latest_handshake"] == 1700000000

    def test_empty(self):
        assert parse_wg_dump("") == {"interfaces": [], "total_rx": 0, "total_tx": 0}


class TestWireGuardProvisioner:
    """Test WireGuardProvisioner functionality."""

    def make(self, tmp_path, **kwargs):
        self.runner = FakeRunner(**kwargs)
        return WireGuardProvisioner(
            config_dir=tmp_path / "configs",
            runner=self.runner,
            peer_public_key="SERVERKEY=",
            use_sudo=True,
        )

    def test_provision(self, tmp_path):
        provisioner = self.make(tmp_path)
        asyncio.run(provisioner.provision(ROUTE))

        path = provisioner.config_path(ROUTE)
        assert provisioner.active_config == path
        assert path.exists()
        content = path.read_text()
        assert "PrivateKey = PRIVATEKEY=" in content
        assert "PublicKey = SERVERKEY=" in content
        assert "Endpoint = 192.168.1.1:51820" in content
        assert self.runner.commands() == [["wg", "genkey"], ["wg", "pubkey"], ["wg-quick", "up"]]
        assert self.runner.calls[1][1] == "PRIVATEKEY=\n"
        assert self.runner.calls[-1][0][0] == "sudo"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_config_permissions(self, tmp_path):
        provisioner = self.make(tmp_path)
        asyncio.run(provisioner.provision(ROUTE))
        mode = os.stat(provisioner.config_path(ROUTE)).st_mode & 0o777
        assert mode == 0o600

    def test_generates_peer_key_when_unset(self, tmp_path):
        runner = FakeRunner()
        provisioner = WireGuardProvisioner(config_dir=tmp_path, runner=runner, use_sudo=False)
        asyncio.run(provisioner.provision(ROUTE))
        assert runner.commands().count(["wg", "genkey"]) == 2
        assert runner.calls[-1][0][0] == "wg-quick"

    def test_provision_failure_removes_config(self, tmp_path):
        provisioner = self.make(tmp_path, up_rc=1)
        with pytest.raises(ProvisioningFailure) as exc_info:
            asyncio.run(provisioner.provision(ROUTE))

        assert "Operation not permitted" in str(exc_info.value)
        assert exc_info.value.route_id == ROUTE.id
        assert not provisioner.config_path(ROUTE).exists()
        assert provisioner.active_config is None

    def test_missing_tooling(self, tmp_path):
        provisioner = self.make(tmp_path, missing=True)
        assert not provisioner.is_available()
        with pytest.raises(ProvisioningFailure):
            asyncio.run(provisioner.provision(ROUTE))

    def test_teardown(self, tmp_path):
        provisioner = self.make(tmp_path)

        async def scenario():
            await provisioner.provision(ROUTE)
            await provisioner.teardown()

        asyncio.run(scenario())
        assert provisioner.active_config is None
        assert not provisioner.config_path(ROUTE).exists()
        assert self.runner.commands()[-1] == ["wg-quick", "down"]

    def test_teardown_without_tunnel(self, tmp_path):
        provisioner = self.make(tmp_path)
        asyncio.run(provisioner.teardown())
        assert self.runner.calls == []

    def test_teardown_failure(self, tmp_path):
        provisioner = self.make(tmp_path, down_rc=1)

        async def scenario():
            await provisioner.provision(ROUTE)
            await provisioner.teardown()

        with pytest.raises(TeardownFailure):
            asyncio.run(scenario())
        assert provisioner.config_path(ROUTE).exists()
        assert provisioner.active_config is None

    def test_teardown_failure_leaves_config_for_cleanup(self, tmp_path):
        """Test a failed teardown stops tracking the tunnel and teardown_all sweeps it."""
        provisioner = self.make(tmp_path, down_rc=1)

        async def scenario():
            await provisioner.provision(ROUTE)
            with pytest.raises(TeardownFailure):
                await provisioner.teardown()
            status = await provisioner.status()
            await provisioner.teardown()
            downs = self.runner.commands().count(["wg-quick", "down"])
            await provisioner.teardown_all()
            return status, downs

        status, downs = asyncio.run(scenario())
        assert status["interface"] is None
        assert downs == 1
        assert list((tmp_path / "configs").glob("*.conf")) == []
        assert self.runner.commands().count(["wg-quick", "down"]) == 2

    def test_teardown_all(self, tmp_path):
        """Test every generated config is brought down and removed, failures included."""
        provisioner = self.make(tmp_path, down_rc=1)
        other = Route(id="eth0", name="eth0", kind=RouteKind.PHYSICAL_INTERFACE)

        async def scenario():
            await provisioner.provision(ROUTE)
            provisioner.active_config = None
            await provisioner.provision(other)
            await provisioner.teardown_all()

        asyncio.run(scenario())
        assert list((tmp_path / "configs").glob("*.conf")) == []
        assert provisioner.active_config is None
        assert self.runner.commands().count(["wg-quick", "down"]) == 2

    def test_status(self, tmp_path):
        provisioner = self.make(tmp_path)
        status = asyncio.run(provisioner.status())
        assert status["backend"] == "wireguard"
        assert status["interface"] is None
        assert status["total_rx"] == 4196


class TestInMemoryProvisioner:
    """Test the in-memory tunnel."""

    def test_provision_and_teardown(self):
        provisioner = InMemoryProvisioner()

        async def scenario():
            await provisioner.provision(ROUTE)
            up = await provisioner.status()
            await provisioner.teardown()
            return up, await provisioner.status()

        up, down = asyncio.run(scenario())
        assert up["interface_up"] is True
        assert up["route_id"] == ROUTE.id
        assert down["interface_up"] is False
        assert provisioner.teardowns == 1

    def test_scripted_failures(self):
        provisioner = InMemoryProvisioner(fail_provision=True, fail_teardown=True)
        with pytest.raises(ProvisioningFailure):
            asyncio.run(provisioner.provision(ROUTE))
        with pytest.raises(TeardownFailure):
            asyncio.run(provisioner.teardown())
        assert provisioner.provisioned == [ROUTE.id]


# =============================================================================
# RUN TESTS
# =============================================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v"])
