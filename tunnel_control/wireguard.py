"""
WireGuard Provisioner

Brings a WireGuard tunnel up over a route with `wg-quick`.

Each route gets its own config file named after a short, deterministic
interface name. The config file is the only record of an active tunnel
and is removed once the tunnel is down.
"""

import hashlib
import os
import random
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from route_constants import (
    WIREGUARD_PORT,
    WIREGUARD_MTU,
    WIREGUARD_KEEPALIVE,
    WIREGUARD_DNS,
)
from route_engine.errors import ProvisioningFailure, TeardownFailure
from route_engine.models import Route
from route_engine.ports import TunnelProvisioner
from system_commands import CommandRunner, CommandError


INTERFACE_PREFIX = "rp"


# =============================================================================
# CONFIG RENDERING
# =============================================================================

def interface_name(route: Route) -> str:
    """
    Interface name for a route's tunnel.

    wg-quick derives the interface from the file name, which must fit in
    15 characters of [a-zA-Z0-9_=+.-].
    """
    digest = hashlib.sha1(route.id.encode()).hexdigest()[:10]
    return f"{INTERFACE_PREFIX}{digest}"


def tunnel_address(rng: Optional[random.Random] = None) -> str:
    """Pick a private /24 tunnel address."""
    rng = rng or random.Random()
    subnet = rng.randint(1, 255)
    host = rng.randint(1, 254)
    return f"10.{subnet}.{host}.1/24"


def render_config(
    private_key: str,
    address: str,
    peer_public_key: str,
    endpoint: str,
    dns: str = WIREGUARD_DNS,
    mtu: int = WIREGUARD_MTU,
    keepalive: int = WIREGUARD_KEEPALIVE,
    allowed_ips: str = "0.0.0.0/0",
) -> str:
    """Render a wg-quick configuration file."""
    lines = [
        "[Interface]",
        f"PrivateKey = {private_key}",
        f"Address = {address}",
        f"DNS = {dns}",
        f"MTU = {mtu}",
        "",
        "[Peer]",
        f"PublicKey = {peer_public_key}",
        f"Endpoint = {endpoint}",
        f"AllowedIPs = {allowed_ips}",
        f"PersistentKeepalive = {keepalive}",
    ]
    return "\n".join(lines) + "\n"


def parse_wg_dump(output: str) -> Dict[str, Any]:
    """
    Parse `wg show all dump` into per-interface traffic totals.

    Interface lines have 5 tab-separated fields, peer lines have 9.
    """
    interfaces: Dict[str, Dict[str, Any]] = {}

    for line in output.splitlines():
        parts = line.strip().split("\t")
        if len(parts) == 5:
            interfaces.setdefault(parts[0], {
                "name": parts[0],
                "public_key": parts[2],
                "listen_port": parts[3],
                "peers": [],
                "rx": 0,
                "tx": 0,
            })
        elif len(parts) >= 9:
            iface = interfaces.setdefault(parts[0], {
                "name": parts[0], "public_key": None, "listen_port": None,
                "peers": [], "rx": 0, "tx": 0,
            })
            rx = int(parts[6]) if parts[6].isdigit() else 0
            tx = int(parts[7]) if parts[7].isdigit() else 0
            iface["peers"].append({
                "public_key": parts[1],
                "endpoint": parts[3],
                "allowed_ips": parts[4],
                "latest_handshake": int(parts[5]) if parts[5].isdigit() else 0,
                "rx": rx,
                "tx": tx,
            })
            iface["rx"] += rx
            iface["tx"] += tx

    return {
        "interfaces": list(interfaces.values()),
        "total_rx": sum(i["rx"] for i in interfaces.values()),
        "total_tx": sum(i["tx"] for i in interfaces.values()),
    }


# =============================================================================
# PROVISIONER
# =============================================================================

class WireGuardProvisioner(TunnelProvisioner):
    """
    Tunnel provisioner backed by wg / wg-quick.

    Only one tunnel is tracked at a time; the lifecycle manager guarantees
    provision() is never called while one is active.
    """

    def __init__(
        self,
        config_dir: Path,
        runner: Optional[CommandRunner] = None,
        peer_public_key: Optional[str] = None,
        port: int = WIREGUARD_PORT,
        dns: str = WIREGUARD_DNS,
        mtu: int = WIREGUARD_MTU,
        use_sudo: bool = True,
        command_timeout_secs: float = 30.0,
    ):
        """
        Initialize the provisioner.

        Args:
            config_dir: Directory holding generated wg-quick configs
            runner: Command runner
            peer_public_key: Remote peer key; a throwaway one is generated when unset
            port: Remote endpoint port
            dns: DNS servers pushed into the tunnel config
            mtu: Tunnel MTU
            use_sudo: Prefix wg-quick with sudo
            command_timeout_secs: Timeout for each wg / wg-quick call
        """
        self.config_dir = Path(config_dir)
        self.runner = runner or CommandRunner()
        self.peer_public_key = peer_public_key
        self.port = port
        self.dns = dns
        self.mtu = mtu
        self.use_sudo = use_sudo
        self.timeout = command_timeout_secs

        self.active_config: Optional[Path] = None

    def _wg_quick(self, action: str, config: Path) -> List[str]:
        argv = ["wg-quick", action, str(config)]
        return ["sudo", *argv] if self.use_sudo else argv

    def config_path(self, route: Route) -> Path:
        return self.config_dir / f"{interface_name(route)}.conf"

    def _ensure_config_dir(self) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(self.config_dir, 0o700)

    async def generate_keypair(self) -> Tuple[str, str]:
        """Generate a (private, public) key pair with `wg`."""
        rc, private_key, err = await self.runner.run("wg", "genkey", timeout=self.timeout)
        if rc != 0 or not private_key.strip():
            raise ProvisioningFailure(f"wg genkey failed: {err.strip()}")

        private_key = private_key.strip()
        rc, public_key, err = await self.runner.run(
            "wg", "pubkey", timeout=self.timeout, input_text=private_key + "\n",
        )
        if rc != 0 or not public_key.strip():
            raise ProvisioningFailure(f"wg pubkey failed: {err.strip()}")

        return private_key, public_key.strip()

    async def build_config(self, route: Route) -> str:
        """Render the tunnel config for a route with fresh key material."""
        private_key, _ = await self.generate_keypair()
        peer_key = self.peer_public_key
        if not peer_key:
            _, peer_key = await self.generate_keypair()

        return render_config(
            private_key=private_key,
            address=tunnel_address(),
            peer_public_key=peer_key,
            endpoint=f"{route.endpoint_hint}:{self.port}",
            dns=self.dns,
            mtu=self.mtu,
        )

    def _write_config(self, path: Path, content: str) -> None:
        self._ensure_config_dir()
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)

    async def provision(self, route: Route) -> None:
        path = self.config_path(route)
        try:
            content = await self.build_config(route)
            self._write_config(path, content)
            logger.info(f"Starting WireGuard tunnel {path.stem} for route {route.name}")
            rc, out, err = await self.runner.run(*self._wg_quick("up", path), timeout=self.timeout)
        except CommandError as e:
            path.unlink(missing_ok=True)
            raise ProvisioningFailure(str(e), route.id) from e
        except OSError as e:
            raise ProvisioningFailure(f"cannot write config: {e}", route.id) from e

        if rc != 0:
            path.unlink(missing_ok=True)
            raise ProvisioningFailure(f"wg-quick up failed: {(err or out).strip()}", route.id)

        self.active_config = path
        logger.info(f"WireGuard tunnel {path.stem} is up")

    async def teardown(self) -> None:
        path = self.active_config
        if path is None:
            logger.debug("No WireGuard tunnel tracked, nothing to tear down")
            return

        # The connection counts as down either way; a config left behind
        # is swept by teardown_all()
        self.active_config = None
        try:
            rc, out, err = await self.runner.run(*self._wg_quick("down", path), timeout=self.timeout)
        except CommandError as e:
            logger.warning(f"Leaving {path.name} for forced cleanup")
            raise TeardownFailure(str(e)) from e

        if rc != 0:
            logger.warning(f"Leaving {path.name} for forced cleanup")
            raise TeardownFailure(f"wg-quick down failed: {(err or out).strip()}")

        path.unlink(missing_ok=True)
        logger.info(f"WireGuard tunnel {path.stem} is down")

    async def teardown_all(self) -> None:
        if not self.config_dir.exists():
            return

        for path in sorted(self.config_dir.glob(f"{INTERFACE_PREFIX}*.conf")):
            try:
                rc, out, err = await self.runner.run(*self._wg_quick("down", path), timeout=self.timeout)
                if rc != 0:
                    logger.warning(f"wg-quick down {path.stem} failed: {(err or out).strip()}")
            except CommandError as e:
                logger.warning(f"wg-quick down {path.stem} failed: {e}")
            path.unlink(missing_ok=True)

        self.active_config = None
        logger.info("All WireGuard tunnels stopped")

    async def status(self) -> Dict[str, Any]:
        status: Dict[str, Any] = {
            "backend": "wireguard",
            "interface": self.active_config.stem if self.active_config else None,
        }
        try:
            rc, out, err = await self.runner.run("wg", "show", "all", "dump", timeout=self.timeout)
        except CommandError as e:
            status["error"] = str(e)
            return status

        if rc != 0:
            status["error"] = err.strip()
            return status

        status.update(parse_wg_dump(out))
        return status

    def is_available(self) -> bool:
        return self.runner.is_installed("wg") and self.runner.is_installed("wg-quick")
