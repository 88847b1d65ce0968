"""
Gateway Configuration

Settings for the RoutePilot gateway.
"""

import os
from functools import lru_cache
from dataclasses import dataclass
from pathlib import Path

from route_constants import (
    ANALYSIS_INTERVAL_SECS,
    CACHE_TTL_SECS,
    WIREGUARD_PORT,
    WIREGUARD_MTU,
    WIREGUARD_DNS,
)


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Gateway settings with environment variable support."""

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # API
    api_prefix: str = "/api/v1"
    api_title: str = "RoutePilot Gateway"
    api_version: str = "1.0.0"

    # Analysis
    analysis_interval: float = ANALYSIS_INTERVAL_SECS
    cache_ttl: float = CACHE_TTL_SECS
    autostart_analysis: bool = False

    # Collaborators: "system" / "static" probe, "wireguard" / "memory" tunnel
    probe_mode: str = "system"
    tunnel_mode: str = "wireguard"

    # WireGuard
    wg_config_dir: str = str(Path.home() / ".routepilot" / "configs")
    wg_peer_public_key: str = ""
    wg_port: int = WIREGUARD_PORT
    wg_mtu: int = WIREGUARD_MTU
    wg_dns: str = WIREGUARD_DNS
    wg_use_sudo: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        return cls(
            host=os.getenv("ROUTEPILOT_HOST", "127.0.0.1"),
            port=int(os.getenv("ROUTEPILOT_PORT", "8000")),
            debug=_flag("ROUTEPILOT_DEBUG", "false"),
            log_level=os.getenv("ROUTEPILOT_LOG_LEVEL", "INFO").upper(),
            api_prefix=os.getenv("ROUTEPILOT_API_PREFIX", "/api/v1"),
            api_title=os.getenv("ROUTEPILOT_API_TITLE", "RoutePilot Gateway"),
            api_version=os.getenv("ROUTEPILOT_API_VERSION", "1.0.0"),
            analysis_interval=float(os.getenv("ROUTEPILOT_ANALYSIS_INTERVAL", str(ANALYSIS_INTERVAL_SECS))),
            cache_ttl=float(os.getenv("ROUTEPILOT_CACHE_TTL", str(CACHE_TTL_SECS))),
            autostart_analysis=_flag("ROUTEPILOT_AUTOSTART_ANALYSIS", "false"),
            probe_mode=os.getenv("ROUTEPILOT_PROBE_MODE", "system").lower(),
            tunnel_mode=os.getenv("ROUTEPILOT_TUNNEL_MODE", "wireguard").lower(),
            wg_config_dir=os.getenv(
                "ROUTEPILOT_WG_CONFIG_DIR", str(Path.home() / ".routepilot" / "configs")
            ),
            wg_peer_public_key=os.getenv("ROUTEPILOT_WG_PEER_PUBLIC_KEY", ""),
            wg_port=int(os.getenv("ROUTEPILOT_WG_PORT", str(WIREGUARD_PORT))),
            wg_mtu=int(os.getenv("ROUTEPILOT_WG_MTU", str(WIREGUARD_MTU))),
            wg_dns=os.getenv("ROUTEPILOT_WG_DNS", WIREGUARD_DNS),
            wg_use_sudo=_flag("ROUTEPILOT_WG_USE_SUDO", "true"),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
