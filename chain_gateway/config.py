"""
Chain Gateway - Configuration.

============================================================
PURPOSE
============================================================
Network table and gateway tuning, loaded from the environment.

ENVIRONMENT:
- SOLANA_RPC_URL            (default: public mainnet-beta endpoint)
- POLYGON_RPC_URL           (default: https://polygon-rpc.com)
- ETHEREUM_RPC_URL          (unset: Ethereum is served from fallback)
- GATEWAY_UPSTREAM_TIMEOUT  (seconds, default 5.0)
- GATEWAY_NFT_DISPLAY_CAP   (default 10)
- GATEWAY_HOST / GATEWAY_PORT
- LOG_LEVEL

============================================================
"""

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from dotenv import load_dotenv

from chain_gateway.exceptions import ConfigurationError
from chain_gateway.models import ChainFamily, NetworkConfig


logger = logging.getLogger(__name__)


DEFAULT_SOLANA_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_POLYGON_RPC_URL = "https://polygon-rpc.com"


def default_networks() -> Dict[str, NetworkConfig]:
    """Networks known to the gateway, without RPC endpoints."""
    return {
        "solana": NetworkConfig(
            name="solana",
            family=ChainFamily.SOLANA,
            display_name="Solana Mainnet",
            native_symbol="SOL",
            native_decimals=9,
        ),
        "polygon": NetworkConfig(
            name="polygon",
            family=ChainFamily.EVM,
            display_name="Polygon",
            native_symbol="POL",
            native_decimals=18,
            chain_id=137,
        ),
        "ethereum": NetworkConfig(
            name="ethereum",
            family=ChainFamily.EVM,
            display_name="Ethereum Mainnet",
            native_symbol="ETH",
            native_decimals=18,
            chain_id=1,
        ),
    }


# ============================================================
# GATEWAY CONFIGURATION
# ============================================================

@dataclass
class GatewayConfig:
    """
    Gateway configuration.

    A network whose `rpc_url` is empty has no live adapter; every query
    against it is served from the fallback path.
    """

    networks: Dict[str, NetworkConfig] = field(default_factory=default_networks)
    """Known networks by name."""

    upstream_timeout: float = 5.0
    """Budget for one adapter call, in seconds."""

    nft_display_cap: int = 10
    """Maximum NFT items listed per response."""

    default_evm_network: str = "polygon"
    """Network used by EVM routes when none is given."""

    game_stats_network: str = "polygon"
    """Network reported for game statistics."""

    host: str = "0.0.0.0"
    port: int = 7000
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.upstream_timeout <= 0:
            raise ConfigurationError("upstream_timeout must be positive", "GATEWAY_UPSTREAM_TIMEOUT")
        if self.nft_display_cap < 1:
            raise ConfigurationError("nft_display_cap must be at least 1", "GATEWAY_NFT_DISPLAY_CAP")
        for name in (self.default_evm_network, self.game_stats_network):
            if name not in self.networks:
                raise ConfigurationError(f"Unknown network '{name}'", "networks")

    def network(self, name: str) -> Optional[NetworkConfig]:
        return self.networks.get(name.strip().lower()) if name else None

    def with_rpc_urls(self, urls: Dict[str, Optional[str]]) -> "GatewayConfig":
        """Copy of this config with RPC endpoints set per network name."""
        networks = dict(self.networks)
        for name, url in urls.items():
            if name not in networks:
                raise ConfigurationError(f"Unknown network '{name}'", f"{name.upper()}_RPC_URL")
            networks[name] = replace(networks[name], rpc_url=url or None)
        return replace(self, networks=networks)

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        """
        Create config from environment variables (and a `.env` file).

        Raises:
            ConfigurationError: If a numeric setting does not parse
        """
        load_dotenv()

        config = cls(
            upstream_timeout=_env_number("GATEWAY_UPSTREAM_TIMEOUT", 5.0, float),
            nft_display_cap=_env_number("GATEWAY_NFT_DISPLAY_CAP", 10, int),
            default_evm_network=os.getenv("GATEWAY_DEFAULT_EVM_NETWORK", "polygon"),
            host=os.getenv("GATEWAY_HOST", "0.0.0.0"),
            port=_env_number("GATEWAY_PORT", 7000, int),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

        config = config.with_rpc_urls({
            "solana": os.getenv("SOLANA_RPC_URL", DEFAULT_SOLANA_RPC_URL),
            "polygon": os.getenv("POLYGON_RPC_URL", DEFAULT_POLYGON_RPC_URL),
            "ethereum": os.getenv("ETHEREUM_RPC_URL"),
        })

        live = [name for name, network in config.networks.items() if network.is_live]
        logger.info(f"Gateway config loaded (live networks: {', '.join(live) or 'none'})")
        return config


def _env_number(key: str, default, cast):
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}", key, e)
