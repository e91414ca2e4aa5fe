"""
Chain Gateway Package - One read-only API over Solana and EVM chains.

Features:
- Per-family address and transaction-hash validation before any I/O
- Solana and EVM adapters over persistent JSON-RPC clients
- One response schema per capability, regardless of chain
- Flagged fallback data when an upstream is unreachable

Quick Start:
    from chain_gateway import GatewayConfig, create_gateway

    async def show_wallet():
        gateway = create_gateway(GatewayConfig.from_env())
        try:
            envelope = await gateway.get_wallet_info(
                "DYw8jCTfwHNRJhhmFcbXvVDTqWMEVFBX6ZKUmG5CNSKK",
                chain="solana",
            )
            data = envelope.data
            print(f"Balance: {data['nativeBalance']} {data['nativeSymbol']}")
            print(f"Provenance: {data['provenance']}")
        finally:
            await gateway.close()

Provenance:
- authoritative: values read from the chain
- fallback: placeholder values; `fallbackReason` says why

Adding a Network:
    config = GatewayConfig().with_rpc_urls({
        "ethereum": "https://eth.example.org",
    })
    gateway = create_gateway(config)
"""

from chain_gateway.config import GatewayConfig, default_networks
from chain_gateway.exceptions import (
    AdapterError,
    AddressInvalid,
    ConfigurationError,
    GatewayError,
    InvalidAddressFormat,
    InvalidTransactionFormat,
    MissingParameterError,
    UnsupportedChainError,
    UpstreamRejected,
    UpstreamUnavailable,
    ValidationError,
)
from chain_gateway.fallback import FallbackGenerator
from chain_gateway.gateway import QueryGateway, RequestTrace, create_gateway
from chain_gateway.models import (
    Capability,
    ChainFamily,
    GatewayState,
    NetworkConfig,
    NormalizedEnvelope,
    Provenance,
    QueryOutcome,
    QueryRequest,
)
from chain_gateway.normalizer import ResponseNormalizer
from chain_gateway.providers import ChainAdapter, EVMAdapter, SolanaAdapter
from chain_gateway.rpc import JsonRpcClient
from chain_gateway.validation import AddressValidator


__version__ = "1.0.0"

__all__ = [
    # Gateway
    "QueryGateway",
    "RequestTrace",
    "create_gateway",

    # Config
    "GatewayConfig",
    "default_networks",

    # Models
    "Capability",
    "ChainFamily",
    "GatewayState",
    "NetworkConfig",
    "NormalizedEnvelope",
    "Provenance",
    "QueryOutcome",
    "QueryRequest",

    # Components
    "AddressValidator",
    "FallbackGenerator",
    "ResponseNormalizer",
    "JsonRpcClient",

    # Providers
    "ChainAdapter",
    "EVMAdapter",
    "SolanaAdapter",

    # Exceptions
    "GatewayError",
    "ValidationError",
    "InvalidAddressFormat",
    "InvalidTransactionFormat",
    "MissingParameterError",
    "UnsupportedChainError",
    "AdapterError",
    "UpstreamUnavailable",
    "UpstreamRejected",
    "AddressInvalid",
    "ConfigurationError",
]
