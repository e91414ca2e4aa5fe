"""
Providers package - Chain adapter implementations.
"""

from chain_gateway.providers.base import ChainAdapter
from chain_gateway.providers.evm import EVMAdapter
from chain_gateway.providers.solana import SolanaAdapter


__all__ = [
    "ChainAdapter",
    "EVMAdapter",
    "SolanaAdapter",
]
