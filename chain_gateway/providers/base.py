"""
Chain Adapter Interface.

Adapters are selected once per request by network name. Each adapter
implements the capability contract on its own; there is no shared base
class and no shared state beyond the injected RPC client.

Every adapter method:
- receives only `Address` values already validated for its family
- returns a `NativeResponse` holding chain-native fields and units
- raises `UpstreamUnavailable` / `UpstreamRejected` on upstream failure
- never substitutes values of its own
"""

from typing import Any, Optional, Protocol, runtime_checkable

from chain_gateway.exceptions import AddressInvalid, UpstreamRejected
from chain_gateway.models import Address, Capability, ChainFamily, NativeResponse, NetworkConfig


@runtime_checkable
class ChainAdapter(Protocol):
    """Capability contract shared by all chain adapters."""

    name: str
    family: ChainFamily
    network: NetworkConfig
    capabilities: frozenset[Capability]

    def supports(self, capability: Capability) -> bool: ...

    async def get_wallet_info(self, address: Address) -> NativeResponse: ...

    async def get_token_info(self, wallet: Address, contract: Address) -> NativeResponse: ...

    async def get_nft_collection(
        self,
        wallet: Address,
        contract: Address,
        limit: int,
    ) -> NativeResponse: ...

    async def verify_transaction(self, tx_hash: str) -> NativeResponse: ...

    async def close(self) -> None: ...


def ensure_family(adapter_name: str, family: ChainFamily, *addresses: Optional[Address]) -> None:
    """Refuse addresses validated for a different family."""
    for address in addresses:
        if address is None or address.family != family:
            raise AddressInvalid(
                message=f"{adapter_name} received a non-{family.value} address: {address!r}",
                adapter_name=adapter_name,
                chain=family.value,
            )


def require(value: Any, description: str, adapter_name: str, chain: str) -> Any:
    """Return `value`, or raise UpstreamRejected when the reply lacks it."""
    if value is None:
        raise UpstreamRejected(
            message=f"Reply is missing {description}",
            adapter_name=adapter_name,
            chain=chain,
        )
    return value
