"""
EVM Adapter - Live reads against an Ethereum-compatible JSON-RPC node.

One adapter instance serves one network (Polygon, Ethereum, ...); the chain
id travels with the network config. Contract reads go through `eth_call`
against the standard ERC-20 / ERC-721 read methods plus two optional
game-specific methods:

- getRewardPoints(address)
- getPlayerLevel(address)

Contracts that do not implement the game methods simply have no game
extension. Any other RPC or ABI decoding failure raises an adapter error;
values are never invented here.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from chain_gateway.exceptions import UpstreamRejected
from chain_gateway.models import Address, Capability, ChainFamily, NativeResponse, NetworkConfig
from chain_gateway.providers import abi
from chain_gateway.providers.base import ensure_family
from chain_gateway.rpc import JsonRpcClient


logger = logging.getLogger(__name__)


# ERC-20
BALANCE_OF = "balanceOf(address)"
SYMBOL = "symbol()"
DECIMALS = "decimals()"
TOTAL_SUPPLY = "totalSupply()"

# Game extension
GET_REWARD_POINTS = "getRewardPoints(address)"
GET_PLAYER_LEVEL = "getPlayerLevel(address)"

# ERC-721 (+ Enumerable)
TOKEN_OF_OWNER_BY_INDEX = "tokenOfOwnerByIndex(address,uint256)"
TOKEN_URI = "tokenURI(uint256)"
OWNER_OF = "ownerOf(uint256)"

BLOCK_TAG = "latest"

# ERC-20 decimals() is a uint8
MAX_TOKEN_DECIMALS = 255


class EVMAdapter:
    """EVM capability adapter backed by one persistent RPC client per network."""

    family = ChainFamily.EVM
    capabilities = frozenset({
        Capability.WALLET_INFO,
        Capability.TOKEN_INFO,
        Capability.NFT_COLLECTION,
        Capability.VERIFY_TRANSACTION,
    })

    def __init__(self, network: NetworkConfig, rpc: JsonRpcClient) -> None:
        self.network = network
        self.name = f"evm:{network.name}"
        self._rpc = rpc

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def _response(self, capability: Capability, **fields: Any) -> NativeResponse:
        return NativeResponse(
            adapter_name=self.name,
            network=self.network.name,
            capability=capability,
            fields=fields,
        )

    # ─────────────────────────────────────────────────────────────
    # Capabilities
    # ─────────────────────────────────────────────────────────────

    async def get_wallet_info(self, address: Address) -> NativeResponse:
        ensure_family(self.name, self.family, address)

        balance, nonce = await asyncio.gather(
            self._rpc.call("eth_getBalance", [address.value, BLOCK_TAG]),
            self._rpc.call("eth_getTransactionCount", [address.value, BLOCK_TAG]),
        )

        return self._response(
            Capability.WALLET_INFO,
            owner=address.value,
            wei=self._hex_int(balance, "balance"),
            nonce=self._hex_int(nonce, "transaction count"),
        )

    async def get_token_info(self, wallet: Address, contract: Address) -> NativeResponse:
        ensure_family(self.name, self.family, wallet, contract)
        owner, token = wallet.value, contract.value

        (
            wei,
            token_balance,
            symbol,
            decimals,
            total_supply,
            reward_points,
            player_level,
        ) = await asyncio.gather(
            self._native_balance(owner),
            self._read(token, abi.decode_uint, BALANCE_OF, owner),
            self._read(token, abi.decode_string, SYMBOL),
            self._read(token, abi.decode_uint, DECIMALS),
            self._read(token, abi.decode_uint, TOTAL_SUPPLY),
            self._read_optional(token, abi.decode_uint, GET_REWARD_POINTS, owner),
            self._read_optional(token, abi.decode_uint, GET_PLAYER_LEVEL, owner),
        )

        if decimals > MAX_TOKEN_DECIMALS:
            raise UpstreamRejected(
                message=f"decimals() out of uint8 range: {decimals}",
                adapter_name=self.name,
                chain=self.network.name,
                context={"contract": token},
            )

        return self._response(
            Capability.TOKEN_INFO,
            owner=owner,
            contract=token,
            chain_id=self.network.chain_id,
            wei=wei,
            token_balance=token_balance,
            symbol=symbol,
            decimals=decimals,
            total_supply=total_supply,
            reward_points=reward_points,
            player_level=player_level,
        )

    async def get_nft_collection(self, wallet: Address, contract: Address, limit: int) -> NativeResponse:
        ensure_family(self.name, self.family, wallet, contract)
        owner, collection = wallet.value, contract.value

        count = await self._read(collection, abi.decode_uint, BALANCE_OF, owner)
        shown = min(count, limit)

        token_ids = await asyncio.gather(*[
            self._read(collection, abi.decode_uint, TOKEN_OF_OWNER_BY_INDEX, owner, index)
            for index in range(shown)
        ])
        items = await asyncio.gather(*[
            self._nft_item(collection, token_id) for token_id in token_ids
        ])

        return self._response(
            Capability.NFT_COLLECTION,
            owner=owner,
            contract=collection,
            balance=count,
            items=list(items),
        )

    async def verify_transaction(self, tx_hash: str) -> NativeResponse:
        tx, receipt = await asyncio.gather(
            self._rpc.call("eth_getTransactionByHash", [tx_hash]),
            self._rpc.call("eth_getTransactionReceipt", [tx_hash]),
        )

        if tx is None:
            logger.info(f"[{self.name}] Transaction {tx_hash} not found")
            return self._response(Capability.VERIFY_TRANSACTION, tx_hash=tx_hash, found=False)

        fields: dict[str, Any] = {
            "tx_hash": tx_hash,
            "found": True,
            "mined": receipt is not None,
            "from": tx.get("from"),
            "to": tx.get("to"),
            "block_number": None,
            "block_timestamp": None,
            "gas_used": None,
            "effective_gas_price": None,
            "status": None,
        }

        if receipt is not None:
            block_number = self._hex_int(receipt.get("blockNumber"), "block number")
            gas_price = receipt.get("effectiveGasPrice") or tx.get("gasPrice")
            block = await self._rpc.call("eth_getBlockByNumber", [hex(block_number), False])
            fields.update({
                "block_number": block_number,
                "block_timestamp": self._hex_int(block.get("timestamp"), "block timestamp") if block else None,
                "gas_used": self._hex_int(receipt.get("gasUsed"), "gas used"),
                "effective_gas_price": self._hex_int(gas_price, "gas price"),
                "status": self._receipt_status(receipt),
            })

        return self._response(Capability.VERIFY_TRANSACTION, **fields)

    # ─────────────────────────────────────────────────────────────
    # Contract reads
    # ─────────────────────────────────────────────────────────────

    async def _native_balance(self, owner: str) -> int:
        result = await self._rpc.call("eth_getBalance", [owner, BLOCK_TAG])
        return self._hex_int(result, "balance")

    async def _read(
        self,
        contract: str,
        decoder: Callable[[str], Any],
        signature: str,
        *args: Any,
    ) -> Any:
        """`eth_call` one read method and decode its return value."""
        data = await self._rpc.call(
            "eth_call",
            [{"to": contract, "data": abi.encode_call(signature, *args)}, BLOCK_TAG],
        )
        try:
            return decoder(data or "0x")
        except abi.AbiDecodingError as e:
            raise UpstreamRejected(
                message=f"Could not decode {signature} from {contract}: {e}",
                adapter_name=self.name,
                chain=self.network.name,
                original_error=e,
            )

    async def _read_optional(
        self,
        contract: str,
        decoder: Callable[[str], Any],
        signature: str,
        *args: Any,
    ) -> Optional[Any]:
        """Like `_read`, but a reverting or missing method yields None."""
        try:
            return await self._read(contract, decoder, signature, *args)
        except UpstreamRejected as e:
            logger.debug(f"[{self.name}] {signature} not available on {contract}: {e.message}")
            return None

    async def _nft_item(self, collection: str, token_id: int) -> dict[str, Any]:
        token_uri, owner = await asyncio.gather(
            self._read(collection, abi.decode_string, TOKEN_URI, token_id),
            self._read(collection, abi.decode_address, OWNER_OF, token_id),
        )
        return {"token_id": token_id, "token_uri": token_uri, "owner": owner}

    def _receipt_status(self, receipt: dict[str, Any]) -> Optional[int]:
        # Pre-Byzantium receipts carry a state root instead of a status
        if receipt.get("status") is None:
            return None
        return self._hex_int(receipt["status"], "receipt status")

    def _hex_int(self, value: Any, description: str) -> int:
        if not isinstance(value, str):
            raise UpstreamRejected(
                message=f"Missing {description} in reply",
                adapter_name=self.name,
                chain=self.network.name,
            )
        try:
            return int(value, 16)
        except ValueError as e:
            raise UpstreamRejected(
                message=f"Invalid hex {description}: {value!r}",
                adapter_name=self.name,
                chain=self.network.name,
                original_error=e,
            )

    async def close(self) -> None:
        await self._rpc.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, chain_id={self.network.chain_id})>"
