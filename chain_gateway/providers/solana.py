"""
Solana Adapter - Live reads against a Solana JSON-RPC node.

All reads use `confirmed` commitment. Values are returned in native units
(lamports, raw token amounts); conversion happens in the normalizer.

Supported capabilities:
- wallet_info: SOL balance, five most recent signatures, SPL token accounts
- token_info: SOL balance plus balance / supply of one SPL mint
- verify_transaction: transaction lookup by signature

NFT enumeration is not offered; the gateway serves it from the fallback path.
"""

import asyncio
import logging
from typing import Any

from chain_gateway.exceptions import UpstreamRejected
from chain_gateway.models import Address, Capability, ChainFamily, NativeResponse, NetworkConfig
from chain_gateway.providers.base import ensure_family, require
from chain_gateway.rpc import JsonRpcClient


logger = logging.getLogger(__name__)


TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
COMMITMENT = "confirmed"
RECENT_SIGNATURE_LIMIT = 5


class SolanaAdapter:
    """Solana capability adapter backed by one persistent RPC client."""

    family = ChainFamily.SOLANA
    capabilities = frozenset({
        Capability.WALLET_INFO,
        Capability.TOKEN_INFO,
        Capability.VERIFY_TRANSACTION,
    })

    def __init__(self, network: NetworkConfig, rpc: JsonRpcClient) -> None:
        self.network = network
        self.name = f"solana:{network.name}"
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
        owner = address.value

        balance, signatures, accounts = await asyncio.gather(
            self._rpc.call("getBalance", [owner, {"commitment": COMMITMENT}]),
            self._rpc.call(
                "getSignaturesForAddress",
                [owner, {"limit": RECENT_SIGNATURE_LIMIT, "commitment": COMMITMENT}],
            ),
            self._rpc.call(
                "getTokenAccountsByOwner",
                [
                    owner,
                    {"programId": TOKEN_PROGRAM_ID},
                    {"encoding": "jsonParsed", "commitment": COMMITMENT},
                ],
            ),
        )

        token_accounts = [
            self._parse_token_account(account)
            for account in self._value(accounts, "token accounts")
        ]

        return self._response(
            Capability.WALLET_INFO,
            owner=owner,
            lamports=self._lamports(balance),
            signature_count=len(signatures or []),
            token_accounts=token_accounts,
        )

    async def get_token_info(self, wallet: Address, contract: Address) -> NativeResponse:
        ensure_family(self.name, self.family, wallet, contract)
        owner, mint = wallet.value, contract.value

        balance, accounts, supply = await asyncio.gather(
            self._rpc.call("getBalance", [owner, {"commitment": COMMITMENT}]),
            self._rpc.call(
                "getTokenAccountsByOwner",
                [owner, {"mint": mint}, {"encoding": "jsonParsed", "commitment": COMMITMENT}],
            ),
            self._rpc.call("getTokenSupply", [mint, {"commitment": COMMITMENT}]),
        )

        supply_value = self._value(supply, "token supply")
        holdings = [
            self._parse_token_account(account)
            for account in self._value(accounts, "token accounts")
        ]

        return self._response(
            Capability.TOKEN_INFO,
            owner=owner,
            mint=mint,
            lamports=self._lamports(balance),
            token_amount=sum(holding["amount"] for holding in holdings),
            decimals=int(require(supply_value.get("decimals"), "supply decimals", self.name, self.family.value)),
            supply_amount=int(require(supply_value.get("amount"), "supply amount", self.name, self.family.value)),
        )

    async def get_nft_collection(self, wallet: Address, contract: Address, limit: int) -> NativeResponse:
        raise UpstreamRejected(
            message=f"{self.name} does not enumerate NFT collections",
            adapter_name=self.name,
            chain=self.family.value,
        )

    async def verify_transaction(self, tx_hash: str) -> NativeResponse:
        tx = await self._rpc.call(
            "getTransaction",
            [
                tx_hash,
                {
                    "commitment": COMMITMENT,
                    "maxSupportedTransactionVersion": 0,
                    "encoding": "json",
                },
            ],
        )

        if tx is None:
            logger.info(f"[{self.name}] Transaction {tx_hash} not found")
            return self._response(Capability.VERIFY_TRANSACTION, signature=tx_hash, found=False)

        meta = require(tx.get("meta"), "transaction meta", self.name, self.family.value)
        message = (tx.get("transaction") or {}).get("message") or {}
        account_keys = message.get("accountKeys") or []

        return self._response(
            Capability.VERIFY_TRANSACTION,
            signature=tx_hash,
            found=True,
            slot=tx.get("slot"),
            block_time=tx.get("blockTime"),
            fee_lamports=meta.get("fee"),
            compute_units=meta.get("computeUnitsConsumed"),
            err=meta.get("err"),
            fee_payer=account_keys[0] if account_keys else None,
        )

    # ─────────────────────────────────────────────────────────────
    # Parsing helpers
    # ─────────────────────────────────────────────────────────────

    def _value(self, result: Any, description: str) -> Any:
        """Unwrap the `{"context": ..., "value": ...}` envelope Solana uses."""
        if not isinstance(result, dict) or "value" not in result:
            raise UpstreamRejected(
                message=f"Malformed {description} reply",
                adapter_name=self.name,
                chain=self.family.value,
                response_body=str(result)[:500],
            )
        return result["value"]

    def _lamports(self, result: Any) -> int:
        value = self._value(result, "balance")
        if not isinstance(value, int):
            raise UpstreamRejected(
                message=f"Balance is not an integer: {value!r}",
                adapter_name=self.name,
                chain=self.family.value,
            )
        return value

    def _parse_token_account(self, account: dict[str, Any]) -> dict[str, Any]:
        try:
            info = account["account"]["data"]["parsed"]["info"]
            token_amount = info["tokenAmount"]
            return {
                "mint": info["mint"],
                "amount": int(token_amount["amount"]),
                "decimals": int(token_amount["decimals"]),
            }
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamRejected(
                message="Malformed SPL token account",
                adapter_name=self.name,
                chain=self.family.value,
                response_body=str(account)[:500],
                original_error=e,
            )

    async def close(self) -> None:
        await self._rpc.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"
