"""
Response Normalizer - Native adapter output to the unified envelope.

Unit conversions:
- Solana lamports -> SOL with the fixed divisor 1e9
- EVM wei -> native units with the network's decimals (18)
- ERC-20 / SPL raw amounts -> decimal strings using the token's decimals

The provenance tag chosen here follows the result variant and nothing
else: `Authoritative` -> "authoritative", `Fallback` -> "fallback".
"""

import base64
import binascii
import json
import logging
from decimal import Decimal, localcontext
from typing import Any, Callable, Optional
from urllib.parse import unquote

from chain_gateway.models import (
    Authoritative,
    Capability,
    CapabilityPayload,
    ChainFamily,
    Fallback,
    GameExtension,
    NftCollection,
    NftItem,
    NormalizedEnvelope,
    Provenance,
    QueryOutcome,
    QueryResult,
    Rejected,
    TokenHolding,
    TokenInfo,
    TransactionStatus,
    WalletInfo,
    nft_display_message,
)


logger = logging.getLogger(__name__)


LAMPORTS_PER_SOL = 1_000_000_000
SOLANA_DECIMALS = 9
INTERNAL_ERROR_MESSAGE = "Internal gateway error"


def format_units(raw: Optional[int], decimals: int) -> Optional[str]:
    """Render an integer amount of base units as a plain decimal string."""
    if raw is None:
        return None
    # Precision covers every digit (uint256 runs to 78)
    with localcontext() as context:
        context.prec = max(context.prec, len(str(abs(raw))))
        value = Decimal(raw).scaleb(-decimals).normalize()
    return format(value, "f")


def decode_token_metadata(token_uri: str) -> dict[str, Any]:
    """Inline `data:application/json` metadata, or {} for anything else."""
    if not token_uri.startswith("data:application/json"):
        return {}
    header, _, body = token_uri.partition(",")
    try:
        if header.endswith(";base64"):
            text = base64.b64decode(body).decode("utf-8")
        else:
            text = unquote(body)
        metadata = json.loads(text)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.debug(f"Undecodable inline token metadata: {token_uri[:80]!r}")
        return {}
    return metadata if isinstance(metadata, dict) else {}


class ResponseNormalizer:
    """Maps query results onto the per-capability schema."""

    def __init__(self, display_cap: int = 10) -> None:
        self._display_cap = display_cap
        self._mappers: dict[tuple[Capability, ChainFamily], Callable[[Authoritative], CapabilityPayload]] = {
            (Capability.WALLET_INFO, ChainFamily.SOLANA): self._solana_wallet,
            (Capability.WALLET_INFO, ChainFamily.EVM): self._evm_wallet,
            (Capability.TOKEN_INFO, ChainFamily.SOLANA): self._solana_token,
            (Capability.TOKEN_INFO, ChainFamily.EVM): self._evm_token,
            (Capability.NFT_COLLECTION, ChainFamily.EVM): self._evm_nft,
            (Capability.VERIFY_TRANSACTION, ChainFamily.SOLANA): self._solana_transaction,
            (Capability.VERIFY_TRANSACTION, ChainFamily.EVM): self._evm_transaction,
        }

    def normalize(self, capability: Capability, result: QueryResult) -> NormalizedEnvelope:
        """Build the envelope for one query result."""
        if isinstance(result, Rejected):
            return NormalizedEnvelope(
                success=False,
                outcome=QueryOutcome.REJECTED,
                message=result.error.message,
                error=result.error.detail,
            )

        if isinstance(result, Fallback):
            return NormalizedEnvelope(
                success=True,
                outcome=QueryOutcome.FALLBACK,
                data=result.payload.to_dict(Provenance.FALLBACK, result.reason),
            )

        payload = self.to_payload(capability, result)
        return NormalizedEnvelope(
            success=True,
            outcome=QueryOutcome.AUTHORITATIVE,
            data=payload.to_dict(Provenance.AUTHORITATIVE),
        )

    def failure(self, capability: Capability, error: Exception) -> NormalizedEnvelope:
        """Envelope for an unexpected internal error; details stay in the logs."""
        return NormalizedEnvelope(
            success=False,
            outcome=QueryOutcome.FAILED,
            message=INTERNAL_ERROR_MESSAGE,
            error=f"Error processing {capability.value} request",
        )

    def to_payload(self, capability: Capability, result: Authoritative) -> CapabilityPayload:
        """Map an adapter's native response onto the capability dataclass."""
        family = result.query.network.family
        mapper = self._mappers.get((capability, family))
        if mapper is None:
            raise LookupError(f"No normalizer for {capability.value} on {family.value}")
        return mapper(result)

    # ─────────────────────────────────────────────────────────────
    # Wallet info
    # ─────────────────────────────────────────────────────────────

    def _solana_wallet(self, result: Authoritative) -> WalletInfo:
        native = result.native.fields
        network = result.query.network
        return WalletInfo(
            wallet_address=native["owner"],
            network=network.name,
            chain_family=network.family,
            native_symbol=network.native_symbol,
            native_balance=native["lamports"] / LAMPORTS_PER_SOL,
            recent_tx_count=native["signature_count"],
            tokens=[
                TokenHolding(
                    contract_ref=account["mint"],
                    balance=float(format_units(account["amount"], account["decimals"])),
                    decimals=account["decimals"],
                )
                for account in native["token_accounts"]
            ],
        )

    def _evm_wallet(self, result: Authoritative) -> WalletInfo:
        native = result.native.fields
        network = result.query.network
        return WalletInfo(
            wallet_address=native["owner"],
            network=network.name,
            chain_family=network.family,
            native_symbol=network.native_symbol,
            native_balance=float(format_units(native["wei"], network.native_decimals)),
            recent_tx_count=native["nonce"],
            tokens=[],
        )

    # ─────────────────────────────────────────────────────────────
    # Token info
    # ─────────────────────────────────────────────────────────────

    def _solana_token(self, result: Authoritative) -> TokenInfo:
        native = result.native.fields
        network = result.query.network
        decimals = native["decimals"]
        return TokenInfo(
            wallet_address=native["owner"],
            contract_address=native["mint"],
            network=network.name,
            chain_id=network.chain_id,
            token_symbol=None,
            decimals=decimals,
            token_balance=format_units(native["token_amount"], decimals),
            native_balance=format_units(native["lamports"], SOLANA_DECIMALS),
            total_supply=format_units(native["supply_amount"], decimals),
            game_extension=None,
        )

    def _evm_token(self, result: Authoritative) -> TokenInfo:
        native = result.native.fields
        network = result.query.network
        decimals = native["decimals"]

        game_extension = None
        if native["reward_points"] is not None and native["player_level"] is not None:
            game_extension = GameExtension(
                reward_points=str(native["reward_points"]),
                player_level=str(native["player_level"]),
            )

        return TokenInfo(
            wallet_address=native["owner"],
            contract_address=native["contract"],
            network=network.name,
            chain_id=native["chain_id"],
            token_symbol=native["symbol"],
            decimals=decimals,
            token_balance=format_units(native["token_balance"], decimals),
            native_balance=format_units(native["wei"], network.native_decimals),
            total_supply=format_units(native["total_supply"], decimals),
            game_extension=game_extension,
        )

    # ─────────────────────────────────────────────────────────────
    # NFT collection
    # ─────────────────────────────────────────────────────────────

    def _evm_nft(self, result: Authoritative) -> NftCollection:
        native = result.native.fields
        count = native["balance"]
        items = [
            NftItem(
                token_id=str(item["token_id"]),
                token_uri=item["token_uri"],
                metadata=decode_token_metadata(item["token_uri"]),
                owner=item["owner"],
            )
            for item in native["items"][:self._display_cap]
        ]
        return NftCollection(
            wallet_address=native["owner"],
            contract_address=native["contract"],
            network=result.query.network.name,
            count=count,
            items=items,
            message=nft_display_message(count, self._display_cap),
        )

    # ─────────────────────────────────────────────────────────────
    # Transaction verification
    # ─────────────────────────────────────────────────────────────

    def _not_found(self, result: Authoritative, tx_hash: str) -> TransactionStatus:
        network = result.query.network
        return TransactionStatus(
            tx_hash=tx_hash,
            chain=network.name,
            chain_family=network.family,
            found=False,
            confirmed=False,
            status="not_found",
        )

    def _solana_transaction(self, result: Authoritative) -> TransactionStatus:
        native = result.native.fields
        if not native["found"]:
            return self._not_found(result, native["signature"])

        network = result.query.network
        return TransactionStatus(
            tx_hash=native["signature"],
            chain=network.name,
            chain_family=network.family,
            found=True,
            confirmed=True,
            status="failed" if native["err"] else "success",
            block_ref=native["slot"],
            block_time=native["block_time"],
            fee=format_units(native["fee_lamports"], SOLANA_DECIMALS),
            gas_used=native["compute_units"],
            from_address=native["fee_payer"],
            to_address=None,
        )

    def _evm_transaction(self, result: Authoritative) -> TransactionStatus:
        native = result.native.fields
        if not native["found"]:
            return self._not_found(result, native["tx_hash"])

        network = result.query.network
        mined = native["mined"]
        if not mined:
            status = "pending"
        elif native["status"] is None:
            status = "unknown"
        elif native["status"] == 1:
            status = "success"
        else:
            status = "failed"

        fee = None
        if mined:
            fee = format_units(native["gas_used"] * native["effective_gas_price"], network.native_decimals)

        return TransactionStatus(
            tx_hash=native["tx_hash"],
            chain=network.name,
            chain_family=network.family,
            found=True,
            confirmed=mined,
            status=status,
            block_ref=native["block_number"],
            block_time=native["block_timestamp"],
            fee=fee,
            gas_used=native["gas_used"],
            from_address=native["from"],
            to_address=native["to"],
        )
