"""
Fallback Generator - Schema-compatible placeholder data.

============================================================
PURPOSE
============================================================
Serves a response when a live read is impossible:
- the adapter raised UpstreamUnavailable / UpstreamRejected
- the adapter timed out
- no live adapter is configured for the network or capability

Values are random within sane bounds; shape is fixed. Every payload
built here is returned inside a `Fallback` result, so it always leaves
the gateway tagged `provenance: "fallback"` with the reason attached.

============================================================
"""

import logging
import random
import time
from datetime import datetime
from typing import Callable, Optional

import base58

from chain_gateway.models import (
    Capability,
    CapabilityPayload,
    ChainFamily,
    Fallback,
    GameStatistics,
    GameExtension,
    GameStats,
    NftCollection,
    NftItem,
    TokenHolding,
    TokenInfo,
    TransactionStatus,
    ValidatedQuery,
    WalletInfo,
    nft_display_message,
)


logger = logging.getLogger(__name__)


PLACEHOLDER_TOKEN_SYMBOL = "GTT"
PLACEHOLDER_TOTAL_SUPPLY = "1000000"
RARITIES = ("Common", "Rare", "Epic", "Legendary")

# Reference contracts advertised alongside game statistics
GAME_CONTRACTS = {
    "solana": {
        "programId": "11111111111111111111111111111111",
        "network": "mainnet-beta",
    },
    "evm": {
        "gameToken": "0x0000000000000000000000000000000000000000",
        "nftCollection": "0x0000000000000000000000000000000000000001",
        "gameLogic": "0x0000000000000000000000000000000000000002",
    },
}


class FallbackGenerator:
    """Builds flagged placeholder payloads, one builder per capability."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        display_cap: int = 10,
    ) -> None:
        self._rng = rng or random.Random()
        self._display_cap = display_cap
        self._builders: dict[Capability, Callable[[ValidatedQuery], CapabilityPayload]] = {
            Capability.WALLET_INFO: self.wallet_info,
            Capability.TOKEN_INFO: self.token_info,
            Capability.NFT_COLLECTION: self.nft_collection,
            Capability.GAME_STATS: self.game_stats,
            Capability.VERIFY_TRANSACTION: self.transaction_status,
        }

    def generate(self, query: ValidatedQuery, reason: str) -> Fallback:
        """Placeholder result for `query`, tagged with `reason`."""
        payload = self._builders[query.capability](query)
        logger.warning(
            f"Serving fallback {query.capability.value} for {query.network.name}: {reason}"
        )
        return Fallback(capability=query.capability, payload=payload, reason=reason)

    # ─────────────────────────────────────────────────────────────
    # Builders
    # ─────────────────────────────────────────────────────────────

    def wallet_info(self, query: ValidatedQuery) -> WalletInfo:
        family = query.network.family
        tokens = [
            TokenHolding(
                contract_ref=self._placeholder_address(family),
                balance=round(self._rng.uniform(0, 10000), 2),
                decimals=self._rng.choice((6, 9)) if family == ChainFamily.SOLANA else 18,
            )
            for _ in range(self._rng.randint(0, 3))
        ]
        return WalletInfo(
            wallet_address=str(query.wallet),
            network=query.network.name,
            chain_family=family,
            native_symbol=query.network.native_symbol,
            native_balance=round(self._rng.uniform(0, 10), 4),
            recent_tx_count=self._rng.randint(0, 5),
            tokens=tokens,
        )

    def token_info(self, query: ValidatedQuery) -> TokenInfo:
        return TokenInfo(
            wallet_address=str(query.wallet),
            contract_address=str(query.contract),
            network=query.network.name,
            chain_id=query.network.chain_id,
            token_symbol=PLACEHOLDER_TOKEN_SYMBOL,
            decimals=18,
            token_balance=f"{self._rng.uniform(0, 10000):.2f}",
            native_balance=f"{self._rng.uniform(0, 10):.4f}",
            total_supply=PLACEHOLDER_TOTAL_SUPPLY,
            game_extension=GameExtension(
                reward_points=str(self._rng.randint(0, 49999)),
                player_level=str(self._rng.randint(1, 20)),
            ),
        )

    def nft_collection(self, query: ValidatedQuery) -> NftCollection:
        count = self._rng.randint(1, 20)
        items = [
            NftItem(
                token_id=str(1000 + index),
                token_uri=f"ipfs://QmExample{index}/metadata.json",
                metadata={
                    "name": f"GameTip NFT #{1000 + index}",
                    "description": "Rare gaming collectible",
                    "image": f"ipfs://QmExample{index}/image.png",
                    "attributes": [
                        {"trait_type": "Rarity", "value": self._rng.choice(RARITIES)},
                        {"trait_type": "Level", "value": self._rng.randint(0, 99)},
                        {"trait_type": "Power", "value": self._rng.randint(0, 999)},
                    ],
                },
                owner=str(query.wallet),
            )
            for index in range(min(count, self._display_cap))
        ]
        return NftCollection(
            wallet_address=str(query.wallet),
            contract_address=str(query.contract),
            network=query.network.name,
            count=count,
            items=items,
            message=nft_display_message(count, self._display_cap),
        )

    def game_stats(self, query: ValidatedQuery) -> GameStats:
        return GameStats(
            game_stats=GameStatistics(
                total_players=self._rng.randint(0, 9999),
                total_games_played=self._rng.randint(0, 49999),
                total_rewards_distributed=f"{self._rng.uniform(0, 1000000):.2f}",
                top_score=self._rng.randint(0, 99999),
                daily_active_users=self._rng.randint(0, 999),
                weekly_tournaments=self._rng.randint(0, 9),
            ),
            last_updated=datetime.utcnow(),
            contracts={name: dict(refs) for name, refs in GAME_CONTRACTS.items()},
        )

    def transaction_status(self, query: ValidatedQuery) -> TransactionStatus:
        family = query.network.family
        confirmed = self._rng.random() > 0.3
        solana = family == ChainFamily.SOLANA
        return TransactionStatus(
            tx_hash=query.tx_hash or "",
            chain=query.network.name,
            chain_family=family,
            found=True,
            confirmed=confirmed,
            status="success" if confirmed else "pending",
            block_ref=self._rng.randint(0, 999999) if solana else self._rng.randint(0, 49999999),
            block_time=int(time.time()),
            fee=f"{self._rng.uniform(0, 0.01):.6f}",
            gas_used=self._rng.randint(0, 99999),
            from_address=self._placeholder_address(family),
            to_address=None if solana else self._placeholder_address(family),
        )

    def _placeholder_address(self, family: ChainFamily) -> str:
        if family == ChainFamily.SOLANA:
            return base58.b58encode(self._rng.randbytes(32)).decode()
        return "0x" + "".join(self._rng.choice("0123456789abcdef") for _ in range(40))
