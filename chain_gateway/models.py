"""
Chain Gateway Models - Requests, results and unified capability schemas.

Every capability has exactly one payload dataclass. Both the normalizer
(live data) and the fallback generator (synthetic data) build the same
dataclass, so the two paths can never drift apart in shape.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from chain_gateway.exceptions import ValidationError


class ChainFamily(Enum):
    """Address grammar and adapter family."""
    SOLANA = "solana"
    EVM = "evm"


class Capability(Enum):
    """Query kinds served by the gateway."""
    WALLET_INFO = "wallet_info"
    TOKEN_INFO = "token_info"
    NFT_COLLECTION = "nft_collection"
    GAME_STATS = "game_stats"
    VERIFY_TRANSACTION = "verify_transaction"


class Provenance(Enum):
    """Where the payload values came from."""
    AUTHORITATIVE = "authoritative"
    FALLBACK = "fallback"


class GatewayState(Enum):
    """Per-request processing states."""
    VALIDATING = "validating"
    DISPATCHING = "dispatching"
    FALLING_BACK = "falling_back"
    NORMALIZING = "normalizing"
    REJECTED = "rejected"
    FAILED = "failed"
    DONE = "done"


class QueryOutcome(Enum):
    """How a request ended; drives the HTTP status chosen by the caller."""
    AUTHORITATIVE = "authoritative"
    FALLBACK = "fallback"
    REJECTED = "rejected"
    FAILED = "failed"


# Capabilities that take (wallet) or (wallet, contract)
ADDRESS_ARITY: dict[Capability, tuple[int, int]] = {
    Capability.WALLET_INFO: (1, 1),
    Capability.TOKEN_INFO: (2, 2),
    Capability.NFT_COLLECTION: (2, 2),
    Capability.GAME_STATS: (0, 0),
    Capability.VERIFY_TRANSACTION: (0, 0),
}


@dataclass(frozen=True)
class NetworkConfig:
    """One named network the gateway can address."""
    name: str
    family: ChainFamily
    display_name: str
    native_symbol: str
    native_decimals: int
    rpc_url: Optional[str] = None
    chain_id: Optional[int] = None

    @property
    def is_live(self) -> bool:
        """True when an RPC endpoint is configured for this network."""
        return bool(self.rpc_url)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "family": self.family.value,
            "displayName": self.display_name,
            "nativeSymbol": self.native_symbol,
            "chainId": self.chain_id,
            "live": self.is_live,
        }


@dataclass(frozen=True)
class Address:
    """An address that passed validation for exactly one chain family."""
    value: str
    family: ChainFamily

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class QueryRequest:
    """
    Typed request handed to the gateway by the HTTP layer.

    `addresses` holds raw strings in (wallet, contract) order; they become
    `Address` values only after validation.
    """
    capability: Capability
    chain: str
    addresses: tuple[str, ...] = ()
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "addresses", tuple(self.addresses))
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    @property
    def wallet(self) -> Optional[str]:
        return self.addresses[0] if self.addresses else None

    @property
    def contract(self) -> Optional[str]:
        return self.addresses[1] if len(self.addresses) > 1 else None


@dataclass(frozen=True)
class ValidatedQuery:
    """A request after validation: family-tagged addresses and a resolved network."""
    request: QueryRequest
    network: NetworkConfig
    addresses: tuple[Address, ...] = ()
    tx_hash: Optional[str] = None

    @property
    def capability(self) -> Capability:
        return self.request.capability

    @property
    def wallet(self) -> Optional[Address]:
        return self.addresses[0] if self.addresses else None

    @property
    def contract(self) -> Optional[Address]:
        return self.addresses[1] if len(self.addresses) > 1 else None


@dataclass(frozen=True)
class NativeResponse:
    """Chain-native fields returned by an adapter, before normalization."""
    adapter_name: str
    network: str
    capability: Capability
    fields: Mapping[str, Any]


# ─────────────────────────────────────────────────────────────
# Unified capability payloads
# ─────────────────────────────────────────────────────────────

def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "__dataclass_fields__"):
        return {_camel(f.name): _serialize(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _serialize(item) for key, item in value.items()}
    return value


@dataclass
class CapabilityPayload:
    """Base for capability payloads; carries the provenance tag."""

    def to_dict(self, provenance: Provenance, reason: Optional[str] = None) -> dict[str, Any]:
        data = _serialize(self)
        data["provenance"] = provenance.value
        data["fallbackReason"] = reason
        return data


@dataclass
class TokenHolding:
    contract_ref: str
    balance: float
    decimals: int


@dataclass
class WalletInfo(CapabilityPayload):
    wallet_address: str
    network: str
    chain_family: ChainFamily
    native_symbol: str
    native_balance: float
    recent_tx_count: int
    tokens: list[TokenHolding] = field(default_factory=list)


@dataclass
class GameExtension:
    reward_points: str
    player_level: str


@dataclass
class TokenInfo(CapabilityPayload):
    wallet_address: str
    contract_address: str
    network: str
    chain_id: Optional[int]
    token_symbol: Optional[str]
    decimals: int
    token_balance: str
    native_balance: str
    total_supply: str
    game_extension: Optional[GameExtension] = None


@dataclass
class NftItem:
    token_id: str
    token_uri: str
    metadata: dict[str, Any]
    owner: str


@dataclass
class NftCollection(CapabilityPayload):
    wallet_address: str
    contract_address: str
    network: str
    count: int
    items: list[NftItem]
    message: str


@dataclass
class GameStatistics:
    total_players: int
    total_games_played: int
    total_rewards_distributed: str
    top_score: int
    daily_active_users: int
    weekly_tournaments: int


@dataclass
class GameStats(CapabilityPayload):
    game_stats: GameStatistics
    last_updated: datetime
    contracts: dict[str, dict[str, str]]


@dataclass
class TransactionStatus(CapabilityPayload):
    tx_hash: str
    chain: str
    chain_family: ChainFamily
    found: bool
    confirmed: bool
    status: str
    block_ref: Optional[int] = None
    block_time: Optional[int] = None
    fee: Optional[str] = None
    gas_used: Optional[int] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None

    def to_dict(self, provenance: Provenance, reason: Optional[str] = None) -> dict[str, Any]:
        data = super().to_dict(provenance, reason)
        # `from` is a keyword, so the attribute names differ from the wire keys
        data["from"] = data.pop("fromAddress")
        data["to"] = data.pop("toAddress")
        return data


PAYLOAD_TYPES: dict[Capability, type] = {
    Capability.WALLET_INFO: WalletInfo,
    Capability.TOKEN_INFO: TokenInfo,
    Capability.NFT_COLLECTION: NftCollection,
    Capability.GAME_STATS: GameStats,
    Capability.VERIFY_TRANSACTION: TransactionStatus,
}


# ─────────────────────────────────────────────────────────────
# Query results
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Authoritative:
    """Live chain data, still in the adapter's native form."""
    query: ValidatedQuery
    native: NativeResponse


@dataclass(frozen=True)
class Fallback:
    """Synthetic placeholder data; never to be mistaken for chain truth."""
    capability: Capability
    payload: CapabilityPayload
    reason: str


@dataclass(frozen=True)
class Rejected:
    """The request never reached an adapter."""
    capability: Capability
    error: ValidationError


QueryResult = Union[Authoritative, Fallback, Rejected]


@dataclass
class NormalizedEnvelope:
    """Response envelope handed back to the HTTP layer."""
    success: bool
    outcome: QueryOutcome
    data: Optional[dict[str, Any]] = None
    message: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)
    states: tuple[GatewayState, ...] = ()

    @property
    def provenance(self) -> Optional[str]:
        return self.data.get("provenance") if self.data else None

    @property
    def status_code(self) -> int:
        if self.outcome == QueryOutcome.REJECTED:
            return 400
        if self.outcome == QueryOutcome.FAILED:
            return 500
        return 200

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            body["data"] = self.data
        if self.message is not None:
            body["message"] = self.message
        if self.error is not None:
            body["error"] = self.error
        body["timestamp"] = self.timestamp.isoformat() + "Z"
        return body


def nft_display_message(count: int, cap: int) -> str:
    """Caption for an NFT listing truncated to `cap` items."""
    if count > cap:
        return f"Showing first {cap} of {count} NFTs"
    return f"Showing all {count} NFTs"
