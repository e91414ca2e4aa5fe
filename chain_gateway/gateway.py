"""
Chain Gateway - Query orchestration.

============================================================
PURPOSE
============================================================
Single entry point for the HTTP layer. Each request walks:

    Validating -> Dispatching -> Normalizing -> Done
    Validating -> Rejected
    Dispatching -> Falling-back -> Normalizing -> Done
    any state -> Failed   (unexpected internal error)

Rules:
- Invalid input never reaches an adapter
- Every adapter call is bounded by the upstream timeout
- Recoverable upstream errors become flagged fallback data
- The gateway keeps no per-request state between calls

============================================================
"""

import asyncio
import logging
import uuid
from typing import Dict, List, Mapping, Optional, Set

from chain_gateway.config import GatewayConfig
from chain_gateway.exceptions import (
    RECOVERABLE_ERRORS,
    MissingParameterError,
    UnsupportedChainError,
    UpstreamUnavailable,
    ValidationError,
)
from chain_gateway.fallback import FallbackGenerator
from chain_gateway.models import (
    ADDRESS_ARITY,
    Authoritative,
    Capability,
    ChainFamily,
    GatewayState,
    NativeResponse,
    NormalizedEnvelope,
    QueryRequest,
    QueryResult,
    Rejected,
    ValidatedQuery,
)
from chain_gateway.normalizer import ResponseNormalizer
from chain_gateway.providers import ChainAdapter, EVMAdapter, SolanaAdapter
from chain_gateway.rpc import JsonRpcClient
from chain_gateway.validation import AddressValidator


logger = logging.getLogger(__name__)


# ============================================================
# STATE TRANSITION RULES
# ============================================================

VALID_TRANSITIONS: Dict[GatewayState, Set[GatewayState]] = {
    GatewayState.VALIDATING: {
        GatewayState.DISPATCHING,
        GatewayState.REJECTED,
        GatewayState.FAILED,
    },
    GatewayState.DISPATCHING: {
        GatewayState.NORMALIZING,
        GatewayState.FALLING_BACK,
        GatewayState.FAILED,
    },
    GatewayState.FALLING_BACK: {
        GatewayState.NORMALIZING,
        GatewayState.FAILED,
    },
    GatewayState.NORMALIZING: {
        GatewayState.DONE,
        GatewayState.FAILED,
    },
    # Terminal states - no transitions out
    GatewayState.REJECTED: set(),
    GatewayState.FAILED: set(),
    GatewayState.DONE: set(),
}

ADDRESS_FIELDS = ("walletAddress", "contractAddress")


class RequestTrace:
    """States visited by one request."""

    def __init__(self, capability: Capability) -> None:
        self.request_id = uuid.uuid4().hex[:8]
        self.capability = capability
        self.history: List[GatewayState] = [GatewayState.VALIDATING]

    @property
    def state(self) -> GatewayState:
        return self.history[-1]

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self.state]

    def advance(self, target: GatewayState) -> None:
        if target not in VALID_TRANSITIONS[self.state]:
            raise ValueError(
                f"Invalid gateway transition: {self.state.value} -> {target.value}"
            )
        self.history.append(target)
        logger.debug(
            f"[{self.request_id}] {self.capability.value}: "
            f"{self.history[-2].value} -> {target.value}"
        )

    def fail(self) -> None:
        """Move to FAILED from wherever the request stopped."""
        if not self.is_terminal:
            self.history.append(GatewayState.FAILED)


# ============================================================
# QUERY GATEWAY
# ============================================================

class QueryGateway:
    """
    Validates, dispatches and normalizes capability queries.

    Adapters are keyed by network name. A network with no adapter (no RPC
    endpoint configured) is always served from the fallback path.

    Usage:
        gateway = create_gateway(GatewayConfig.from_env())
        envelope = await gateway.get_wallet_info("DYw8j...", chain="solana")
        await gateway.close()
    """

    def __init__(
        self,
        config: GatewayConfig,
        adapters: Optional[Mapping[str, ChainAdapter]] = None,
        validator: Optional[AddressValidator] = None,
        fallback: Optional[FallbackGenerator] = None,
        normalizer: Optional[ResponseNormalizer] = None,
    ) -> None:
        self.config = config
        self._adapters: Dict[str, ChainAdapter] = dict(adapters or {})
        self._validator = validator or AddressValidator()
        self._fallback = fallback or FallbackGenerator(display_cap=config.nft_display_cap)
        self._normalizer = normalizer or ResponseNormalizer(display_cap=config.nft_display_cap)

    @property
    def adapters(self) -> Dict[str, ChainAdapter]:
        return dict(self._adapters)

    @property
    def supported_chains(self) -> List[str]:
        return list(self.config.networks)

    # ─────────────────────────────────────────────────────────────
    # Entry point
    # ─────────────────────────────────────────────────────────────

    async def execute(self, request: QueryRequest) -> NormalizedEnvelope:
        """Run one request through the state machine. Never raises."""
        trace = RequestTrace(request.capability)
        capability = request.capability

        try:
            try:
                query = self._validate(request)
            except ValidationError as e:
                trace.advance(GatewayState.REJECTED)
                logger.info(f"[{trace.request_id}] Rejected {capability.value}: {e.detail}")
                envelope = self._normalizer.normalize(capability, Rejected(capability, e))
                return self._finish(envelope, trace)

            trace.advance(GatewayState.DISPATCHING)
            result = await self._dispatch(query, trace)

            trace.advance(GatewayState.NORMALIZING)
            envelope = self._normalizer.normalize(capability, result)
            trace.advance(GatewayState.DONE)
            return self._finish(envelope, trace)

        except Exception as e:
            logger.exception(
                f"[{trace.request_id}] Internal error in {capability.value} "
                f"({trace.state.value}): {e}"
            )
            trace.fail()
            return self._finish(self._normalizer.failure(capability, e), trace)

    def _finish(self, envelope: NormalizedEnvelope, trace: RequestTrace) -> NormalizedEnvelope:
        envelope.states = tuple(trace.history)
        return envelope

    # ─────────────────────────────────────────────────────────────
    # Validating
    # ─────────────────────────────────────────────────────────────

    def _validate(self, request: QueryRequest) -> ValidatedQuery:
        """
        Resolve the network and validate every identifier in the request.

        Raises:
            UnsupportedChainError: Unknown chain name
            MissingParameterError: Address or transaction hash absent
            InvalidAddressFormat: Address fails its family's grammar
            InvalidTransactionFormat: Hash fails its family's grammar
        """
        if not request.chain:
            raise MissingParameterError(detail="chain is required", field_name="chain")

        network = self.config.network(request.chain)
        if network is None:
            raise UnsupportedChainError(request.chain, self.supported_chains)

        minimum, maximum = ADDRESS_ARITY[request.capability]
        raw_addresses = list(request.addresses)
        for position, field_name in enumerate(ADDRESS_FIELDS[:minimum]):
            if position >= len(raw_addresses) or not raw_addresses[position]:
                raise MissingParameterError(
                    detail=f"{field_name} is required",
                    chain=network.name,
                    field_name=field_name,
                )
        if any(raw_addresses[maximum:]):
            raise ValidationError(
                detail=f"{request.capability.value} takes at most {maximum} address(es)",
                chain=network.name,
                field_name="addresses",
            )

        addresses = tuple(
            self._validator.validate(raw, network.family, field_name)
            for raw, field_name in zip(raw_addresses[:maximum], ADDRESS_FIELDS)
            if raw
        )

        tx_hash = None
        if request.capability == Capability.VERIFY_TRANSACTION:
            raw_hash = request.params.get("txHash")
            if not raw_hash:
                raise MissingParameterError(
                    detail="txHash is required",
                    chain=network.name,
                    field_name="txHash",
                )
            tx_hash = self._validator.validate_transaction(raw_hash, network.family)

        return ValidatedQuery(
            request=request,
            network=network,
            addresses=addresses,
            tx_hash=tx_hash,
        )

    # ─────────────────────────────────────────────────────────────
    # Dispatching / Falling-back
    # ─────────────────────────────────────────────────────────────

    async def _dispatch(self, query: ValidatedQuery, trace: RequestTrace) -> QueryResult:
        network = query.network
        adapter = self._adapters.get(network.name)

        if adapter is None:
            return self._fall_back(query, trace, f"No live adapter configured for {network.name}")

        if not adapter.supports(query.capability):
            return self._fall_back(
                query, trace,
                f"{query.capability.value} is not served live on {network.name}",
            )

        timeout = self.config.upstream_timeout
        try:
            native = await asyncio.wait_for(self._call(adapter, query), timeout=timeout)
        except asyncio.TimeoutError as e:
            error = UpstreamUnavailable(
                f"No response within {timeout}s",
                adapter_name=adapter.name,
                chain=network.name,
                original_error=e,
            )
            return self._fall_back(query, trace, f"Upstream unavailable: {error.message}")
        except RECOVERABLE_ERRORS as e:
            logger.warning(f"[{trace.request_id}] {e}")
            kind = "unavailable" if isinstance(e, UpstreamUnavailable) else "rejected the query"
            return self._fall_back(query, trace, f"Upstream {kind}: {e.message}")

        return Authoritative(query=query, native=native)

    def _fall_back(self, query: ValidatedQuery, trace: RequestTrace, reason: str) -> QueryResult:
        trace.advance(GatewayState.FALLING_BACK)
        return self._fallback.generate(query, reason)

    async def _call(self, adapter: ChainAdapter, query: ValidatedQuery) -> NativeResponse:
        capability = query.capability
        if capability == Capability.WALLET_INFO:
            return await adapter.get_wallet_info(query.wallet)
        if capability == Capability.TOKEN_INFO:
            return await adapter.get_token_info(query.wallet, query.contract)
        if capability == Capability.NFT_COLLECTION:
            return await adapter.get_nft_collection(
                query.wallet, query.contract, self.config.nft_display_cap
            )
        if capability == Capability.VERIFY_TRANSACTION:
            return await adapter.verify_transaction(query.tx_hash)
        raise LookupError(f"No adapter operation for {capability.value}")

    # ─────────────────────────────────────────────────────────────
    # Capability shortcuts
    # ─────────────────────────────────────────────────────────────

    async def get_wallet_info(self, wallet_address: str, chain: str = "solana") -> NormalizedEnvelope:
        return await self.execute(QueryRequest(Capability.WALLET_INFO, chain, (wallet_address,)))

    async def get_token_info(
        self,
        wallet_address: str,
        contract_address: str,
        chain: Optional[str] = None,
    ) -> NormalizedEnvelope:
        return await self.execute(QueryRequest(
            Capability.TOKEN_INFO,
            chain or self.config.default_evm_network,
            (wallet_address, contract_address),
        ))

    async def get_nft_collection(
        self,
        wallet_address: str,
        contract_address: str,
        chain: Optional[str] = None,
    ) -> NormalizedEnvelope:
        return await self.execute(QueryRequest(
            Capability.NFT_COLLECTION,
            chain or self.config.default_evm_network,
            (wallet_address, contract_address),
        ))

    async def get_game_stats(self) -> NormalizedEnvelope:
        return await self.execute(QueryRequest(Capability.GAME_STATS, self.config.game_stats_network))

    async def verify_transaction(self, tx_hash: str, chain: str) -> NormalizedEnvelope:
        return await self.execute(QueryRequest(
            Capability.VERIFY_TRANSACTION,
            chain,
            params={"txHash": tx_hash},
        ))

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    def describe(self) -> List[dict]:
        """Network table with the live capabilities of each adapter."""
        networks = []
        for name, network in self.config.networks.items():
            adapter = self._adapters.get(name)
            entry = network.to_dict()
            entry["live"] = adapter is not None
            entry["liveCapabilities"] = sorted(
                capability.value for capability in Capability
                if adapter is not None and adapter.supports(capability)
            )
            networks.append(entry)
        return networks

    async def close(self) -> None:
        for adapter in self._adapters.values():
            try:
                await adapter.close()
            except Exception as e:
                logger.error(f"[{adapter.name}] Failed to close adapter: {e}")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(adapters={sorted(self._adapters)})>"


# ============================================================
# COMPOSITION ROOT
# ============================================================

ADAPTER_TYPES = {
    ChainFamily.SOLANA: SolanaAdapter,
    ChainFamily.EVM: EVMAdapter,
}


def create_gateway(config: Optional[GatewayConfig] = None) -> QueryGateway:
    """
    Build a gateway with one long-lived RPC client per live network.

    Networks without an RPC endpoint get no adapter and are served from
    the fallback path.
    """
    config = config or GatewayConfig.from_env()

    adapters: Dict[str, ChainAdapter] = {}
    for name, network in config.networks.items():
        if not network.is_live:
            logger.info(f"Network {name} has no RPC endpoint; serving fallback data")
            continue
        rpc = JsonRpcClient(network.rpc_url, name=name, timeout=config.upstream_timeout)
        adapters[name] = ADAPTER_TYPES[network.family](network, rpc)
        logger.info(f"Registered adapter {adapters[name].name} -> {network.rpc_url}")

    return QueryGateway(config, adapters)
