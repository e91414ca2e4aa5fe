"""
Chain Adapter Tests.

============================================================
PURPOSE
============================================================
Unit tests for the Solana and EVM adapters with a mocked RPC client.

TEST CATEGORIES:
- Solana: wallet, token, transaction reads
- EVM: wallet, ERC-20, ERC-721, transaction reads
- ABI helpers
- Error propagation

============================================================
"""

from unittest.mock import AsyncMock

import base58
import pytest

from chain_gateway.config import GatewayConfig, default_networks
from chain_gateway.exceptions import AddressInvalid, UpstreamRejected, UpstreamUnavailable
from chain_gateway.gateway import QueryGateway
from chain_gateway.models import Address, Capability, ChainFamily
from chain_gateway.providers import ChainAdapter, EVMAdapter, SolanaAdapter, abi


SOLANA_WALLET = Address("DYw8jCTfwHNRJhhmFcbXvVDTqWMEVFBX6ZKUmG5CNSKK", ChainFamily.SOLANA)
SOLANA_MINT = Address("EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", ChainFamily.SOLANA)
SOLANA_SIGNATURE = base58.b58encode(bytes(range(64))).decode()

EVM_WALLET = Address("0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb1", ChainFamily.EVM)
TOKEN_CONTRACT = Address("0x7D1AfA7B718fb893dB30A3aBc0Cfc608AaCfeBB0", ChainFamily.EVM)
NFT_CONTRACT = Address("0xBC4CA0EdA7647A8aB7C2061c2E118A18a936f13D", ChainFamily.EVM)
EVM_TX_HASH = "0x" + "ab" * 32


# ============================================================
# HELPERS
# ============================================================

def word(value: int) -> str:
    return "0x" + format(value, "064x")


def abi_string(text: str) -> str:
    raw = text.encode()
    padded = raw.ljust((len(raw) + 31) // 32 * 32, b"\x00")
    return "0x" + format(32, "064x") + format(len(raw), "064x") + padded.hex()


def abi_address(address: str) -> str:
    return "0x" + address[2:].lower().rjust(64, "0")


def mock_rpc(responses, contract_reads=None):
    """
    AsyncMock RPC client answering by method name.

    `contract_reads` maps a function signature to a return value (or a
    callable taking the hex-encoded arguments) for `eth_call`.
    """
    selectors = {abi.selector(signature): signature for signature in (contract_reads or {})}

    async def call(method, params=None):
        if method == "eth_call":
            data = params[0]["data"]
            value = contract_reads[selectors[data[:10]]]
            if callable(value):
                value = value(data[10:])
        else:
            value = responses[method]
        if isinstance(value, Exception):
            raise value
        return value

    rpc = AsyncMock()
    rpc.call = AsyncMock(side_effect=call)
    return rpc


def token_account(mint: str, amount: int, decimals: int) -> dict:
    return {
        "pubkey": "acct",
        "account": {
            "data": {
                "parsed": {
                    "info": {
                        "mint": mint,
                        "tokenAmount": {"amount": str(amount), "decimals": decimals},
                    },
                },
            },
        },
    }


@pytest.fixture
def networks():
    return default_networks()


# ============================================================
# SOLANA
# ============================================================

class TestSolanaAdapter:
    """Tests for SolanaAdapter."""

    def test_satisfies_adapter_protocol(self, networks):
        adapter = SolanaAdapter(networks["solana"], AsyncMock())

        assert isinstance(adapter, ChainAdapter)
        assert adapter.name == "solana:solana"
        assert adapter.supports(Capability.WALLET_INFO)
        assert not adapter.supports(Capability.NFT_COLLECTION)
        assert not adapter.supports(Capability.GAME_STATS)

    @pytest.mark.asyncio
    async def test_wallet_info(self, networks):
        rpc = mock_rpc({
            "getBalance": {"context": {"slot": 1}, "value": 1_500_000_000},
            "getSignaturesForAddress": [{"signature": "a"}, {"signature": "b"}, {"signature": "c"}],
            "getTokenAccountsByOwner": {
                "context": {"slot": 1},
                "value": [token_account(SOLANA_MINT.value, 2_500_000, 6)],
            },
        })
        adapter = SolanaAdapter(networks["solana"], rpc)

        response = await adapter.get_wallet_info(SOLANA_WALLET)

        assert response.capability == Capability.WALLET_INFO
        assert response.adapter_name == "solana:solana"
        assert response.fields["lamports"] == 1_500_000_000
        assert response.fields["signature_count"] == 3
        assert response.fields["token_accounts"] == [
            {"mint": SOLANA_MINT.value, "amount": 2_500_000, "decimals": 6},
        ]

        calls = {c.args[0]: c.args[1] for c in rpc.call.call_args_list}
        assert calls["getSignaturesForAddress"][1]["limit"] == 5
        assert calls["getTokenAccountsByOwner"][1] == {
            "programId": "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
        }

    @pytest.mark.asyncio
    async def test_malformed_balance_is_rejected(self, networks):
        rpc = mock_rpc({
            "getBalance": {"value": "lots"},
            "getSignaturesForAddress": [],
            "getTokenAccountsByOwner": {"value": []},
        })
        adapter = SolanaAdapter(networks["solana"], rpc)

        with pytest.raises(UpstreamRejected):
            await adapter.get_wallet_info(SOLANA_WALLET)

    @pytest.mark.asyncio
    async def test_malformed_token_account_is_rejected(self, networks):
        rpc = mock_rpc({
            "getBalance": {"value": 0},
            "getSignaturesForAddress": [],
            "getTokenAccountsByOwner": {"value": [{"account": {"data": "raw"}}]},
        })
        adapter = SolanaAdapter(networks["solana"], rpc)

        with pytest.raises(UpstreamRejected, match="SPL token account"):
            await adapter.get_wallet_info(SOLANA_WALLET)

    @pytest.mark.asyncio
    async def test_token_info(self, networks):
        rpc = mock_rpc({
            "getBalance": {"value": 2_000_000_000},
            "getTokenAccountsByOwner": {"value": [
                token_account(SOLANA_MINT.value, 1_000_000, 6),
                token_account(SOLANA_MINT.value, 500_000, 6),
            ]},
            "getTokenSupply": {"value": {"amount": "5000000000", "decimals": 6, "uiAmountString": "5000"}},
        })
        adapter = SolanaAdapter(networks["solana"], rpc)

        response = await adapter.get_token_info(SOLANA_WALLET, SOLANA_MINT)

        assert response.fields["mint"] == SOLANA_MINT.value
        assert response.fields["token_amount"] == 1_500_000
        assert response.fields["decimals"] == 6
        assert response.fields["supply_amount"] == 5_000_000_000

    @pytest.mark.asyncio
    async def test_verify_found(self, networks):
        rpc = mock_rpc({
            "getTransaction": {
                "slot": 250_000_000,
                "blockTime": 1_700_000_000,
                "meta": {"fee": 5000, "err": None, "computeUnitsConsumed": 150},
                "transaction": {"message": {"accountKeys": [SOLANA_WALLET.value, SOLANA_MINT.value]}},
            },
        })
        adapter = SolanaAdapter(networks["solana"], rpc)

        response = await adapter.verify_transaction(SOLANA_SIGNATURE)

        assert response.fields["found"] is True
        assert response.fields["slot"] == 250_000_000
        assert response.fields["fee_lamports"] == 5000
        assert response.fields["err"] is None
        assert response.fields["fee_payer"] == SOLANA_WALLET.value

    @pytest.mark.asyncio
    async def test_verify_not_found_is_data(self, networks):
        adapter = SolanaAdapter(networks["solana"], mock_rpc({"getTransaction": None}))

        response = await adapter.verify_transaction(SOLANA_SIGNATURE)

        assert response.fields == {"signature": SOLANA_SIGNATURE, "found": False}

    @pytest.mark.asyncio
    async def test_rejects_evm_address(self, networks):
        rpc = mock_rpc({})
        adapter = SolanaAdapter(networks["solana"], rpc)

        with pytest.raises(AddressInvalid):
            await adapter.get_wallet_info(EVM_WALLET)
        rpc.call.assert_not_called()

    @pytest.mark.asyncio
    async def test_upstream_errors_propagate(self, networks):
        rpc = mock_rpc({"getTransaction": UpstreamUnavailable("down", adapter_name="solana")})
        adapter = SolanaAdapter(networks["solana"], rpc)

        with pytest.raises(UpstreamUnavailable):
            await adapter.verify_transaction(SOLANA_SIGNATURE)

    @pytest.mark.asyncio
    async def test_nft_collection_is_rejected(self, networks):
        rpc = mock_rpc({})
        adapter = SolanaAdapter(networks["solana"], rpc)

        with pytest.raises(UpstreamRejected, match="does not enumerate NFT collections"):
            await adapter.get_nft_collection(SOLANA_WALLET, SOLANA_MINT, limit=10)
        rpc.call.assert_not_called()


# ============================================================
# EVM
# ============================================================

class TestEvmAdapter:
    """Tests for EVMAdapter."""

    def test_satisfies_adapter_protocol(self, networks):
        adapter = EVMAdapter(networks["polygon"], AsyncMock())

        assert isinstance(adapter, ChainAdapter)
        assert adapter.name == "evm:polygon"
        assert adapter.supports(Capability.NFT_COLLECTION)
        assert not adapter.supports(Capability.GAME_STATS)

    @pytest.mark.asyncio
    async def test_wallet_info(self, networks):
        rpc = mock_rpc({
            "eth_getBalance": hex(10 ** 18),
            "eth_getTransactionCount": "0x5",
        })
        adapter = EVMAdapter(networks["polygon"], rpc)

        response = await adapter.get_wallet_info(EVM_WALLET)

        assert response.fields == {"owner": EVM_WALLET.value, "wei": 10 ** 18, "nonce": 5}

    @pytest.mark.asyncio
    async def test_token_info_with_game_extension(self, networks):
        rpc = mock_rpc(
            {"eth_getBalance": hex(3 * 10 ** 17)},
            {
                "balanceOf(address)": word(1234 * 10 ** 18),
                "symbol()": abi_string("GTT"),
                "decimals()": word(18),
                "totalSupply()": word(10 ** 24),
                "getRewardPoints(address)": word(4200),
                "getPlayerLevel(address)": word(7),
            },
        )
        adapter = EVMAdapter(networks["polygon"], rpc)

        response = await adapter.get_token_info(EVM_WALLET, TOKEN_CONTRACT)

        assert response.fields["symbol"] == "GTT"
        assert response.fields["decimals"] == 18
        assert response.fields["token_balance"] == 1234 * 10 ** 18
        assert response.fields["total_supply"] == 10 ** 24
        assert response.fields["chain_id"] == 137
        assert response.fields["reward_points"] == 4200
        assert response.fields["player_level"] == 7

    @pytest.mark.asyncio
    async def test_token_info_without_game_methods(self, networks):
        reverted = UpstreamRejected("execution reverted", adapter_name="evm:polygon", rpc_code=3)
        rpc = mock_rpc(
            {"eth_getBalance": "0x0"},
            {
                "balanceOf(address)": word(0),
                "symbol()": abi_string("MATIC"),
                "decimals()": word(18),
                "totalSupply()": word(10 ** 28),
                "getRewardPoints(address)": reverted,
                "getPlayerLevel(address)": "0x",
            },
        )
        adapter = EVMAdapter(networks["polygon"], rpc)

        response = await adapter.get_token_info(EVM_WALLET, TOKEN_CONTRACT)

        assert response.fields["reward_points"] is None
        assert response.fields["player_level"] is None

    @pytest.mark.asyncio
    async def test_undecodable_required_read_is_rejected(self, networks):
        rpc = mock_rpc(
            {"eth_getBalance": "0x0"},
            {
                "balanceOf(address)": "0x",
                "symbol()": abi_string("GTT"),
                "decimals()": word(18),
                "totalSupply()": word(1),
                "getRewardPoints(address)": word(0),
                "getPlayerLevel(address)": word(0),
            },
        )
        adapter = EVMAdapter(networks["polygon"], rpc)

        with pytest.raises(UpstreamRejected, match="balanceOf"):
            await adapter.get_token_info(EVM_WALLET, TOKEN_CONTRACT)

    @pytest.mark.asyncio
    async def test_decimals_outside_uint8_is_rejected(self, networks):
        rpc = mock_rpc(
            {"eth_getBalance": "0x0"},
            {
                "balanceOf(address)": word(5),
                "symbol()": abi_string("BAD"),
                "decimals()": word(2 ** 200),
                "totalSupply()": word(5),
                "getRewardPoints(address)": "0x",
                "getPlayerLevel(address)": "0x",
            },
        )
        adapter = EVMAdapter(networks["polygon"], rpc)

        with pytest.raises(UpstreamRejected, match="uint8"):
            await adapter.get_token_info(EVM_WALLET, TOKEN_CONTRACT)

        gateway = QueryGateway(GatewayConfig(), adapters={"polygon": adapter})
        envelope = await gateway.get_token_info(EVM_WALLET.value, TOKEN_CONTRACT.value, chain="polygon")

        assert envelope.success is True
        assert envelope.status_code == 200
        assert envelope.provenance == "fallback"
        assert "uint8" in envelope.data["fallbackReason"]

    @pytest.mark.asyncio
    async def test_nft_collection_reads_at_most_limit(self, networks):
        rpc = mock_rpc(
            {},
            {
                "balanceOf(address)": word(12),
                "tokenOfOwnerByIndex(address,uint256)": lambda args: word(1000 + int(args[64:], 16)),
                "tokenURI(uint256)": lambda args: abi_string(f"ipfs://Qm/{int(args, 16)}.json"),
                "ownerOf(uint256)": abi_address(EVM_WALLET.value),
            },
        )
        adapter = EVMAdapter(networks["ethereum"], rpc)

        response = await adapter.get_nft_collection(EVM_WALLET, NFT_CONTRACT, limit=10)

        assert response.fields["balance"] == 12
        assert len(response.fields["items"]) == 10
        first = response.fields["items"][0]
        assert first["token_id"] == 1000
        assert first["token_uri"] == "ipfs://Qm/1000.json"
        assert first["owner"] == EVM_WALLET.value.lower()

    @pytest.mark.asyncio
    async def test_empty_nft_collection(self, networks):
        rpc = mock_rpc({}, {"balanceOf(address)": word(0)})
        adapter = EVMAdapter(networks["polygon"], rpc)

        response = await adapter.get_nft_collection(EVM_WALLET, NFT_CONTRACT, limit=10)

        assert response.fields["balance"] == 0
        assert response.fields["items"] == []
        assert rpc.call.call_count == 1

    @pytest.mark.asyncio
    async def test_verify_mined(self, networks):
        rpc = mock_rpc({
            "eth_getTransactionByHash": {"from": EVM_WALLET.value, "to": TOKEN_CONTRACT.value, "gasPrice": "0x1"},
            "eth_getTransactionReceipt": {
                "blockNumber": "0x10",
                "gasUsed": "0x5208",
                "effectiveGasPrice": hex(30 * 10 ** 9),
                "status": "0x1",
            },
            "eth_getBlockByNumber": {"timestamp": hex(1_700_000_000)},
        })
        adapter = EVMAdapter(networks["polygon"], rpc)

        response = await adapter.verify_transaction(EVM_TX_HASH)

        assert response.fields["found"] is True
        assert response.fields["mined"] is True
        assert response.fields["block_number"] == 16
        assert response.fields["block_timestamp"] == 1_700_000_000
        assert response.fields["gas_used"] == 21000
        assert response.fields["effective_gas_price"] == 30 * 10 ** 9
        assert response.fields["status"] == 1

    @pytest.mark.asyncio
    async def test_verify_pending(self, networks):
        rpc = mock_rpc({
            "eth_getTransactionByHash": {"from": EVM_WALLET.value, "to": None},
            "eth_getTransactionReceipt": None,
        })
        adapter = EVMAdapter(networks["polygon"], rpc)

        response = await adapter.verify_transaction(EVM_TX_HASH)

        assert response.fields["found"] is True
        assert response.fields["mined"] is False
        assert response.fields["status"] is None

    @pytest.mark.asyncio
    async def test_verify_receipt_without_status_field(self, networks):
        rpc = mock_rpc({
            "eth_getTransactionByHash": {"from": EVM_WALLET.value, "to": TOKEN_CONTRACT.value, "gasPrice": "0x1"},
            "eth_getTransactionReceipt": {
                "blockNumber": hex(4_000_000),
                "gasUsed": "0x5208",
                "root": "0x" + "11" * 32,
            },
            "eth_getBlockByNumber": {"timestamp": hex(1_500_000_000)},
        })
        adapter = EVMAdapter(networks["ethereum"], rpc)

        response = await adapter.verify_transaction(EVM_TX_HASH)

        assert response.fields["mined"] is True
        assert response.fields["block_number"] == 4_000_000
        assert response.fields["effective_gas_price"] == 1
        assert response.fields["status"] is None

    @pytest.mark.asyncio
    async def test_verify_not_found_is_data(self, networks):
        rpc = mock_rpc({"eth_getTransactionByHash": None, "eth_getTransactionReceipt": None})
        adapter = EVMAdapter(networks["polygon"], rpc)

        response = await adapter.verify_transaction(EVM_TX_HASH)

        assert response.fields == {"tx_hash": EVM_TX_HASH, "found": False}

    @pytest.mark.asyncio
    async def test_rejects_solana_address(self, networks):
        rpc = mock_rpc({})
        adapter = EVMAdapter(networks["polygon"], rpc)

        with pytest.raises(AddressInvalid):
            await adapter.get_token_info(EVM_WALLET, SOLANA_MINT)
        rpc.call.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_closes_rpc(self, networks):
        rpc = AsyncMock()
        adapter = EVMAdapter(networks["polygon"], rpc)

        await adapter.close()

        rpc.close.assert_awaited_once()


# ============================================================
# ABI HELPERS
# ============================================================

class TestAbi:
    """Tests for ABI encoding/decoding helpers."""

    def test_known_selectors(self):
        assert abi.selector("balanceOf(address)") == "0x70a08231"
        assert abi.selector("totalSupply()") == "0x18160ddd"
        assert abi.selector("decimals()") == "0x313ce567"

    def test_encode_address_argument(self):
        data = abi.encode_call("balanceOf(address)", EVM_WALLET.value)

        assert data.startswith("0x70a08231")
        assert data[10:] == EVM_WALLET.value[2:].lower().rjust(64, "0")

    def test_encode_uint_argument(self):
        data = abi.encode_call("tokenURI(uint256)", 255)
        assert data.endswith("ff")
        assert len(data) == 10 + 64

    def test_decode_string_and_bytes32(self):
        assert abi.decode_string(abi_string("Game Tip Token")) == "Game Tip Token"
        assert abi.decode_string("0x" + b"MKR".ljust(32, b"\x00").hex()) == "MKR"

    def test_decode_errors(self):
        with pytest.raises(abi.AbiDecodingError):
            abi.decode_uint("0x")
        with pytest.raises(abi.AbiDecodingError):
            abi.decode_uint("0xnothex")
        with pytest.raises(abi.AbiDecodingError):
            abi.decode_address(word(2 ** 200))
