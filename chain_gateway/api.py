"""
Chain Gateway - HTTP API.

============================================================
RESPONSIBILITY
============================================================
Maps routes onto gateway capabilities and envelopes onto HTTP:
- 200 for authoritative and fallback data
- 400 for rejected input
- 500 for internal failures

The app owns the gateway lifecycle unless one is injected.
============================================================
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from chain_gateway import __version__
from chain_gateway.config import GatewayConfig
from chain_gateway.gateway import QueryGateway, create_gateway
from chain_gateway.models import NormalizedEnvelope

logger = logging.getLogger(__name__)


API_PREFIX = "/api/v1/blockchain"

ENDPOINTS = {
    "solanaWallet": f"GET {API_PREFIX}/solana/wallet/:walletAddress",
    "evmWallet": f"GET {API_PREFIX}/evm/wallet/:walletAddress?network=polygon",
    "evmToken": f"GET {API_PREFIX}/evm/token/:walletAddress/:contractAddress?network=polygon",
    "evmNFT": f"GET {API_PREFIX}/evm/nft/:walletAddress/:contractAddress?network=polygon",
    "gameStats": f"GET {API_PREFIX}/game/stats",
    "verifyTransaction": f"POST {API_PREFIX}/verify-transaction",
}


# ============================================================
# Request Models
# ============================================================

class VerifyTransactionBody(BaseModel):
    txHash: Optional[str] = None
    chain: Optional[str] = None


def _respond(envelope: NormalizedEnvelope) -> JSONResponse:
    return JSONResponse(envelope.to_dict(), status_code=envelope.status_code)


def _gateway(request: Request) -> QueryGateway:
    return request.app.state.gateway


# ============================================================
# FastAPI Application
# ============================================================

def create_app(gateway: Optional[QueryGateway] = None) -> FastAPI:
    """
    Build the API app.

    Args:
        gateway: Pre-built gateway. When omitted, one is built from the
            environment on startup and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = gateway is None
        app.state.gateway = gateway or create_gateway(GatewayConfig.from_env())
        logger.info(f"Chain gateway ready: {app.state.gateway!r}")
        try:
            yield
        finally:
            if owned:
                await app.state.gateway.close()
                logger.info("Chain gateway closed")

    app = FastAPI(
        title="Chain Gateway API",
        description="Normalized read-only queries across Solana and EVM chains",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            {
                "success": False,
                "message": "Invalid request",
                "error": str(exc.errors()),
                "timestamp": datetime.utcnow().isoformat() + "Z",
            },
            status_code=400,
        )

    # ─────────────────────────────────────────────────────────────
    # Endpoints
    # ─────────────────────────────────────────────────────────────

    @app.get(f"{API_PREFIX}/health", tags=["Health"])
    async def health(request: Request):
        """Service liveness and the live status of each network."""
        return {
            "success": True,
            "message": "Blockchain API is healthy",
            "endpoints": ENDPOINTS,
            "networks": _gateway(request).describe(),
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }

    @app.get(f"{API_PREFIX}/solana/wallet/{{wallet_address}}", tags=["Solana"])
    async def solana_wallet(request: Request, wallet_address: str):
        return _respond(await _gateway(request).get_wallet_info(wallet_address, chain="solana"))

    @app.get(f"{API_PREFIX}/evm/wallet/{{wallet_address}}", tags=["EVM"])
    async def evm_wallet(request: Request, wallet_address: str, network: Optional[str] = Query(None)):
        gateway = _gateway(request)
        chain = network or gateway.config.default_evm_network
        return _respond(await gateway.get_wallet_info(wallet_address, chain=chain))

    @app.get(f"{API_PREFIX}/evm/token/{{wallet_address}}/{{contract_address}}", tags=["EVM"])
    async def evm_token(
        request: Request,
        wallet_address: str,
        contract_address: str,
        network: Optional[str] = Query(None),
    ):
        envelope = await _gateway(request).get_token_info(wallet_address, contract_address, chain=network)
        return _respond(envelope)

    @app.get(f"{API_PREFIX}/evm/nft/{{wallet_address}}/{{contract_address}}", tags=["EVM"])
    async def evm_nft(
        request: Request,
        wallet_address: str,
        contract_address: str,
        network: Optional[str] = Query(None),
    ):
        envelope = await _gateway(request).get_nft_collection(wallet_address, contract_address, chain=network)
        return _respond(envelope)

    @app.get(f"{API_PREFIX}/game/stats", tags=["Game"])
    async def game_stats(request: Request):
        return _respond(await _gateway(request).get_game_stats())

    @app.post(f"{API_PREFIX}/verify-transaction", tags=["Transactions"])
    async def verify_transaction(request: Request, body: VerifyTransactionBody):
        envelope = await _gateway(request).verify_transaction(body.txHash, body.chain or "")
        return _respond(envelope)

    return app


app = create_app()
