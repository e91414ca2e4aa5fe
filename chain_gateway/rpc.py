"""
JSON-RPC Client - One long-lived HTTP session per network.

Both Solana and EVM nodes speak JSON-RPC 2.0 over HTTP POST. This client
owns the aiohttp session, frames requests and maps every failure mode onto
the adapter error taxonomy:

- connection errors, timeouts, HTTP 429 / 5xx  -> UpstreamUnavailable
- HTTP 4xx, JSON-RPC error objects, bad JSON  -> UpstreamRejected

Instances are safe to share between concurrent requests; the only mutable
field is the request-id counter.
"""

import asyncio
import itertools
import logging
import time
from typing import Any, Optional

import aiohttp

from chain_gateway.exceptions import UpstreamRejected, UpstreamUnavailable


logger = logging.getLogger(__name__)


class JsonRpcClient:
    """Minimal async JSON-RPC 2.0 client."""

    DEFAULT_TIMEOUT = 5.0

    def __init__(
        self,
        url: str,
        name: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.url = url
        self.name = name
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._ids = itertools.count(1)
        self.last_latency_ms: Optional[float] = None

    # ─────────────────────────────────────────────────────────────
    # HTTP Helpers
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "ChainGateway/1.0",
        }

    async def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """
        Invoke one JSON-RPC method and return its `result` member.

        A `null` result is returned as None; callers decide whether that
        means "not found".

        Raises:
            UpstreamUnavailable: Network failure, timeout, 429 or 5xx
            UpstreamRejected: Explicit RPC error or malformed reply
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        session = await self._get_session()

        start_time = time.time()
        try:
            async with session.post(self.url, json=payload) as response:
                self.last_latency_ms = (time.time() - start_time) * 1000

                if response.status == 429 or response.status >= 500:
                    raise UpstreamUnavailable(
                        message=f"HTTP {response.status} from {method}",
                        adapter_name=self.name,
                        status_code=response.status,
                    )

                if response.status >= 400:
                    body = await response.text()
                    raise UpstreamRejected(
                        message=f"HTTP {response.status} from {method}",
                        adapter_name=self.name,
                        status_code=response.status,
                        response_body=body[:500],
                    )

                try:
                    body = await response.json(content_type=None)
                except ValueError as e:
                    raise UpstreamRejected(
                        message=f"Undecodable reply to {method}",
                        adapter_name=self.name,
                        status_code=response.status,
                        original_error=e,
                    )

        except asyncio.TimeoutError as e:
            raise UpstreamUnavailable(
                message=f"Timeout calling {method}",
                adapter_name=self.name,
                original_error=e,
            )
        except aiohttp.ClientError as e:
            raise UpstreamUnavailable(
                message=f"Connection error calling {method}: {e}",
                adapter_name=self.name,
                original_error=e,
            )

        if not isinstance(body, dict):
            raise UpstreamRejected(
                message=f"Unexpected reply shape to {method}",
                adapter_name=self.name,
                response_body=str(body)[:500],
            )

        error = body.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            text = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise UpstreamRejected(
                message=f"{method} failed: {text}",
                adapter_name=self.name,
                rpc_code=code,
                response_body=str(body)[:500],
            )

        if "result" not in body:
            raise UpstreamRejected(
                message=f"Reply to {method} has no result",
                adapter_name=self.name,
                response_body=str(body)[:500],
            )

        logger.debug(f"[{self.name}] {method} ok ({self.last_latency_ms:.0f}ms)")
        return body["result"]

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "JsonRpcClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, url={self.url})>"
