"""
Chain Gateway Exceptions - Custom exception hierarchy.

Validation errors short-circuit a request before any I/O.
Upstream errors are recoverable and become flagged fallback data.
Everything else is an internal failure.
"""

from datetime import datetime
from typing import Any, Optional


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.chain = chain
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "chain": self.chain,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.chain:
            parts.append(f"[chain={self.chain}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


# ─────────────────────────────────────────────────────────────
# Client input
# ─────────────────────────────────────────────────────────────

class ValidationError(GatewayError):
    """Malformed client input. Never retried, surfaced as a rejection."""

    code = "ValidationError"

    def __init__(
        self,
        detail: str,
        chain: Optional[str] = None,
        field_name: Optional[str] = None,
        value: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(message or self.code, chain)
        self.detail = detail
        self.field_name = field_name
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "code": self.code,
            "detail": self.detail,
            "field_name": self.field_name,
            "value": self.value,
        })
        return data


class InvalidAddressFormat(ValidationError):
    """Address does not match the chain family's grammar."""
    code = "InvalidAddressFormat"


class InvalidTransactionFormat(ValidationError):
    """Transaction hash / signature does not match the chain family's grammar."""
    code = "InvalidTransactionFormat"


class MissingParameterError(ValidationError):
    """A required request parameter is absent."""
    code = "MissingParameter"


class UnsupportedChainError(ValidationError):
    """Chain name is not one the gateway knows about."""

    code = "UnsupportedChain"

    def __init__(self, chain: str, supported_chains: list[str]) -> None:
        quoted = [f'"{name}"' for name in supported_chains]
        choices = quoted[0] if len(quoted) == 1 else ", ".join(quoted[:-1]) + ", or " + quoted[-1]
        super().__init__(
            detail=f"Chain '{chain}' is not supported",
            chain=chain,
            field_name="chain",
            value=chain,
            message=f"Unsupported chain. Use {choices}",
        )
        self.supported_chains = supported_chains


# ─────────────────────────────────────────────────────────────
# Upstream
# ─────────────────────────────────────────────────────────────

class AdapterError(GatewayError):
    """Error raised by a chain adapter or its RPC client."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        chain: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, chain, original_error, context)
        self.adapter_name = adapter_name

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["adapter_name"] = self.adapter_name
        return data

    def __str__(self) -> str:
        text = super().__str__()
        if self.adapter_name:
            text += f" [adapter={self.adapter_name}]"
        return text


class UpstreamUnavailable(AdapterError):
    """Network failure, timeout, or an overloaded upstream (HTTP 429 / 5xx)."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        chain: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, adapter_name, chain, original_error, context)
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class UpstreamRejected(AdapterError):
    """The upstream answered with an explicit error or an undecodable reply."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        chain: Optional[str] = None,
        rpc_code: Optional[int] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, adapter_name, chain, original_error, context)
        self.rpc_code = rpc_code
        self.status_code = status_code
        self.response_body = response_body

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "rpc_code": self.rpc_code,
            "status_code": self.status_code,
            "response_body": self.response_body,
        })
        return data


class AddressInvalid(AdapterError):
    """An address of the wrong family reached an adapter. Programmer error."""


# ─────────────────────────────────────────────────────────────
# Internal
# ─────────────────────────────────────────────────────────────

class ConfigurationError(GatewayError):
    """Malformed gateway configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, None, original_error)
        self.config_key = config_key

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["config_key"] = self.config_key
        return data


# Upstream failures that are served from the fallback path
RECOVERABLE_ERRORS = (UpstreamUnavailable, UpstreamRejected)
