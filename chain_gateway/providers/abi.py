"""
Minimal Solidity ABI helpers for read-only `eth_call` requests.

Covers the handful of types the gateway reads from ERC-20 / ERC-721 style
contracts: `address` and `uint256` arguments, and `uint256`, `address`,
`string` (or legacy `bytes32`) return values.
"""

from functools import lru_cache
from typing import Union

from Crypto.Hash import keccak


WORD_SIZE = 32


class AbiDecodingError(ValueError):
    """Return data does not decode as the expected type."""


@lru_cache(maxsize=None)
def selector(signature: str) -> str:
    """First four bytes of keccak-256(signature), hex encoded with 0x prefix."""
    digest = keccak.new(digest_bits=256)
    digest.update(signature.encode())
    return "0x" + digest.hexdigest()[:8]


def _encode_arg(value: Union[str, int]) -> str:
    if isinstance(value, int):
        if value < 0:
            raise ValueError("uint256 arguments must be non-negative")
        return format(value, "064x")
    text = value.lower()
    if text.startswith("0x"):
        text = text[2:]
    if len(text) != 40:
        raise ValueError(f"Not an address: {value!r}")
    return text.rjust(64, "0")


def encode_call(signature: str, *args: Union[str, int]) -> str:
    """Calldata for a function taking only static `address` / `uint256` args."""
    return selector(signature) + "".join(_encode_arg(arg) for arg in args)


def _to_bytes(data: str) -> bytes:
    text = data[2:] if data.startswith("0x") else data
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise AbiDecodingError(f"Return data is not hex: {data[:80]!r}") from e


def decode_uint(data: str) -> int:
    raw = _to_bytes(data)
    if len(raw) < WORD_SIZE:
        raise AbiDecodingError(f"Expected a 32-byte word, got {len(raw)} bytes")
    return int.from_bytes(raw[:WORD_SIZE], "big")


def decode_address(data: str) -> str:
    value = decode_uint(data)
    if value >> 160:
        raise AbiDecodingError("Address word has non-zero high bytes")
    return "0x" + format(value, "040x")


def decode_string(data: str) -> str:
    """Decode a dynamic `string`; falls back to a null-padded `bytes32`."""
    raw = _to_bytes(data)
    if len(raw) == WORD_SIZE:
        return raw.rstrip(b"\x00").decode("utf-8", errors="replace")
    if len(raw) < 2 * WORD_SIZE:
        raise AbiDecodingError(f"String return too short ({len(raw)} bytes)")

    offset = int.from_bytes(raw[:WORD_SIZE], "big")
    if offset + WORD_SIZE > len(raw):
        raise AbiDecodingError("String offset out of range")
    length = int.from_bytes(raw[offset:offset + WORD_SIZE], "big")
    start = offset + WORD_SIZE
    if start + length > len(raw):
        raise AbiDecodingError("String length out of range")
    return raw[start:start + length].decode("utf-8", errors="replace")
