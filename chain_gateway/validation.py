"""
Address Validation - Per-family syntactic checks, no network access.

Solana:
- Addresses are base58-encoded 32-byte public keys
- Transaction signatures are base58-encoded 64-byte values

EVM:
- Addresses are `0x` + 40 hex digits, any case (no EIP-55 checksum check)
- Transaction hashes are `0x` + 64 hex digits
"""

import logging
import re
from typing import Optional

import base58

from chain_gateway.exceptions import InvalidAddressFormat, InvalidTransactionFormat
from chain_gateway.models import Address, ChainFamily


logger = logging.getLogger(__name__)


EVM_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
EVM_TX_HASH_PATTERN = re.compile(r"^0x[a-fA-F0-9]{64}$")

SOLANA_PUBKEY_LENGTH = 32
SOLANA_SIGNATURE_LENGTH = 64


def _b58_length(value: str) -> Optional[int]:
    """Decoded byte length, or None when the string is not base58."""
    if not value:
        return None
    try:
        return len(base58.b58decode(value))
    except ValueError:
        return None


class AddressValidator:
    """Validates addresses and transaction identifiers for one chain family."""

    def validate(
        self,
        address: Optional[str],
        family: ChainFamily,
        field_name: str = "address",
    ) -> Address:
        """
        Validate an address for a chain family.

        Raises:
            InvalidAddressFormat: If the address does not match the grammar
        """
        value = (address or "").strip()

        if family == ChainFamily.SOLANA:
            valid = _b58_length(value) == SOLANA_PUBKEY_LENGTH
        else:
            valid = bool(EVM_ADDRESS_PATTERN.match(value))

        if not valid:
            logger.info(f"Rejected {family.value} {field_name}: {address!r}")
            raise InvalidAddressFormat(
                detail=f"Invalid {self._family_label(family)} address format for {field_name}: {address!r}",
                chain=family.value,
                field_name=field_name,
                value=address,
            )

        return Address(value=value, family=family)

    def validate_transaction(self, tx_hash: Optional[str], family: ChainFamily) -> str:
        """
        Validate a transaction hash (EVM) or signature (Solana).

        Raises:
            InvalidTransactionFormat: If the identifier does not match the grammar
        """
        value = (tx_hash or "").strip()

        if family == ChainFamily.SOLANA:
            valid = _b58_length(value) == SOLANA_SIGNATURE_LENGTH
        else:
            valid = bool(EVM_TX_HASH_PATTERN.match(value))

        if not valid:
            raise InvalidTransactionFormat(
                detail=f"Invalid {self._family_label(family)} transaction identifier: {tx_hash!r}",
                chain=family.value,
                field_name="txHash",
                value=tx_hash,
            )

        return value

    def is_valid(self, address: Optional[str], family: ChainFamily) -> bool:
        """Boolean form of `validate`."""
        try:
            self.validate(address, family)
        except InvalidAddressFormat:
            return False
        return True

    @staticmethod
    def _family_label(family: ChainFamily) -> str:
        return "Solana" if family == ChainFamily.SOLANA else "EVM"
