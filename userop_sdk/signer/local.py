"""
Local private-key signer backed by eth_account.
"""
import logging
from typing import Any, Dict

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount

logger = logging.getLogger(__name__)


class LocalSigner:
    """Signs with an in-process secp256k1 key. Signatures are deterministic (RFC 6979)."""

    def __init__(self, private_key: str):
        self._account: LocalAccount = Account.from_key(private_key)
        self.address = self._account.address

    def sign_message(self, message: bytes) -> bytes:
        signed = self._account.sign_message(encode_defunct(primitive=bytes(message)))
        return bytes(signed.signature)

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        return self._account.sign_transaction(transaction_dict)

    def __repr__(self) -> str:
        # Never include key material
        return f"LocalSigner(address={self.address})"


def recover_signer(message: bytes, signature: bytes) -> str:
    """
    Recover the address that signed ``message`` under the personal-message prefix.

    Args:
        message: The signed bytes (for user operations, the 32-byte userOpHash)
        signature: 65-byte signature

    Returns:
        Checksummed signer address
    """
    return Account.recover_message(encode_defunct(primitive=bytes(message)), signature=bytes(signature))
