"""
Signer interface for the userop SDK.

Any object with an ``address`` and a ``sign_message`` method can sign
user operations, so remote signers and hardware wallets can be plugged
in without touching the hashing logic.
"""
from typing import Any, Dict, Protocol, runtime_checkable

from .local import LocalSigner, recover_signer


@runtime_checkable
class Signer(Protocol):
    """Protocol for user operation signers"""
    address: str

    def sign_message(self, message: bytes) -> bytes:
        """
        Sign ``message`` under the EIP-191 personal-message prefix.

        Returns:
            65-byte r || s || v signature
        """
        ...


class TransactionSigner(Signer, Protocol):
    """Signer that can also sign the handleOps transaction"""

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return signed tx object"""
        ...


__all__ = ["Signer", "TransactionSigner", "LocalSigner", "recover_signer"]
