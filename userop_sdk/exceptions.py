"""
Exceptions for the userop SDK.
"""
from typing import Optional


class UserOpError(Exception):
    """Base exception for all userop SDK errors."""
    pass


class EncodingError(UserOpError):
    """Raised when an operation field is malformed or out of range."""
    pass


class SigningError(UserOpError):
    """Raised when the signing credential is unavailable or signing fails."""
    pass


class DomainMismatchError(UserOpError):
    """
    Raised when the relay address or chain id used for signing does not
    match what the EntryPoint uses at execution time.

    This can only be detected downstream: by asking the EntryPoint for its
    own operation hash, or by a signature revert during handleOps.
    """

    def __init__(self, message: str, local_hash: Optional[bytes] = None, remote_hash: Optional[bytes] = None):
        self.local_hash = local_hash
        self.remote_hash = remote_hash
        super().__init__(message)


class TransactionError(UserOpError):
    """Raised when submitting operations to the EntryPoint fails."""

    def __init__(self, message: str, revert_reason: Optional[str] = None):
        self.revert_reason = revert_reason
        super().__init__(message)


class NonceConflictError(TransactionError):
    """Raised when the EntryPoint rejects an operation for an invalid nonce (AA25)."""
    pass


class ConfigError(UserOpError):
    """Raised when a required configuration value is missing or invalid."""
    pass
