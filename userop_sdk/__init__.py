"""
userop SDK - encode, sign and submit sponsored ERC-4337 user operations.
"""
from .version import __version__
from .binder import attach_sponsor, resolve_chain_id, sign_user_op, verify_user_op_signature
from .client import UserOpClient
from .config import ContractAddresses, EnvStore
from .encoder import create_user_op, encode_account_call, encode_execute
from .exceptions import (
    UserOpError,
    EncodingError,
    SigningError,
    DomainMismatchError,
    TransactionError,
    NonceConflictError,
    ConfigError,
)
from .hashing import bind_to_domain, commit, user_op_content_hash, user_op_hash
from .models import GasConfig, PackedUserOperation, SponsorAuthorization, TxReceipt
from .packing import (
    Uint128Pair,
    gwei_to_wei,
    pack_sponsor_authorization,
    pack_uint128_pair,
    unpack_sponsor_authorization,
    unpack_uint128_pair,
)
from .signer import LocalSigner, Signer, recover_signer

__all__ = [
    "__version__",
    "UserOpClient",
    "EnvStore",
    "ContractAddresses",
    "GasConfig",
    "PackedUserOperation",
    "SponsorAuthorization",
    "TxReceipt",
    "Uint128Pair",
    "pack_uint128_pair",
    "unpack_uint128_pair",
    "pack_sponsor_authorization",
    "unpack_sponsor_authorization",
    "gwei_to_wei",
    "encode_execute",
    "encode_account_call",
    "create_user_op",
    "commit",
    "user_op_content_hash",
    "bind_to_domain",
    "user_op_hash",
    "attach_sponsor",
    "resolve_chain_id",
    "sign_user_op",
    "verify_user_op_signature",
    "Signer",
    "LocalSigner",
    "recover_signer",
    "UserOpError",
    "EncodingError",
    "SigningError",
    "DomainMismatchError",
    "TransactionError",
    "NonceConflictError",
    "ConfigError",
]
