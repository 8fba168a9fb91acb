"""
Canonical hashing of PackedUserOperations.

These functions are pure: they need neither a node connection nor a
signer, and they reproduce what the EntryPoint computes on-chain.
"""
from typing import Union

from eth_abi import encode
from web3 import Web3

from .exceptions import EncodingError
from .models import PackedUserOperation
from .packing import check_uint

CONTENT_HASH_TYPES = [
    "address", "uint256", "bytes32", "bytes32",
    "bytes32", "uint256", "bytes32", "bytes32",
]
DOMAIN_HASH_TYPES = ["bytes32", "address", "uint256"]


def commit(data: bytes) -> bytes:
    """keccak256 of a variable-length field, giving a fixed 32-byte slot"""
    return bytes(Web3.keccak(bytes(data)))


def user_op_content_hash(op: PackedUserOperation) -> bytes:
    """
    Hash every field of the operation except the signature.

    Args:
        op: The operation to hash

    Returns:
        32-byte keccak256 digest
    """
    encoded = encode(
        CONTENT_HASH_TYPES,
        [
            op.sender,
            op.nonce,
            commit(op.init_code),
            commit(op.call_data),
            op.account_gas_limits,
            op.pre_verification_gas,
            op.gas_fees,
            commit(op.paymaster_and_data),
        ],
    )
    return bytes(Web3.keccak(encoded))


def bind_to_domain(content_hash: bytes, entry_point: str, chain_id: int) -> bytes:
    """
    Bind a content hash to one EntryPoint deployment on one chain.

    Raises:
        EncodingError: If the hash, address or chain id is malformed
    """
    if len(content_hash) != 32:
        raise EncodingError("Content hash must be 32 bytes")
    check_uint(chain_id, 256, "chain id")
    try:
        entry_point = Web3.to_checksum_address(entry_point)
    except (ValueError, TypeError) as e:
        raise EncodingError(f"Invalid EntryPoint address {entry_point!r}: {e}") from e

    encoded = encode(DOMAIN_HASH_TYPES, [bytes(content_hash), entry_point, chain_id])
    return bytes(Web3.keccak(encoded))


def user_op_hash(op: PackedUserOperation, entry_point: str, chain_id: int) -> bytes:
    """The hash an account signs, equal to ``EntryPoint.getUserOpHash(op)``"""
    return bind_to_domain(user_op_content_hash(op), entry_point, chain_id)


def to_hex(digest: Union[bytes, bytearray]) -> str:
    return "0x" + bytes(digest).hex()
