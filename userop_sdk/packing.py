"""
Fixed-width packing helpers for PackedUserOperation fields.

Gas limits and gas fees each occupy a single bytes32 slot holding two
uint128 halves, high half first. The paymaster payload is a plain
concatenation of an address and two uint128 limits.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Optional, Union

from web3 import Web3

from .exceptions import EncodingError

UINT128_MAX = 2**128 - 1
UINT256_MAX = 2**256 - 1

ADDRESS_LENGTH = 20
UINT128_LENGTH = 16
PACKED_PAIR_LENGTH = 32
SPONSOR_PREFIX_LENGTH = ADDRESS_LENGTH + 2 * UINT128_LENGTH  # 52

GWEI = 10**9

GweiAmount = Union[int, str, Decimal]


@dataclass(frozen=True)
class Uint128Pair:
    """
    Two unsigned 128-bit integers sharing one bytes32 slot.

    Attributes:
        high: Upper 128 bits (verification gas limit / max priority fee)
        low: Lower 128 bits (call gas limit / max fee)
    """
    high: int
    low: int

    def pack(self) -> bytes:
        return pack_uint128_pair(self.high, self.low)


def check_uint(value: int, bits: int, name: str) -> int:
    """
    Ensure ``value`` is an int that fits in ``bits`` unsigned bits.

    Raises:
        EncodingError: If the value is not an int, is negative, or overflows
    """
    # bool is an int subclass but never a valid gas/nonce value
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise EncodingError(f"{name} must be non-negative, got {value}")
    if value >= 2**bits:
        raise EncodingError(f"{name} does not fit in uint{bits}: {value}")
    return value


def pack_uint128_pair(high: int, low: int) -> bytes:
    """
    Pack two uint128 values into a 32-byte big-endian word.

    Args:
        high: Value for the upper 128 bits
        low: Value for the lower 128 bits

    Returns:
        32 bytes equal to ``(high << 128) | low``

    Raises:
        EncodingError: If either half is negative or >= 2**128
    """
    check_uint(high, 128, "high half")
    check_uint(low, 128, "low half")
    return ((high << 128) | low).to_bytes(PACKED_PAIR_LENGTH, "big")


def unpack_uint128_pair(packed: bytes) -> Uint128Pair:
    """
    Split a 32-byte word back into its two uint128 halves.

    Raises:
        EncodingError: If ``packed`` is not exactly 32 bytes
    """
    if not isinstance(packed, (bytes, bytearray)) or len(packed) != PACKED_PAIR_LENGTH:
        raise EncodingError(f"Packed pair must be exactly {PACKED_PAIR_LENGTH} bytes")
    word = int.from_bytes(packed, "big")
    return Uint128Pair(high=word >> 128, low=word & UINT128_MAX)


def gwei_to_wei(amount: GweiAmount) -> int:
    """
    Convert a human-readable gwei amount to wei without losing precision.

    Args:
        amount: Gwei value as int, decimal string or Decimal (e.g. "1.5")

    Returns:
        Integer amount in wei

    Raises:
        EncodingError: If the amount is negative, not numeric, or has
            more precision than one wei
    """
    if isinstance(amount, bool):
        raise EncodingError("Gas price must be numeric, got bool")
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError) as e:
        raise EncodingError(f"Invalid gas price {amount!r}: {e}") from e

    if not value.is_finite():
        raise EncodingError(f"Gas price must be finite, got {amount!r}")
    if value < 0:
        raise EncodingError(f"Gas price must be non-negative, got {amount!r}")

    with localcontext() as ctx:
        ctx.prec = 200
        wei = value * GWEI
        exact = wei == wei.to_integral_value()
    if not exact:
        raise EncodingError(f"Gas price {amount!r} gwei is not a whole number of wei")

    try:
        return int(Web3.to_wei(value, "gwei"))
    except ValueError as e:
        raise EncodingError(f"Gas price {amount!r} gwei is out of range: {e}") from e


def _address_bytes(address: Union[str, bytes], name: str) -> bytes:
    try:
        if isinstance(address, (bytes, bytearray)):
            raw = bytes(address)
        else:
            raw = Web3.to_bytes(hexstr=Web3.to_checksum_address(address))
    except (ValueError, TypeError) as e:
        raise EncodingError(f"Invalid {name} address {address!r}: {e}") from e
    if len(raw) != ADDRESS_LENGTH:
        raise EncodingError(f"{name} address must be {ADDRESS_LENGTH} bytes, got {len(raw)}")
    return raw


def pack_sponsor_authorization(
    paymaster: Union[str, bytes],
    verification_gas_limit: int,
    post_op_gas_limit: int,
    data: bytes = b"",
) -> bytes:
    """
    Build the paymasterAndData field.

    Layout: paymaster (20) || verificationGasLimit (16) || postOpGasLimit (16) || data

    Raises:
        EncodingError: If the address is malformed or a limit overflows uint128
    """
    check_uint(verification_gas_limit, 128, "paymaster verification gas limit")
    check_uint(post_op_gas_limit, 128, "paymaster post-op gas limit")
    return (
        _address_bytes(paymaster, "paymaster")
        + verification_gas_limit.to_bytes(UINT128_LENGTH, "big")
        + post_op_gas_limit.to_bytes(UINT128_LENGTH, "big")
        + bytes(data)
    )


def unpack_sponsor_authorization(payload: bytes) -> Optional["SponsorAuthorization"]:
    """
    Decode a paymasterAndData field.

    Returns:
        SponsorAuthorization, or None for an empty (unsponsored) payload

    Raises:
        EncodingError: If a non-empty payload is shorter than 52 bytes
    """
    # Imported here to avoid a circular import with models
    from .models import SponsorAuthorization

    if not payload:
        return None
    if len(payload) < SPONSOR_PREFIX_LENGTH:
        raise EncodingError(
            f"paymasterAndData must be empty or at least {SPONSOR_PREFIX_LENGTH} bytes, got {len(payload)}"
        )
    limits_end = ADDRESS_LENGTH + UINT128_LENGTH
    return SponsorAuthorization(
        paymaster=Web3.to_checksum_address(payload[:ADDRESS_LENGTH]),
        verification_gas_limit=int.from_bytes(payload[ADDRESS_LENGTH:limits_end], "big"),
        post_op_gas_limit=int.from_bytes(payload[limits_end:SPONSOR_PREFIX_LENGTH], "big"),
        data=bytes(payload[SPONSOR_PREFIX_LENGTH:]),
    )
