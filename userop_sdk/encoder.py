"""
Operation encoder: builds unsigned PackedUserOperations.
"""
import logging
from typing import Any, Dict, Optional, Union

from eth_abi import encode
from pydantic import ValidationError
from web3 import Web3

from .exceptions import EncodingError
from .models import GasConfig, PackedUserOperation
from .packing import check_uint, pack_uint128_pair

logger = logging.getLogger(__name__)

EXECUTE_SIGNATURE = "execute(address,uint256,bytes)"
EXECUTE_SELECTOR = bytes(Web3.keccak(text=EXECUTE_SIGNATURE)[:4])


def _checksum(address: Any, name: str) -> str:
    try:
        return Web3.to_checksum_address(address)
    except (ValueError, TypeError) as e:
        raise EncodingError(f"Invalid {name} address {address!r}: {e}") from e


def encode_execute(target: str, value: int, data: bytes) -> bytes:
    """
    Encode a SimpleAccount ``execute(address,uint256,bytes)`` call.

    Args:
        target: Contract the account should call
        value: Wei to forward with the call
        data: Calldata for the target

    Returns:
        4-byte selector followed by the ABI-encoded arguments
    """
    check_uint(value, 256, "call value")
    encoded = encode(
        ["address", "uint256", "bytes"],
        [_checksum(target, "target"), value, bytes(data)],
    )
    return EXECUTE_SELECTOR + encoded


def _account_address(account: Any) -> str:
    if isinstance(account, str):
        return _checksum(account, "account")
    address = getattr(account, "address", None)
    if address is None:
        raise EncodingError(f"Account handle {type(account).__name__} has no address")
    return _checksum(address, "account")


def encode_account_call(account: Any, target: str, value: int, data: bytes) -> bytes:
    """
    Encode the callData for ``account.execute(target, value, data)``.

    A plain address uses the standard SimpleAccount schema. A contract
    handle (e.g. a web3 ``Contract``) encodes with its own ABI, so a
    handle without an ``execute`` function is rejected here rather than
    on-chain.

    Raises:
        EncodingError: If the handle cannot produce the execute call
    """
    if isinstance(account, str):
        return encode_execute(target, value, data)

    # web3 v7 names it encode_abi, v6 encodeABI
    encode_abi = getattr(account, "encode_abi", None) or getattr(account, "encodeABI", None)
    if encode_abi is None:
        raise EncodingError(
            f"Account handle {type(account).__name__} cannot encode the execute call"
        )

    check_uint(value, 256, "call value")
    try:
        encoded = encode_abi("execute", args=[_checksum(target, "target"), value, bytes(data)])
    except EncodingError:
        raise
    except Exception as e:
        raise EncodingError(f"Account handle failed to encode execute: {e}") from e

    call_data = Web3.to_bytes(hexstr=encoded) if isinstance(encoded, str) else bytes(encoded)
    if call_data[:4] != EXECUTE_SELECTOR:
        raise EncodingError(
            f"Account execute selector 0x{call_data[:4].hex()} does not match {EXECUTE_SIGNATURE}"
        )
    return call_data


def create_user_op(
    account: Union[str, Any],
    target: str,
    data: bytes,
    nonce: int = 0,
    gas_config: Optional[Union[GasConfig, Dict[str, Any]]] = None,
    value: int = 0,
    init_code: bytes = b"",
) -> PackedUserOperation:
    """
    Build an unsigned, unsponsored PackedUserOperation.

    Args:
        account: Smart account address or contract handle
        target: Address the account should call
        data: Calldata for the target
        nonce: EntryPoint nonce for the account
        gas_config: GasConfig or dict of its fields (defaults apply when omitted)
        value: Wei forwarded to the target
        init_code: Account factory initCode, empty for deployed accounts

    Returns:
        PackedUserOperation with empty signature and paymasterAndData

    Raises:
        EncodingError: If any field is malformed or out of range
    """
    if gas_config is None:
        gas_config = GasConfig()
    elif isinstance(gas_config, dict):
        try:
            gas_config = GasConfig(**gas_config)
        except ValidationError as e:
            raise EncodingError(f"Invalid gas configuration: {e}") from e
    check_uint(nonce, 256, "nonce")

    sender = _account_address(account)
    call_data = encode_account_call(account, target, value, data)

    account_gas_limits = pack_uint128_pair(
        gas_config.verification_gas_limit, gas_config.call_gas_limit
    )
    gas_fees = pack_uint128_pair(gas_config.priority_fee_wei, gas_config.max_fee_wei)

    try:
        op = PackedUserOperation(
            sender=sender,
            nonce=nonce,
            init_code=bytes(init_code),
            call_data=call_data,
            account_gas_limits=account_gas_limits,
            pre_verification_gas=gas_config.pre_verification_gas,
            gas_fees=gas_fees,
        )
    except ValidationError as e:
        raise EncodingError(f"Invalid user operation: {e}") from e

    logger.debug(f"Encoded user operation for {sender} with nonce {nonce}")
    return op
