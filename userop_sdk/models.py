"""
Data models for the userop SDK.
"""
from decimal import Decimal
from typing import Dict, Any, Optional, List, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from web3 import Web3

from .exceptions import EncodingError
from .packing import (
    PACKED_PAIR_LENGTH,
    SPONSOR_PREFIX_LENGTH,
    UINT256_MAX,
    Uint128Pair,
    gwei_to_wei,
    pack_sponsor_authorization,
    unpack_sponsor_authorization,
    unpack_uint128_pair,
)


def _to_bytes(value: Any) -> Any:
    """Accept 0x-prefixed hex strings wherever raw bytes are expected."""
    if isinstance(value, str):
        if not value.startswith("0x"):
            raise ValueError("hex string must start with 0x")
        return Web3.to_bytes(hexstr=value)
    if isinstance(value, bytearray):
        return bytes(value)
    return value


def _to_checksum(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)) and len(value) != 20:
        raise ValueError("address must be 20 bytes")
    if not Web3.is_address(value):
        raise ValueError(f"invalid address: {value!r}")
    return Web3.to_checksum_address(value)


class GasConfig(BaseModel):
    """
    Gas parameters for a user operation.

    Limits are in gas units. Fees are in gwei and are converted to wei
    exactly when the operation is packed.
    """
    verification_gas_limit: int = Field(200000, ge=0, le=2**128 - 1)
    call_gas_limit: int = Field(200000, ge=0, le=2**128 - 1)
    max_priority_fee_per_gas: Union[int, str, Decimal] = "1"
    max_fee_per_gas: Union[int, str, Decimal] = "10"
    pre_verification_gas: int = Field(50000, ge=0, le=UINT256_MAX)

    @field_validator("max_priority_fee_per_gas", "max_fee_per_gas")
    @classmethod
    def check_gwei(cls, value: Union[int, str, Decimal]) -> Union[int, str, Decimal]:
        try:
            gwei_to_wei(value)
        except EncodingError as e:
            raise ValueError(str(e)) from e
        return value

    @property
    def priority_fee_wei(self) -> int:
        return gwei_to_wei(self.max_priority_fee_per_gas)

    @property
    def max_fee_wei(self) -> int:
        return gwei_to_wei(self.max_fee_per_gas)


class SponsorAuthorization(BaseModel):
    """Paymaster sponsorship attached to a user operation"""
    model_config = ConfigDict(frozen=True)

    paymaster: str
    verification_gas_limit: int = Field(..., ge=0, le=2**128 - 1)
    post_op_gas_limit: int = Field(..., ge=0, le=2**128 - 1)
    data: bytes = b""

    @field_validator("paymaster", mode="before")
    @classmethod
    def check_paymaster(cls, value: Any) -> str:
        return _to_checksum(value)

    @field_validator("data", mode="before")
    @classmethod
    def coerce_data(cls, value: Any) -> Any:
        return _to_bytes(value)

    def to_bytes(self) -> bytes:
        """Serialize to the paymasterAndData wire format"""
        return pack_sponsor_authorization(
            self.paymaster,
            self.verification_gas_limit,
            self.post_op_gas_limit,
            self.data,
        )


class PackedUserOperation(BaseModel):
    """
    PackedUserOperation as consumed by the EntryPoint.

    Byte fields accept either raw bytes or 0x-prefixed hex strings. Field
    names can be given in snake_case or in the camelCase used on-chain.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sender: str
    nonce: int = Field(..., ge=0, le=UINT256_MAX)
    init_code: bytes = Field(b"", alias="initCode")
    call_data: bytes = Field(..., alias="callData")
    account_gas_limits: bytes = Field(..., alias="accountGasLimits")
    pre_verification_gas: int = Field(..., ge=0, le=UINT256_MAX, alias="preVerificationGas")
    gas_fees: bytes = Field(..., alias="gasFees")
    paymaster_and_data: bytes = Field(b"", alias="paymasterAndData")
    signature: bytes = b""

    @field_validator("sender", mode="before")
    @classmethod
    def check_sender(cls, value: Any) -> str:
        return _to_checksum(value)

    @field_validator("nonce", "pre_verification_gas", mode="before")
    @classmethod
    def parse_hex_int(cls, value: Any) -> Any:
        # Bundler RPCs send quantities as 0x-prefixed hex
        if isinstance(value, str) and value.startswith("0x"):
            return int(value, 16)
        return value

    @field_validator(
        "init_code", "call_data", "account_gas_limits", "gas_fees",
        "paymaster_and_data", "signature",
        mode="before",
    )
    @classmethod
    def coerce_bytes(cls, value: Any) -> Any:
        return _to_bytes(value)

    @field_validator("account_gas_limits", "gas_fees")
    @classmethod
    def check_packed_pair(cls, value: bytes) -> bytes:
        if len(value) != PACKED_PAIR_LENGTH:
            raise ValueError(f"packed gas field must be exactly {PACKED_PAIR_LENGTH} bytes")
        return value

    @field_validator("paymaster_and_data")
    @classmethod
    def check_paymaster_and_data(cls, value: bytes) -> bytes:
        if value and len(value) < SPONSOR_PREFIX_LENGTH:
            raise ValueError(
                f"paymasterAndData must be empty or at least {SPONSOR_PREFIX_LENGTH} bytes"
            )
        return value

    @property
    def gas_limits(self) -> Uint128Pair:
        """(verificationGasLimit, callGasLimit)"""
        return unpack_uint128_pair(self.account_gas_limits)

    @property
    def fees(self) -> Uint128Pair:
        """(maxPriorityFeePerGas, maxFeePerGas) in wei"""
        return unpack_uint128_pair(self.gas_fees)

    @property
    def sponsor(self) -> Optional[SponsorAuthorization]:
        return unpack_sponsor_authorization(self.paymaster_and_data)

    @property
    def is_signed(self) -> bool:
        return bool(self.signature)

    def to_rpc_dict(self) -> Dict[str, Any]:
        """
        Convert to the JSON shape used by bundler RPCs.

        Returns:
            Dictionary with camelCase keys and hex-encoded values
        """
        return {
            "sender": self.sender,
            "nonce": hex(self.nonce),
            "initCode": "0x" + self.init_code.hex(),
            "callData": "0x" + self.call_data.hex(),
            "accountGasLimits": "0x" + self.account_gas_limits.hex(),
            "preVerificationGas": hex(self.pre_verification_gas),
            "gasFees": "0x" + self.gas_fees.hex(),
            "paymasterAndData": "0x" + self.paymaster_and_data.hex(),
            "signature": "0x" + self.signature.hex(),
        }

    def as_abi_tuple(self) -> Tuple[Any, ...]:
        """Field tuple in the order of the on-chain PackedUserOperation struct"""
        return (
            self.sender,
            self.nonce,
            self.init_code,
            self.call_data,
            self.account_gas_limits,
            self.pre_verification_gas,
            self.gas_fees,
            self.paymaster_and_data,
            self.signature,
        )


class TxReceipt(BaseModel):
    """Transaction receipt from the blockchain"""
    model_config = ConfigDict(populate_by_name=True)

    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: int
    gas_used: int = Field(..., alias="gasUsed")
    from_address: Optional[str] = Field(None, alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[Dict[str, Any]] = Field(default_factory=list)
