"""
UserOpClient - builds, signs and submits sponsored user operations.
"""
import logging
import urllib.parse
from typing import Dict, Any, Optional, Sequence, Union

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception
from web3.types import TxReceipt as Web3TxReceipt

from .binder import attach_sponsor, sign_user_op
from .encoder import create_user_op
from .exceptions import (
    DomainMismatchError,
    EncodingError,
    NonceConflictError,
    SigningError,
    TransactionError,
)
from .hashing import to_hex, user_op_hash
from .models import GasConfig, PackedUserOperation, SponsorAuthorization, TxReceipt
from .signer import LocalSigner, Signer, TransactionSigner

DEFAULT_HANDLE_OPS_GAS = 1_000_000

# EntryPoint custom errors carrying an "AAxx" reason string
FAILED_OP_SIGNATURE = "FailedOp(uint256,string)"
FAILED_OP_WITH_REVERT_SIGNATURE = "FailedOpWithRevert(uint256,string,bytes)"
FAILED_OP_SELECTOR = bytes(Web3.keccak(text=FAILED_OP_SIGNATURE)[:4])
FAILED_OP_WITH_REVERT_SELECTOR = bytes(Web3.keccak(text=FAILED_OP_WITH_REVERT_SIGNATURE)[:4])

_USER_OP_COMPONENTS = [
    {"internalType": "address", "name": "sender", "type": "address"},
    {"internalType": "uint256", "name": "nonce", "type": "uint256"},
    {"internalType": "bytes", "name": "initCode", "type": "bytes"},
    {"internalType": "bytes", "name": "callData", "type": "bytes"},
    {"internalType": "bytes32", "name": "accountGasLimits", "type": "bytes32"},
    {"internalType": "uint256", "name": "preVerificationGas", "type": "uint256"},
    {"internalType": "bytes32", "name": "gasFees", "type": "bytes32"},
    {"internalType": "bytes", "name": "paymasterAndData", "type": "bytes"},
    {"internalType": "bytes", "name": "signature", "type": "bytes"},
]


def decode_failed_op(revert_data: Any) -> Optional[str]:
    """
    Decode EntryPoint ``FailedOp`` / ``FailedOpWithRevert`` revert data.

    Args:
        revert_data: Raw revert bytes or 0x-prefixed hex

    Returns:
        The "AAxx ..." reason, or None if the data is not a FailedOp error
    """
    if not revert_data:
        return None
    try:
        raw = bytes(HexBytes(revert_data))
    except (ValueError, TypeError):
        return None

    selector, payload = raw[:4], raw[4:]
    try:
        if selector == FAILED_OP_SELECTOR:
            _, reason = decode(["uint256", "string"], payload)
        elif selector == FAILED_OP_WITH_REVERT_SELECTOR:
            _, reason, _ = decode(["uint256", "string", "bytes"], payload)
        else:
            return None
    except (DecodingError, UnicodeDecodeError):
        return None
    return reason


class UserOpClient:
    """
    Client for sponsored execution through an ERC-4337 EntryPoint.

    This client handles:
    1. Reading the account nonce from the EntryPoint
    2. Encoding, sponsoring and signing user operations
    3. Submitting batches via handleOps

    To use this client, you'll need:
    - An Ethereum RPC endpoint
    - The EntryPoint contract address
    - Either a private key or a custom signer
    """

    # ABI subset of the EntryPoint contract
    ENTRY_POINT_ABI = [
        {
            "inputs": [
                {"internalType": "address", "name": "sender", "type": "address"},
                {"internalType": "uint192", "name": "key", "type": "uint192"}
            ],
            "name": "getNonce",
            "outputs": [{"internalType": "uint256", "name": "nonce", "type": "uint256"}],
            "stateMutability": "view",
            "type": "function"
        },
        {
            "inputs": [
                {
                    "components": _USER_OP_COMPONENTS,
                    "internalType": "struct PackedUserOperation",
                    "name": "userOp",
                    "type": "tuple"
                }
            ],
            "name": "getUserOpHash",
            "outputs": [{"internalType": "bytes32", "name": "", "type": "bytes32"}],
            "stateMutability": "view",
            "type": "function"
        },
        {
            "inputs": [
                {
                    "components": _USER_OP_COMPONENTS,
                    "internalType": "struct PackedUserOperation[]",
                    "name": "ops",
                    "type": "tuple[]"
                },
                {"internalType": "address payable", "name": "beneficiary", "type": "address"}
            ],
            "name": "handleOps",
            "outputs": [],
            "stateMutability": "nonpayable",
            "type": "function"
        },
        {
            "inputs": [
                {"internalType": "uint256", "name": "opIndex", "type": "uint256"},
                {"internalType": "string", "name": "reason", "type": "string"}
            ],
            "name": "FailedOp",
            "type": "error"
        },
        {
            "inputs": [
                {"internalType": "uint256", "name": "opIndex", "type": "uint256"},
                {"internalType": "string", "name": "reason", "type": "string"},
                {"internalType": "bytes", "name": "inner", "type": "bytes"}
            ],
            "name": "FailedOpWithRevert",
            "type": "error"
        }
    ]

    def __init__(
        self,
        rpc_url: str,
        entry_point_address: str,
        priv_key: Optional[str] = None,
        signer: Optional[TransactionSigner] = None,
        expected_chain_id: Optional[int] = None,
        gas_config: Optional[GasConfig] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the UserOpClient

        Args:
            rpc_url: Ethereum RPC endpoint URL
            entry_point_address: EntryPoint contract address
            priv_key: Account owner private key (optional if signer provided)
            signer: Custom signer object (optional if priv_key provided)
            expected_chain_id: Chain id the node must report (optional)
            gas_config: Default gas settings for built operations
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If neither priv_key nor signer is provided
            ValueError: If the URL doesn't use https (unless it's localhost/127.0.0.1)
            EncodingError: If the EntryPoint address is malformed
        """
        if not priv_key and not signer:
            raise ValueError("Either priv_key or signer must be provided")

        parsed = urllib.parse.urlparse(rpc_url)
        # Check if it's a localhost or 127.0.0.1 address (with or without port)
        host = parsed.netloc.split(':')[0]
        is_local = host in ('localhost', '127.0.0.1')
        if parsed.scheme != 'https' and not is_local:
            raise ValueError(f"rpc_url must use https:// for security (got: {parsed.scheme}://)")

        try:
            self.entry_point_address = Web3.to_checksum_address(entry_point_address)
        except (ValueError, TypeError) as e:
            raise EncodingError(f"Invalid EntryPoint address {entry_point_address!r}: {e}") from e

        self.rpc_url = rpc_url
        self.expected_chain_id = expected_chain_id
        self.gas_config = gas_config or GasConfig()
        self.logger = logger or logging.getLogger(__name__)
        self._chain_id: Optional[int] = None

        self.w3 = Web3(Web3.HTTPProvider(rpc_url))
        self.signer: TransactionSigner = signer or LocalSigner(priv_key)
        self.entry_point = self.w3.eth.contract(
            address=self.entry_point_address,
            abi=self.ENTRY_POINT_ABI
        )

    @property
    def address(self) -> str:
        """Address of the signer (the account owner)"""
        return self.signer.address

    @property
    def chain_id(self) -> int:
        """
        Chain id reported by the node, cached after the first call.

        Raises:
            SigningError: If the node cannot be queried
            DomainMismatchError: If it differs from expected_chain_id
        """
        if self._chain_id is None:
            try:
                chain_id = int(self.w3.eth.chain_id)
            except Exception as e:
                self.logger.error(f"Failed to read chain id: {e}")
                raise SigningError(f"Could not resolve chain id: {str(e)}") from e

            if self.expected_chain_id is not None and chain_id != self.expected_chain_id:
                raise DomainMismatchError(
                    f"Connected to chain {chain_id}, expected {self.expected_chain_id}"
                )
            self._chain_id = chain_id
        return self._chain_id

    def get_nonce(self, sender: str, key: int = 0) -> int:
        """
        Read the next nonce for ``sender`` in nonce space ``key``.

        Raises:
            TransactionError: If the EntryPoint call fails
        """
        try:
            nonce = self.entry_point.functions.getNonce(
                Web3.to_checksum_address(sender), key
            ).call()
        except Exception as e:
            self.logger.error(f"Failed to read nonce for {sender}: {e}")
            raise TransactionError(f"Failed to read nonce: {str(e)}") from e
        self.logger.debug(f"Nonce for {sender} (key {key}): {nonce}")
        return int(nonce)

    def build_user_op(
        self,
        account: Any,
        target: str,
        data: bytes,
        value: int = 0,
        nonce: Optional[int] = None,
        sponsor: Optional[Union[SponsorAuthorization, bytes]] = None,
        gas_config: Optional[GasConfig] = None,
        init_code: bytes = b"",
        signer: Optional[Signer] = None
    ) -> PackedUserOperation:
        """
        Build a fully signed user operation.

        Args:
            account: Smart account address or contract handle
            target: Address the account should call
            data: Calldata for the target
            value: Wei forwarded to the target
            nonce: Explicit nonce (read from the EntryPoint if None)
            sponsor: Paymaster sponsorship to attach before signing
            gas_config: Gas settings (client default if None)
            init_code: Account factory initCode for undeployed accounts
            signer: Account owner signing the operation (client signer if None)

        Returns:
            Signed PackedUserOperation

        Raises:
            EncodingError: If any field is invalid
            SigningError: If signing fails
            TransactionError: If the nonce cannot be read
        """
        if nonce is None:
            sender = account if isinstance(account, str) else getattr(account, "address", None)
            if sender is None:
                raise EncodingError(f"Account handle {type(account).__name__} has no address")
            nonce = self.get_nonce(sender)

        op = create_user_op(
            account,
            target,
            data,
            nonce=nonce,
            gas_config=gas_config or self.gas_config,
            value=value,
            init_code=init_code,
        )
        if sponsor is not None:
            op = attach_sponsor(op, sponsor)

        signed = sign_user_op(op, signer or self.signer, self.entry_point_address, self.chain_id)
        self.logger.info(f"Built user operation for {signed.sender} with nonce {signed.nonce}")
        return signed

    def user_op_hash(self, op: PackedUserOperation) -> bytes:
        """userOpHash of ``op`` for this client's EntryPoint and chain"""
        return user_op_hash(op, self.entry_point_address, self.chain_id)

    def check_domain(self, op: PackedUserOperation) -> bytes:
        """
        Compare the local userOpHash with the EntryPoint's own.

        Returns:
            The agreed userOpHash

        Raises:
            DomainMismatchError: If the hashes differ
            TransactionError: If the EntryPoint call fails
        """
        local_hash = self.user_op_hash(op)
        try:
            remote_hash = bytes(
                self.entry_point.functions.getUserOpHash(op.as_abi_tuple()).call()
            )
        except Exception as e:
            self.logger.error(f"getUserOpHash call failed: {e}")
            raise TransactionError(f"Failed to read userOpHash: {str(e)}") from e

        if local_hash != remote_hash:
            raise DomainMismatchError(
                f"Local userOpHash {to_hex(local_hash)} does not match "
                f"EntryPoint hash {to_hex(remote_hash)}",
                local_hash=local_hash,
                remote_hash=remote_hash,
            )
        return local_hash

    def send_ops(
        self,
        ops: Sequence[PackedUserOperation],
        beneficiary: Optional[str] = None,
        gas: Optional[int] = None,
        gas_price_override: Optional[int] = None,
        poll_interval: Optional[float] = None,
        wait_for_receipt: bool = True
    ) -> TxReceipt:
        """
        Submit signed operations via EntryPoint.handleOps.

        Args:
            ops: Signed operations
            beneficiary: Address credited with the gas refund (signer if None)
            gas: Gas limit to use (if None, will be estimated or use default)
            gas_price_override: Gas price to use (if None, will use current network price)
            poll_interval: How often to poll for receipt (in seconds, default=0.1)
            wait_for_receipt: Whether to wait for the transaction receipt (default=True)

        Returns:
            Transaction receipt object

        Raises:
            EncodingError: If the beneficiary address is malformed
            SigningError: If an operation is unsigned or the transaction cannot be signed
            NonceConflictError: If the EntryPoint rejects a nonce (AA25)
            DomainMismatchError: If the EntryPoint rejects a signature (AA24)
            TransactionError: If the transaction fails for any other reason
        """
        if not ops:
            raise ValueError("At least one operation is required")
        unsigned = [op.sender for op in ops if not op.is_signed]
        if unsigned:
            raise SigningError(f"Unsigned operations for: {', '.join(unsigned)}")

        from_address = self.signer.address
        try:
            beneficiary = Web3.to_checksum_address(beneficiary or from_address)
        except (ValueError, TypeError) as e:
            raise EncodingError(f"Invalid beneficiary address {beneficiary!r}: {e}") from e
        op_tuples = [op.as_abi_tuple() for op in ops]

        try:
            handle_ops = self.entry_point.functions.handleOps(op_tuples, beneficiary)
            nonce = self.w3.eth.get_transaction_count(from_address)

            if gas is None:
                try:
                    gas = handle_ops.estimate_gas({'from': from_address})
                    # Add 10% buffer to gas estimate
                    gas = int(gas * 1.1)
                    self.logger.debug(f"Estimated gas: {gas}")
                except ContractLogicError as e:
                    raise self._revert_error(e) from e
                except Exception as e:
                    gas = DEFAULT_HANDLE_OPS_GAS
                    self.logger.warning(f"Gas estimation failed, using default: {gas}. Error: {e}")

            tx_params: Dict[str, Any] = {
                'from': from_address,
                'nonce': nonce,
                'gas': gas,
            }
            if gas_price_override is not None:
                tx_params['gasPrice'] = gas_price_override
            else:
                tx_params['gasPrice'] = self.w3.eth.gas_price

            tx = handle_ops.build_transaction(tx_params)

            try:
                signed_tx = self.signer.sign_transaction(tx)
            except Exception as e:
                self.logger.error(f"Transaction signing failed: {e}")
                raise SigningError(f"Failed to sign transaction: {str(e)}") from e

            raw_tx = getattr(signed_tx, "raw_transaction", None) or signed_tx.rawTransaction
            try:
                tx_hash = self.w3.eth.send_raw_transaction(raw_tx)
                self.logger.info(f"handleOps sent: {Web3.to_hex(tx_hash)}")
            except ContractLogicError as e:
                raise self._revert_error(e) from e
            except Exception as e:
                self.logger.error(f"Failed to send transaction: {e}")
                raise TransactionError(f"Failed to send transaction: {str(e)}") from e

            if not wait_for_receipt:
                return TxReceipt(
                    transactionHash=Web3.to_hex(tx_hash),
                    blockNumber=0,
                    blockHash="0x" + "00" * 32,
                    status=0,  # Status unknown yet
                    gasUsed=0,
                    logs=[]
                )

            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=120,
                poll_latency=poll_interval or 0.1
            )
            result = self._convert_receipt(receipt)
            if result.status != 1:
                raise TransactionError(f"handleOps reverted in transaction {result.tx_hash}")
            return result

        except (SigningError, TransactionError, DomainMismatchError):
            raise
        except Web3Exception as e:
            self.logger.error(f"Web3 error: {e}")
            raise TransactionError(f"Transaction failed: {str(e)}") from e
        except Exception as e:
            self.logger.error(f"Unexpected error during send_ops: {e}")
            raise TransactionError(f"Transaction failed: {str(e)}") from e

    def _revert_error(self, error: ContractLogicError) -> Exception:
        """
        Map an EntryPoint revert to an SDK exception.

        EntryPoint reverts carry an "AAxx" code in their FailedOp reason.
        web3 surfaces FailedOp as a custom error whose message is the raw
        ABI-encoded revert data, so that data is decoded first.
        """
        message = getattr(error, "message", None) or str(error)
        reason = (
            decode_failed_op(getattr(error, "data", None))
            or decode_failed_op(message)
            or message
        )
        self.logger.error(f"handleOps reverted: {reason}")
        if "AA25" in reason:
            return NonceConflictError(f"Nonce conflict: {reason}", revert_reason=reason)
        if "AA24" in reason:
            return DomainMismatchError(f"Signature rejected by EntryPoint: {reason}")
        return TransactionError(f"handleOps reverted: {reason}", revert_reason=reason)

    def _convert_receipt(self, web3_receipt: Web3TxReceipt) -> TxReceipt:
        """
        Convert Web3 receipt to our TxReceipt model

        Args:
            web3_receipt: The Web3 transaction receipt

        Returns:
            Our TxReceipt model
        """
        receipt_dict = dict(web3_receipt)

        # Convert bytes to hex strings
        for key, value in list(receipt_dict.items()):
            if isinstance(value, bytes):
                receipt_dict[key] = '0x' + value.hex()

        receipt_dict["logs"] = [dict(log) for log in receipt_dict.get("logs", [])]
        return TxReceipt.model_validate(receipt_dict)
