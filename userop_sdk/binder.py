"""
Hash & signature binder for PackedUserOperations.

Signing runs in a fixed order: the content hash is taken over every
field except the signature, bound to an EntryPoint and chain id, and
the resulting userOpHash is signed with the personal-message prefix.
Any change to a hashed field (including paymasterAndData) requires a
new signature.
"""
import logging
from typing import Any, Optional, Union

from hexbytes import HexBytes

from .exceptions import SigningError
from .hashing import bind_to_domain, to_hex, user_op_content_hash
from .models import PackedUserOperation, SponsorAuthorization
from .packing import unpack_sponsor_authorization
from .signer import Signer, recover_signer

logger = logging.getLogger(__name__)


def attach_sponsor(
    op: PackedUserOperation,
    sponsor: Optional[Union[SponsorAuthorization, bytes]],
) -> PackedUserOperation:
    """
    Return a copy of ``op`` carrying the paymaster payload.

    The copy is unsigned: paymasterAndData is part of the content hash,
    so any earlier signature no longer applies.

    Args:
        op: Operation to sponsor
        sponsor: SponsorAuthorization, raw paymasterAndData, or None to clear

    Raises:
        EncodingError: If raw bytes are not a valid paymasterAndData payload
    """
    if sponsor is None:
        payload = b""
    elif isinstance(sponsor, SponsorAuthorization):
        payload = sponsor.to_bytes()
    else:
        payload = bytes(sponsor)
        # Validates the 52-byte minimum
        unpack_sponsor_authorization(payload)

    return op.model_copy(update={"paymaster_and_data": payload, "signature": b""})


def resolve_chain_id(chain: Any) -> int:
    """
    Resolve a chain id from an int or a connected Web3 instance.

    Raises:
        SigningError: If the chain id cannot be resolved or is not positive
    """
    if isinstance(chain, bool):
        raise SigningError("Chain id must be an integer, got bool")
    if isinstance(chain, int):
        chain_id = chain
    elif chain is not None and hasattr(chain, "eth"):
        try:
            chain_id = int(chain.eth.chain_id)
        except Exception as e:
            logger.error(f"Failed to resolve chain id: {e}")
            raise SigningError(f"Could not resolve chain id: {str(e)}") from e
    else:
        raise SigningError(f"Could not resolve chain id from {type(chain).__name__}")

    if chain_id <= 0:
        raise SigningError(f"Chain id must be positive, got {chain_id}")
    return chain_id


def sign_user_op(
    op: PackedUserOperation,
    signer: Optional[Signer],
    entry_point: str,
    chain_id: Any,
) -> PackedUserOperation:
    """
    Sign a user operation for one EntryPoint on one chain.

    Args:
        op: Operation with all hashed fields (including paymasterAndData) set
        signer: Credential implementing ``sign_message``
        entry_point: EntryPoint address that will execute the operation
        chain_id: Chain id, or a Web3 instance to read it from

    Returns:
        New PackedUserOperation with the signature filled in

    Raises:
        SigningError: If the signer is missing or fails, or the chain id is unresolvable
        EncodingError: If the EntryPoint address is malformed
    """
    if signer is None or not callable(getattr(signer, "sign_message", None)):
        raise SigningError("No signer available")

    resolved_chain_id = resolve_chain_id(chain_id)
    content_hash = user_op_content_hash(op)
    final_hash = bind_to_domain(content_hash, entry_point, resolved_chain_id)
    logger.debug(
        f"Signing user operation {op.sender} nonce {op.nonce}: "
        f"content {to_hex(content_hash)}, userOpHash {to_hex(final_hash)}"
    )

    try:
        signature = signer.sign_message(final_hash)
        # Remote signers may hand back hex strings or SignedMessage objects
        signature = bytes(HexBytes(getattr(signature, "signature", signature)))
    except Exception as e:
        logger.error(f"User operation signing failed: {e}")
        raise SigningError(f"Failed to sign user operation: {str(e)}") from e

    if not signature:
        raise SigningError("Signer returned an empty signature")

    return op.model_copy(update={"signature": signature})


def verify_user_op_signature(
    op: PackedUserOperation,
    expected_signer: str,
    entry_point: str,
    chain_id: int,
) -> bool:
    """
    Check that ``op.signature`` was produced by ``expected_signer`` over the
    current contents of ``op`` for the given EntryPoint and chain.

    Returns:
        True if the recovered address matches, False otherwise
    """
    if not op.signature:
        return False
    final_hash = bind_to_domain(user_op_content_hash(op), entry_point, chain_id)
    try:
        recovered = recover_signer(final_hash, op.signature)
    except Exception as e:
        # Malformed signatures cannot verify
        logger.debug(f"Signature recovery failed: {e}")
        return False
    return recovered.lower() == expected_signer.lower()
