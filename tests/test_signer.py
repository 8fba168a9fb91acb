"""
Tests for the signer module.
"""
from eth_account import Account

from userop_sdk.signer import LocalSigner, Signer, recover_signer

from conftest import TEST_PRIV_KEY


def test_local_signer_address():
    signer = LocalSigner(TEST_PRIV_KEY)
    assert signer.address == Account.from_key(TEST_PRIV_KEY).address


def test_local_signer_satisfies_protocol():
    assert isinstance(LocalSigner(TEST_PRIV_KEY), Signer)


def test_sign_message_is_deterministic():
    signer = LocalSigner(TEST_PRIV_KEY)
    message = b"\x11" * 32
    first = signer.sign_message(message)
    assert len(first) == 65
    assert first == signer.sign_message(message)


def test_recover_signer_round_trip():
    signer = LocalSigner(TEST_PRIV_KEY)
    message = b"\x22" * 32
    assert recover_signer(message, signer.sign_message(message)) == signer.address


def test_recover_signer_other_message():
    signer = LocalSigner(TEST_PRIV_KEY)
    signature = signer.sign_message(b"\x22" * 32)
    assert recover_signer(b"\x33" * 32, signature) != signer.address


def test_repr_hides_key():
    signer = LocalSigner(TEST_PRIV_KEY)
    assert TEST_PRIV_KEY[2:] not in repr(signer)
    assert signer.address in repr(signer)
