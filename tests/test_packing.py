"""
Tests for fixed-width packing helpers.
"""
import pytest
from decimal import Decimal

from userop_sdk.exceptions import EncodingError
from userop_sdk.packing import (
    Uint128Pair,
    gwei_to_wei,
    pack_sponsor_authorization,
    pack_uint128_pair,
    unpack_sponsor_authorization,
    unpack_uint128_pair,
)

from conftest import PAYMASTER


def test_pack_default_gas_limits():
    """Default gas limits pack as (200000 << 128) | 200000"""
    packed = pack_uint128_pair(200000, 200000)
    assert len(packed) == 32
    assert packed == ((200000 << 128) | 200000).to_bytes(32, "big")
    # High half occupies the first 16 bytes
    assert packed[:16] == (200000).to_bytes(16, "big")
    assert packed[16:] == (200000).to_bytes(16, "big")


def test_pack_order_is_significant():
    """Swapping halves gives a different, still valid, word"""
    assert pack_uint128_pair(1, 2) != pack_uint128_pair(2, 1)
    assert unpack_uint128_pair(pack_uint128_pair(1, 2)) == Uint128Pair(high=1, low=2)


def test_pair_pack_method():
    pair = Uint128Pair(high=5, low=6)
    assert pair.pack() == pack_uint128_pair(5, 6)


def test_pack_bounds():
    """Largest uint128 values pack; anything outside the range fails"""
    max_value = 2**128 - 1
    assert pack_uint128_pair(max_value, max_value) == b"\xff" * 32
    assert pack_uint128_pair(0, 0) == b"\x00" * 32

    with pytest.raises(EncodingError, match="uint128"):
        pack_uint128_pair(2**128, 0)
    with pytest.raises(EncodingError, match="uint128"):
        pack_uint128_pair(0, 2**128)
    with pytest.raises(EncodingError, match="non-negative"):
        pack_uint128_pair(-1, 0)


def test_pack_rejects_non_integers():
    with pytest.raises(EncodingError, match="integer"):
        pack_uint128_pair(1.5, 0)
    with pytest.raises(EncodingError, match="integer"):
        pack_uint128_pair(True, 0)
    with pytest.raises(EncodingError, match="integer"):
        pack_uint128_pair("1", 0)


def test_unpack_requires_32_bytes():
    with pytest.raises(EncodingError, match="32 bytes"):
        unpack_uint128_pair(b"\x00" * 31)
    with pytest.raises(EncodingError, match="32 bytes"):
        unpack_uint128_pair(b"\x00" * 33)


class TestGweiToWei:
    """Exact conversion of human-readable gas prices"""

    @pytest.mark.parametrize("amount,expected", [
        ("1", 10**9),
        ("10", 10**10),
        (1, 10**9),
        ("0", 0),
        ("1.5", 1_500_000_000),
        ("0.000000001", 1),
        (Decimal("2.25"), 2_250_000_000),
    ])
    def test_exact_conversion(self, amount, expected):
        assert gwei_to_wei(amount) == expected

    def test_precision_loss_is_an_error(self):
        with pytest.raises(EncodingError, match="whole number of wei"):
            gwei_to_wei("0.0000000001")
        with pytest.raises(EncodingError, match="whole number of wei"):
            gwei_to_wei("1.0000000005")

    def test_negative_is_an_error(self):
        with pytest.raises(EncodingError, match="non-negative"):
            gwei_to_wei("-1")

    def test_non_numeric_is_an_error(self):
        with pytest.raises(EncodingError, match="Invalid gas price"):
            gwei_to_wei("ten")
        with pytest.raises(EncodingError, match="finite"):
            gwei_to_wei("NaN")
        with pytest.raises(EncodingError):
            gwei_to_wei(True)


class TestSponsorAuthorizationPacking:
    """paymasterAndData layout: address (20) || uint128 || uint128 || data"""

    def test_layout(self):
        payload = pack_sponsor_authorization(PAYMASTER, 100000, 50000)
        assert len(payload) == 52
        assert payload[:20] == b"\xcc" * 20
        assert payload[20:36] == (100000).to_bytes(16, "big")
        assert payload[36:52] == (50000).to_bytes(16, "big")

    def test_trailing_data(self):
        payload = pack_sponsor_authorization(PAYMASTER, 1, 2, b"\x01\x02")
        assert len(payload) == 54
        decoded = unpack_sponsor_authorization(payload)
        assert decoded.data == b"\x01\x02"

    def test_decode(self):
        decoded = unpack_sponsor_authorization(pack_sponsor_authorization(PAYMASTER, 100000, 50000))
        assert decoded.paymaster.lower() == PAYMASTER
        assert decoded.verification_gas_limit == 100000
        assert decoded.post_op_gas_limit == 50000
        assert decoded.data == b""

    def test_empty_payload_is_unsponsored(self):
        assert unpack_sponsor_authorization(b"") is None

    def test_short_payload_is_an_error(self):
        with pytest.raises(EncodingError, match="at least 52 bytes"):
            unpack_sponsor_authorization(b"\xcc" * 51)

    def test_invalid_paymaster(self):
        with pytest.raises(EncodingError, match="paymaster"):
            pack_sponsor_authorization("0x1234", 1, 1)
        with pytest.raises(EncodingError, match="paymaster"):
            pack_sponsor_authorization(b"\x01" * 19, 1, 1)

    def test_limit_overflow(self):
        with pytest.raises(EncodingError, match="uint128"):
            pack_sponsor_authorization(PAYMASTER, 2**128, 1)
