"""Amount codec."""

from decimal import Decimal

import pytest

from xchain_transfer.amount import AmountError, convert_to_decimals, format_amount, normalise_amount, parse_amount


def test_parse_amount():
    assert parse_amount("0.01", 18) == 10**16
    assert parse_amount("0.2", 6) == 200_000
    assert parse_amount("1", 0) == 1
    assert parse_amount(Decimal("1.5"), 6) == 1_500_000
    assert parse_amount(3, 6) == 3_000_000


def test_parse_amount_large():
    """uint256 sized amounts do not lose precision."""
    raw = parse_amount("115792089237316195423570985008687907853269984665640564039457.584007913129639935", 18)
    assert raw == 2**256 - 1


@pytest.mark.parametrize("amount", ["0.0000001", "abc", "-1", "NaN", "Infinity", "", "1e999999", "1e80"])
def test_parse_amount_invalid(amount):
    with pytest.raises(AmountError):
        parse_amount(amount, 6)


@pytest.mark.parametrize(
    "amount, decimals",
    [
        ("0.01", 18),
        ("0.010", 18),
        ("1000", 6),
        ("1e3", 6),
        ("0", 6),
        ("123.456789", 6),
        ("0.000000000000000001", 18),
    ],
)
def test_format_parse_round_trip(amount, decimals):
    """Formatting a parsed amount gives the canonical form of the input."""
    assert format_amount(parse_amount(amount, decimals), decimals) == normalise_amount(amount)


def test_format_amount():
    assert format_amount(10**16, 18) == "0.01"
    assert format_amount(1_000_000, 6) == "1"
    assert format_amount(0, 18) == "0"


def test_convert_to_decimals():
    assert convert_to_decimals(1_500_000, 6) == Decimal("1.5")


def test_normalise_amount():
    assert normalise_amount("0.010") == "0.01"
    assert normalise_amount("1e3") == "1000"
    assert normalise_amount(" 5 ") == "5"


def test_parse_amount_uint256_bound():
    assert parse_amount(str(2**256 - 1), 0) == 2**256 - 1
    with pytest.raises(AmountError):
        parse_amount(str(2**256), 0)
