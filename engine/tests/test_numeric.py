from decimal import Decimal

import pytest

from engine import numeric


@pytest.mark.parametrize(
    "value, expected",
    [
        ("10", Decimal("10")),
        (7, Decimal(7)),
        ("0.000000000000000001", Decimal("1E-18")),
        ("1_000", Decimal(1000)),
        ("  2.5 ", Decimal("2.5")),
        ("1.5000000000000000000000", Decimal("1.5")),
    ],
)
def test_to_decimal_accepts(value, expected):
    assert numeric.to_decimal(value) == expected


def test_float_and_bool_rejected():
    with pytest.raises(TypeError):
        numeric.to_decimal(0.1)
    with pytest.raises(TypeError):
        numeric.to_decimal(True)


@pytest.mark.parametrize("bad", ["abc", "NaN", "Infinity", "0.0000000000000000001"])
def test_malformed_or_overprecise_rejected(bad):
    with pytest.raises(ValueError):
        numeric.to_decimal(bad)


def test_range_bounds():
    assert numeric.to_decimal(numeric.MAX_DECIMAL) == numeric.MAX_DECIMAL
    with pytest.raises(ValueError):
        numeric.to_decimal(numeric.CONTEXT.add(numeric.MAX_DECIMAL, 1))
    with pytest.raises(OverflowError):
        numeric.add(numeric.MAX_DECIMAL, Decimal("0.000000000000000001"))


def test_arithmetic_is_exact():
    a = numeric.to_decimal("0.1")
    b = numeric.to_decimal("0.2")
    assert numeric.add(a, b) == Decimal("0.3")
    assert numeric.sub(numeric.to_decimal("10000"), numeric.to_decimal("10")) == Decimal("9990")
    big = numeric.to_decimal("12345678901234567890.123456789012345678")
    assert numeric.sub(numeric.add(big, big), big) == big


@pytest.mark.parametrize(
    "amount, divisibility, ok",
    [("1", 0, True), ("1.5", 0, False), ("1.25", 2, True), ("1.255", 2, False), ("1E-18", 18, True)],
)
def test_fits_divisibility(amount, divisibility, ok):
    assert numeric.fits_divisibility(Decimal(amount), divisibility) is ok
