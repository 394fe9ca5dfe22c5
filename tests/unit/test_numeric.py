from decimal import Decimal

import numpy as np
import pytest

from rann import numeric


def test_default_precision_is_ten_digits():
    assert numeric.get_precision() == 10
    assert numeric.mult(Decimal("1.23456789012"), Decimal(1)) == Decimal("1.234567890")


def test_set_precision_changes_rounding():
    numeric.set_precision(4)
    assert numeric.div(Decimal(1), Decimal(3)) == Decimal("0.3333")
    assert numeric.context().prec == 4


def test_set_precision_rejects_non_positive():
    with pytest.raises(ValueError):
        numeric.set_precision(0)


def test_precision_env_override(monkeypatch):
    monkeypatch.setenv(numeric.PRECISION_ENV, "25")
    assert numeric._initial_precision() == 25
    monkeypatch.setenv(numeric.PRECISION_ENV, "0")
    with pytest.raises(ValueError):
        numeric._initial_precision()
    monkeypatch.delenv(numeric.PRECISION_ENV)
    assert numeric._initial_precision() == numeric.DEFAULT_PRECISION


def test_to_decimal_conversions():
    assert numeric.to_decimal(0.1) == Decimal("0.1")
    assert numeric.to_decimal(" 2.5 ") == Decimal("2.5")
    assert numeric.to_decimal(7) == Decimal(7)
    assert numeric.to_decimal(np.float64(0.25)) == Decimal("0.25")
    assert numeric.to_decimal(np.int64(3)) == Decimal(3)
    value = Decimal("1.000000000001")
    assert numeric.to_decimal(value) is value


@pytest.mark.parametrize("bad", [True, None, object()])
def test_to_decimal_rejects_non_numbers(bad):
    with pytest.raises(TypeError):
        numeric.to_decimal(bad)


def test_float_operands_are_rejected():
    with pytest.raises(TypeError):
        numeric.mult(Decimal(1), 0.5)


def test_sqrt_and_exp_use_context():
    assert numeric.sqrt(Decimal(4)) == Decimal(2)
    assert numeric.exp(Decimal(0)) == Decimal(1)
    assert numeric.power(Decimal(-3), 2) == Decimal(9)


def test_additions_round_to_configured_precision():
    numeric.set_precision(3)
    assert numeric.add(Decimal(1000), Decimal(1)) == Decimal(1000)
    assert numeric.sub(Decimal("1.001"), Decimal("0.0004")) == Decimal("1.00")
    assert numeric.total([Decimal("0.1234"), Decimal("0.1234")]) == Decimal("0.246")


def test_additions_keep_precision_beyond_default_context():
    numeric.set_precision(40)
    tiny = Decimal("1e-30")
    assert numeric.add(Decimal(1), tiny) == Decimal("1.000000000000000000000000000001")
    assert numeric.sub(Decimal(1), tiny) == Decimal("0.999999999999999999999999999999")
    assert numeric.neg(tiny) == Decimal("-1e-30")
    assert numeric.absolute(numeric.neg(tiny)) == tiny
