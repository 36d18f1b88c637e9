"""Unit tests for Quantity values and unit-preserving arithmetic."""

import math

import pytest

from unitcalc_pkg import quantity as qty
from unitcalc_pkg.components import Operator
from unitcalc_pkg.prefixes import KILO, MILLI, NONE, PREFIXES
from unitcalc_pkg.quantity import Quantity, format_value
from unitcalc_pkg.units import DIMENSIONLESS, Unit

V = Unit("electric", "V", "Volt")
A = Unit("electric", "A", "Ampere")


class TestQuantity:
    def test_defaults(self):
        q = Quantity(3)
        assert q.value == 3.0
        assert isinstance(q.value, float)
        assert q.unit is DIMENSIONLESS
        assert q.prefix is NONE
        assert q.is_dimensionless

    def test_base_value(self):
        assert Quantity(3.68, V, KILO).base_value == 3680.0
        assert Quantity(5, A, MILLI).base_value == 0.005

    def test_normalize(self):
        q = Quantity(3680, V).normalize()
        assert q.prefix is KILO
        assert math.isclose(q.value, 3.68)
        assert Quantity(0.005, A).normalize() == Quantity(5.0, A, MILLI)

    def test_dimensionless_never_gets_a_prefix(self):
        assert Quantity(5000).normalize().prefix is NONE
        assert Quantity(2, DIMENSIONLESS, KILO).normalize() == Quantity(2000)

    def test_str(self):
        assert str(Quantity(3.68, V, KILO)) == "3.68[kV]"
        assert str(Quantity(4)) == "4"
        assert str(Quantity(0.5)) == "0.5"
        assert str(Quantity(math.inf)) == "inf"

    def test_float(self):
        assert float(Quantity(2, V, KILO)) == 2000.0

    def test_with_value_renormalizes(self):
        assert Quantity(1, V).with_value(2000) == Quantity(2.0, V, KILO)

    def test_format_value(self):
        assert format_value(120.0) == "120"
        assert format_value(-0.25) == "-0.25"
        assert format_value(math.nan) == "nan"


class TestArithmetic:
    def test_linear_same_unit(self):
        result = qty.linear(Quantity(2, V), Quantity(3, V), Operator.ADD)
        assert result == Quantity(5, V)

    def test_linear_mixed_prefixes(self):
        result = qty.linear(Quantity(1, V, KILO), Quantity(500, V), Operator.ADD)
        assert result == Quantity(1.5, V, KILO)

    def test_linear_different_units_drops_the_unit(self):
        result = qty.linear(Quantity(2, V), Quantity(3, A), Operator.SUBTRACT)
        assert result == Quantity(-1)

    def test_modulus_keeps_left_unit(self):
        assert qty.modulus(Quantity(7, V), Quantity(3)) == Quantity(1, V)

    def test_power_keeps_base_unit(self):
        assert qty.power(Quantity(3, V), Quantity(2)) == Quantity(9, V)

    def test_ieee_semantics(self):
        assert qty.ieee(Operator.DIVIDE, 1.0, 0.0) == math.inf
        assert math.isnan(qty.ieee(Operator.DIVIDE, 0.0, 0.0))
        assert math.isnan(qty.ieee(Operator.MODULUS, 1.0, 0.0))


def _around(value):
    return [math.nextafter(value, -math.inf), value, math.nextafter(value, math.inf)]


class TestNormalizeIsStable:
    @pytest.mark.parametrize("prefix", PREFIXES, ids=lambda p: p.id or "none")
    def test_bracket_edges(self, prefix):
        for edge in (prefix.factor, prefix.factor * 1000):
            for value in _around(edge) + [-v for v in _around(edge)]:
                once = Quantity(value, V).normalize()
                assert once.normalize() == once, value
                assert once.prefix is NONE or 1 <= abs(once.value) < 1000

    def test_value_just_above_a_prefix_factor(self):
        once = Quantity(1.0000000000000001e-21, V).normalize()
        assert str(once.normalize()) == str(once)

    def test_out_of_range_values_stay_unprefixed(self):
        for value in (1e25, 1e-25, 0.0):
            once = Quantity(value, V).normalize()
            assert once.prefix is NONE
            assert once.normalize() == once
