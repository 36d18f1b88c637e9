"""Unit tests for magnitude prefixes."""

import math
import unittest

from unitcalc_pkg import prefixes
from unitcalc_pkg.prefixes import KILO, MEGA, MICRO, MILLI, NONE, YOCTO, YOTTA


class TestPrefixTable(unittest.TestCase):
    def test_factors(self):
        self.assertEqual(KILO.factor, 1000.0)
        self.assertEqual(MILLI.factor, 0.001)
        self.assertEqual(NONE.factor, 1.0)

    def test_ascending_order(self):
        exponents = [p.exponent for p in prefixes.PREFIXES]
        self.assertEqual(exponents, sorted(exponents))
        self.assertIs(prefixes.PREFIXES[0], YOCTO)
        self.assertIs(prefixes.PREFIXES[-1], YOTTA)

    def test_steps_of_a_thousand(self):
        exponents = [p.exponent for p in prefixes.PREFIXES]
        self.assertTrue(all(b - a == 3 for a, b in zip(exponents, exponents[1:])))

    def test_by_id_and_aliases(self):
        self.assertIs(prefixes.by_id("k"), KILO)
        self.assertIs(prefixes.by_id("u"), MICRO)
        self.assertIs(prefixes.by_id("μ"), MICRO)
        self.assertIsNone(prefixes.by_id("x"))

    def test_str_is_id(self):
        self.assertEqual(str(MEGA), "M")
        self.assertEqual(str(NONE), "")


class TestRebase(unittest.TestCase):
    def test_up_and_down(self):
        self.assertAlmostEqual(prefixes.rebase(3.68, KILO), 3680.0)
        self.assertAlmostEqual(prefixes.rebase(3680.0, NONE, KILO), 3.68)
        self.assertAlmostEqual(prefixes.rebase(5.0, MILLI), 0.005)

    def test_same_prefix_is_identity(self):
        self.assertEqual(prefixes.rebase(1.25, MEGA, MEGA), 1.25)


class TestBestFit(unittest.TestCase):
    def test_brackets(self):
        self.assertIs(prefixes.best_fit(3680.0), KILO)
        self.assertIs(prefixes.best_fit(999.0), NONE)
        self.assertIs(prefixes.best_fit(1000.0), KILO)
        self.assertIs(prefixes.best_fit(0.005), MILLI)
        self.assertIs(prefixes.best_fit(-2.5e6), MEGA)

    def test_rebased_value_is_in_bracket(self):
        for value in (2e-21, 5e-18, 0.002, 7e20, 123.456e9):
            prefix = prefixes.best_fit(value)
            self.assertTrue(prefixes.in_bracket(prefixes.rebase(value, NONE, prefix)), value)

    def test_degenerate_values_use_none(self):
        for value in (0.0, math.inf, -math.inf, math.nan, 1e30, 1e-30):
            self.assertIs(prefixes.best_fit(value), NONE)


class TestSplitSymbol(unittest.TestCase):
    def test_prefixed_unit(self):
        self.assertIn((KILO, "Wh"), prefixes.split_symbol("kWh"))

    def test_bare_prefix(self):
        self.assertEqual(prefixes.split_symbol("m"), [(MILLI, "")])

    def test_alias(self):
        self.assertIn((MICRO, "A"), prefixes.split_symbol("uA"))

    def test_no_prefix(self):
        self.assertEqual(prefixes.split_symbol("V"), [])


if __name__ == "__main__":
    unittest.main()
