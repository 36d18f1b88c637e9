"""Unit tests for units, relation closure, catalogs and the registry."""

import unittest

import pytest

from unitcalc_pkg.components import Operator
from unitcalc_pkg.parser import parse_relation
from unitcalc_pkg.prefixes import KILO, MILLI, NONE
from unitcalc_pkg.quantity import Quantity
from unitcalc_pkg.registry import Registry
from unitcalc_pkg.storage import load_builtin_catalogs
from unitcalc_pkg.types import (
    DimensionalMismatchError,
    MalformedDeclarationError,
    UnresolvedReferenceError,
)
from unitcalc_pkg.units import (
    DIMENSIONLESS,
    CatalogBuilder,
    RelationCandidate,
    Unit,
    relation_from_equation,
)


class TestRelationClosure(unittest.TestCase):
    def setUp(self):
        self.V = Unit("electric", "V", "Volt")
        self.A = Unit("electric", "A", "Ampere")
        self.W = Unit("electric", "W", "Watt")

    def test_product_closure(self):
        self.V.add_product(self.A, self.W)
        self.assertEqual(self.V.relation(self.A, Operator.MULTIPLY).output, self.W)
        self.assertEqual(self.A.relation(self.V, Operator.MULTIPLY).output, self.W)
        self.assertEqual(self.W.relation(self.V, Operator.DIVIDE).output, self.A)
        self.assertEqual(self.W.relation(self.A, Operator.DIVIDE).output, self.V)

    def test_quotient_closure(self):
        Wh, h = Unit("e", "Wh"), Unit("e", "h")
        W = Unit("e", "W")
        Wh.add_quotient(h, W)
        self.assertEqual(Wh.relation(h, Operator.DIVIDE).output, W)
        self.assertEqual(Wh.relation(W, Operator.DIVIDE).output, h)
        self.assertEqual(W.relation(h, Operator.MULTIPLY).output, Wh)
        self.assertEqual(h.relation(W, Operator.MULTIPLY).output, Wh)

    def test_scalar_relation_and_inverse(self):
        h, s = Unit("time", "h"), Unit("time", "s")
        h.add_scalar(Operator.MULTIPLY, 3600.0, s)
        forward = h.relation(None, Operator.MULTIPLY)
        backward = s.relation(None, Operator.DIVIDE)
        self.assertEqual(forward.output, s)
        self.assertEqual(forward.apply(2.0, 0.0), 7200.0)
        self.assertEqual(backward.output, h)
        self.assertEqual(backward.apply(7200.0, 0.0), 2.0)

    def test_missing_relation(self):
        self.assertIsNone(self.V.relation(self.A, Operator.DIVIDE))

    def test_dimensionless_unit_rejects_relations(self):
        with self.assertRaises(MalformedDeclarationError):
            DIMENSIONLESS.add_product(self.V, self.W)

    def test_identity_is_catalog_and_symbol(self):
        self.assertEqual(Unit("electric", "V"), Unit("electric", "V", "Other name"))
        self.assertNotEqual(Unit("electric", "V"), Unit("other", "V"))
        self.assertTrue(DIMENSIONLESS.is_dimensionless)


class TestRelationCandidates:
    def test_from_product(self):
        candidate = relation_from_equation(parse_relation("V*A=W"))
        assert candidate == RelationCandidate("V", Operator.MULTIPLY, "A", "W")
        assert str(candidate) == "V*A=W"

    def test_from_scalar(self):
        candidate = relation_from_equation(parse_relation("h*3600=s;"))
        assert candidate.other is None
        assert candidate.factor == 3600.0
        assert str(candidate) == "h*3600=s"

    @pytest.mark.parametrize("line", ["V*A", "V+A=W", "3*h=s", "V*A=3", ""])
    def test_invalid_descriptors(self, line):
        with pytest.raises(MalformedDeclarationError):
            relation_from_equation(parse_relation(line))


class TestCatalogBuilder:
    def test_forward_references_resolve_at_finalize(self):
        builder = CatalogBuilder("electric")
        builder.load_unit_file("Volt\nV*A=W\n", "V")
        builder.load_unit_file("Ampere\n", "A")
        builder.load_unit_file("Watt\n", "W")
        catalog = builder.finalize()
        assert sorted(catalog.units) == ["A", "V", "W"]
        assert catalog.get("V").name == "Volt"
        assert catalog.get("W").relation(catalog.get("A"), Operator.DIVIDE).output.symbol == "V"

    def test_unknown_unit_rejects_the_whole_batch(self):
        builder = CatalogBuilder("broken")
        builder.load_unit_file("Volt\nV*A=W\n", "V")
        builder.load_unit_file("Watt\nW/V=Q\n", "W")
        with pytest.raises(MalformedDeclarationError, match="A"):
            builder.finalize()

    def test_malformed_file_adds_nothing(self):
        builder = CatalogBuilder("electric")
        with pytest.raises(MalformedDeclarationError):
            builder.load_unit_file("Volt\nV*A=W\nnot a relation\n", "V")
        builder.load_unit_file("Ampere\n", "A")
        catalog = builder.finalize()
        assert sorted(catalog.units) == ["A"]
        assert catalog.declarations == []

    def test_empty_unit_file(self):
        with pytest.raises(MalformedDeclarationError):
            CatalogBuilder("x").load_unit_file("\n# only a comment\n", "V")

    def test_finalize_only_once(self):
        builder = CatalogBuilder("x")
        builder.declare_unit("V")
        builder.finalize()
        with pytest.raises(MalformedDeclarationError):
            builder.finalize()
        with pytest.raises(MalformedDeclarationError):
            builder.declare_unit("A")

    def test_fallback_lookup(self):
        registry = Registry()
        load_builtin_catalogs(registry)
        builder = registry.builder("mech")
        builder.declare_unit("J", "Joule")
        builder.add_relation("J/s=W")
        catalog = builder.finalize()
        assert catalog.get("J").relation(registry.catalog("electric").get("s"), Operator.DIVIDE).output.symbol == "W"


class TestRegistry(unittest.TestCase):
    def setUp(self):
        self.registry = Registry()
        load_builtin_catalogs(self.registry)
        self.enabled = {"electric"}
        self.V = self.registry.catalog("electric").get("V")
        self.A = self.registry.catalog("electric").get("A")
        self.W = self.registry.catalog("electric").get("W")

    def test_resolve_exact_symbol(self):
        self.assertEqual(self.registry.resolve("Wh", self.enabled), (NONE, self.registry.catalog("electric").get("Wh")))

    def test_resolve_prefixed_symbol(self):
        prefix, unit = self.registry.resolve("kW", self.enabled)
        self.assertIs(prefix, KILO)
        self.assertEqual(unit, self.W)

    def test_resolve_bare_prefix(self):
        self.assertEqual(self.registry.resolve("m", self.enabled), (MILLI, DIMENSIONLESS))

    def test_resolve_unknown_or_disabled(self):
        with self.assertRaises(UnresolvedReferenceError):
            self.registry.resolve("furlong", self.enabled)
        with self.assertRaises(UnresolvedReferenceError):
            self.registry.resolve("V", set())

    def test_combine_product(self):
        result = self.registry.combine(Quantity(230, self.V), Quantity(16, self.A), Operator.MULTIPLY)
        self.assertEqual(result.unit, self.W)
        self.assertIs(result.prefix, KILO)
        self.assertAlmostEqual(result.value, 3.68)

    def test_combine_with_dimensionless(self):
        result = self.registry.combine(Quantity(2), Quantity(3, self.V), Operator.MULTIPLY)
        self.assertEqual((result.value, result.unit), (6.0, self.V))

    def test_combine_without_relation(self):
        s = self.registry.catalog("electric").get("s")
        with self.assertRaisesRegex(DimensionalMismatchError, r"No evaluator found for V\*s"):
            self.registry.combine(Quantity(2, self.V), Quantity(3, s), Operator.MULTIPLY)

    def test_convert_with_scalar_relation(self):
        h = self.registry.catalog("electric").get("h")
        result = self.registry.convert(Quantity(2, h), "s", self.enabled)
        self.assertEqual(result.value, 7200.0)
        self.assertIs(result.prefix, NONE)

    def test_convert_reinterprets_without_relation(self):
        result = self.registry.convert(Quantity(5, self.V), "kA", self.enabled)
        self.assertEqual((result.value, result.unit, result.prefix), (5.0, self.A, KILO))

    def test_define_unit_and_relation(self):
        self.registry.define_unit("mech", "N", "Newton")
        self.registry.define_unit("mech", "J", "Joule")
        self.registry.define_unit("mech", "m", "Metre")
        self.registry.define_relation("mech", "N*m=J")
        mech = self.registry.catalog("mech")
        self.assertEqual(mech.get("J").relation(mech.get("N"), Operator.DIVIDE).output, mech.get("m"))

    def test_define_relation_is_transactional(self):
        self.registry.define_unit("mech", "N")
        with self.assertRaises(MalformedDeclarationError):
            self.registry.define_relation("mech", "N*q=J")
        self.assertEqual(self.registry.catalog("mech").get("N").relations, {})
        self.assertEqual(self.registry.catalog("mech").declarations, [])

    def test_catalog_management(self):
        self.assertTrue(self.registry.has_catalog("electric"))
        self.registry.remove_catalog("electric")
        self.assertFalse(self.registry.has_catalog("electric"))
        with self.assertRaises(UnresolvedReferenceError):
            self.registry.catalog("electric")


if __name__ == "__main__":
    unittest.main()
