"""Unit registry: catalog ownership, symbol resolution and unit arithmetic.

A Registry is an ordinary object handed to the root Context; there is no
process-wide instance, so every session or test builds its own.
"""

from __future__ import annotations

from typing import Iterable

from . import prefixes
from .components import Operator
from .logging_config import get_logger
from .parser import parse_relation
from .prefixes import NONE, MagnitudePrefix
from .quantity import Quantity, ieee
from .types import (
    DimensionalMismatchError,
    MalformedDeclarationError,
    UnresolvedReferenceError,
    UnsupportedOperationError,
)
from .units import (
    DIMENSIONLESS,
    CatalogBuilder,
    Unit,
    UnitCatalog,
    relation_from_equation,
)

logger = get_logger("registry")


class Registry:
    def __init__(self) -> None:
        self._catalogs: dict[str, UnitCatalog] = {}

    def add_catalog(self, catalog: UnitCatalog) -> UnitCatalog:
        """Install a finalized catalog, replacing one of the same name."""
        if catalog.name in self._catalogs:
            logger.info(f"Replacing unit catalog {catalog.name}")
        self._catalogs[catalog.name] = catalog
        return catalog

    def builder(self, name: str) -> CatalogBuilder:
        """A builder whose unknown symbols fall back to this registry's units."""
        return CatalogBuilder(name, fallback=self._find_any)

    def catalog(self, name: str) -> UnitCatalog:
        try:
            return self._catalogs[name]
        except KeyError:
            raise UnresolvedReferenceError(f"Unit catalog {name} not found") from None

    def has_catalog(self, name: str) -> bool:
        return name in self._catalogs

    def catalogs(self) -> list[UnitCatalog]:
        return list(self._catalogs.values())

    def remove_catalog(self, name: str) -> None:
        self.catalog(name)
        del self._catalogs[name]

    def define_unit(self, catalog: str, symbol: str, name: str | None = None) -> Unit:
        """Create (or rename) a unit, creating the catalog when absent."""
        if not symbol:
            raise MalformedDeclarationError("Unit symbol may not be empty")
        target = self._catalogs.get(catalog)
        if target is None:
            target = self._catalogs[catalog] = UnitCatalog(catalog)
            logger.info(f"Created unit catalog {catalog}")
        return target.define_unit(symbol, name)

    def define_relation(self, catalog: str, text: str) -> None:
        """Parse and register one relation such as ``V*A=W`` in ``catalog``.

        Symbols are looked up in ``catalog`` first, then in every other
        catalog. Nothing is registered when any symbol is unknown.
        """
        target = self.catalog(catalog)
        candidate = relation_from_equation(parse_relation(text))

        def resolve(symbol: str) -> Unit:
            unit = target.get(symbol) or self._find_any(symbol)
            if unit is None:
                raise MalformedDeclarationError(f"Unit {symbol} was not found")
            return unit

        target.apply(candidate, resolve)
        logger.debug(f"Declared relation {candidate} in {catalog}")

    def _find_any(self, symbol: str) -> Unit | None:
        for catalog in self._catalogs.values():
            unit = catalog.get(symbol)
            if unit is not None:
                return unit
        return None

    def _enabled(self, enabled: Iterable[str]) -> list[UnitCatalog]:
        names = set(enabled)
        return [c for c in self._catalogs.values() if c.name in names]

    def resolve(self, symbol: str, enabled: Iterable[str]) -> tuple[MagnitudePrefix, Unit]:
        """Read a bracket symbol such as ``kWh`` as (prefix, unit).

        An exact unit symbol wins over a prefixed reading; a bare prefix id
        means a dimensionless, prefixed value.

        Raises:
            UnresolvedReferenceError: If no enabled catalog knows the symbol
        """
        catalogs = self._enabled(enabled)
        for catalog in catalogs:
            unit = catalog.get(symbol)
            if unit is not None:
                return NONE, unit
        for prefix, rest in prefixes.split_symbol(symbol):
            if not rest:
                return prefix, DIMENSIONLESS
            for catalog in catalogs:
                unit = catalog.get(rest)
                if unit is not None:
                    return prefix, unit
        raise UnresolvedReferenceError(f"Unit {symbol} was not found")

    def combine(self, a: Quantity, b: Quantity, op: Operator) -> Quantity:
        """Multiply or divide two quantities and renormalize the result.

        Raises:
            DimensionalMismatchError: If both operands carry units and no
                relation is declared between them for ``op``
        """
        if op not in (Operator.MULTIPLY, Operator.DIVIDE):
            raise UnsupportedOperationError(f"Units cannot be combined with {op.value}")
        lhs, rhs = a.base_value, b.base_value
        if b.is_dimensionless:
            return Quantity(ieee(op, lhs, rhs), a.unit).normalize()
        if a.is_dimensionless:
            return Quantity(ieee(op, lhs, rhs), b.unit).normalize()
        evaluator = a.unit.relation(b.unit, op)
        if evaluator is None:
            raise DimensionalMismatchError(
                f"No evaluator found for {a.unit.symbol}{op.value}{b.unit.symbol}"
            )
        return Quantity(evaluator.apply(lhs, rhs), evaluator.output).normalize()

    def convert(self, q: Quantity, symbol: str, enabled: Iterable[str]) -> Quantity:
        """Re-express ``q`` under ``symbol`` without renormalizing.

        A declared scalar relation between the two units converts the value;
        otherwise the number is kept and only unit and prefix change.
        """
        prefix, unit = self.resolve(symbol, enabled)
        if unit != q.unit and not q.is_dimensionless:
            for op in (Operator.MULTIPLY, Operator.DIVIDE):
                evaluator = q.unit.relation(None, op)
                if evaluator is not None and evaluator.output == unit:
                    base = evaluator.apply(q.base_value, 0.0)
                    return Quantity(prefixes.rebase(base, NONE, prefix), unit, prefix)
        return Quantity(q.value, unit, prefix)
