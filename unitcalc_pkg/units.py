"""Units, their relation tables, catalogs and the catalog builder.

A relation says what unit comes out of ``unit <op> other``. Declaring one
relation registers its closure so the graph can be walked from any of the
three units involved:

    A*B=C  ->  A*B=C, B*A=C, C/A=B, C/B=A
    A/B=C  ->  A/B=C, A/C=B, C*B=A, B*C=A

A scalar relation (``A*k=C``, the second operand a number) registers
``A*(scalar)->C`` with the constant ``k`` as operand override, plus the
inverse ``C/(scalar)->A`` with the same override.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .components import BinaryOp, Equation, Num, Operator, Var
from .logging_config import get_logger
from .parser import parse_relation, parse_unit_file
from .types import MalformedDeclarationError

logger = get_logger("units")

INVERSE_OPERATORS = {Operator.MULTIPLY: Operator.DIVIDE, Operator.DIVIDE: Operator.MULTIPLY}


@dataclass(frozen=True)
class UnitEvaluator:
    """Output unit of a relation, with an optional constant operand override."""

    op: Operator
    output: "Unit"
    override: float | None = None

    def apply(self, a: float, b: float) -> float:
        operand = self.override if self.override is not None else b
        with np.errstate(all="ignore"):
            if self.op is Operator.MULTIPLY:
                return float(np.multiply(a, operand))
            return float(np.divide(a, operand))


class Unit:
    """A named dimension inside a catalog. Identity is (catalog, symbol)."""

    def __init__(self, catalog: str, symbol: str, name: str | None = None):
        self.catalog = catalog
        self.symbol = symbol
        self.name = name or symbol
        self.relations: dict[tuple[Unit | None, Operator], UnitEvaluator] = {}

    @property
    def is_dimensionless(self) -> bool:
        return not self.symbol

    def relation(self, other: Unit | None, op: Operator) -> UnitEvaluator | None:
        return self.relations.get((other, op))

    def add_relation(self, other: Unit | None, op: Operator, evaluator: UnitEvaluator) -> None:
        if self.is_dimensionless:
            raise MalformedDeclarationError("Relations cannot be declared on the dimensionless unit")
        self.relations[(other, op)] = evaluator

    def add_product(self, other: Unit, result: Unit) -> None:
        """Register ``self * other = result`` and its closure."""
        self.add_relation(other, Operator.MULTIPLY, UnitEvaluator(Operator.MULTIPLY, result))
        other.add_relation(self, Operator.MULTIPLY, UnitEvaluator(Operator.MULTIPLY, result))
        result.add_relation(self, Operator.DIVIDE, UnitEvaluator(Operator.DIVIDE, other))
        result.add_relation(other, Operator.DIVIDE, UnitEvaluator(Operator.DIVIDE, self))

    def add_quotient(self, other: Unit, result: Unit) -> None:
        """Register ``self / other = result`` and its closure."""
        self.add_relation(other, Operator.DIVIDE, UnitEvaluator(Operator.DIVIDE, result))
        self.add_relation(result, Operator.DIVIDE, UnitEvaluator(Operator.DIVIDE, other))
        result.add_relation(other, Operator.MULTIPLY, UnitEvaluator(Operator.MULTIPLY, self))
        other.add_relation(result, Operator.MULTIPLY, UnitEvaluator(Operator.MULTIPLY, self))

    def add_scalar(self, op: Operator, factor: float, result: Unit) -> None:
        """Register ``self <op> factor = result`` and the inverse on ``result``."""
        self.add_relation(None, op, UnitEvaluator(op, result, factor))
        inverse = INVERSE_OPERATORS[op]
        result.add_relation(None, inverse, UnitEvaluator(inverse, self, factor))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Unit):
            return NotImplemented
        return (self.catalog, self.symbol) == (other.catalog, other.symbol)

    def __hash__(self) -> int:
        return hash((self.catalog, self.symbol))

    def __repr__(self) -> str:
        return f"Unit({self.catalog!r}, {self.symbol!r})"

    def __str__(self) -> str:
        return self.symbol


DIMENSIONLESS = Unit("", "", "")


@dataclass(frozen=True)
class RelationCandidate:
    """A declared but unresolved relation: ``subject <op> other = result``."""

    subject: str
    op: Operator
    other: str | None
    result: str
    factor: float | None = None

    def __str__(self) -> str:
        right = self.other if self.other is not None else _format_factor(self.factor)
        return f"{self.subject}{self.op.value}{right}={self.result}"


def _format_factor(factor: float | None) -> str:
    if factor is not None and factor.is_integer():
        return str(int(factor))
    return repr(factor)


def relation_from_equation(equation: Equation) -> RelationCandidate:
    """Turn a parsed ``a <op> b = c`` equation into a relation candidate."""
    lhs, rhs = equation.lhs, equation.rhs
    if not (
        isinstance(lhs, BinaryOp)
        and lhs.op in INVERSE_OPERATORS
        and isinstance(lhs.x, Var)
        and isinstance(lhs.y, (Var, Num))
        and isinstance(rhs, Var)
    ):
        raise MalformedDeclarationError(
            f"Relation must have the form a*b=c or a/b=c, got {equation}"
        )
    if isinstance(lhs.y, Num):
        return RelationCandidate(lhs.x.name, lhs.op, None, rhs.name, lhs.y.value)
    return RelationCandidate(lhs.x.name, lhs.op, lhs.y.name, rhs.name)


class UnitCatalog:
    """A named collection of units that contexts enable or disable as a whole."""

    def __init__(self, name: str):
        self.name = name
        self.units: dict[str, Unit] = {}
        self.declarations: list[RelationCandidate] = []

    def get(self, symbol: str) -> Unit | None:
        return self.units.get(symbol)

    def define_unit(self, symbol: str, name: str | None = None) -> Unit:
        """Create a unit, or rename an existing one, and return it."""
        unit = self.units.get(symbol)
        if unit is None:
            unit = self.units[symbol] = Unit(self.name, symbol, name)
            logger.debug(f"Defined unit {symbol} in catalog {self.name}")
        elif name:
            unit.name = name
        return unit

    def apply(self, candidate: RelationCandidate, resolve) -> None:
        """Register one candidate; ``resolve(symbol)`` must return a Unit or raise."""
        self.apply_all([candidate], resolve)

    def apply_all(self, candidates: list[RelationCandidate], resolve) -> None:
        """Resolve every candidate first, then register them all."""
        resolved = []
        for candidate in candidates:
            subject = resolve(candidate.subject)
            result = resolve(candidate.result)
            other = resolve(candidate.other) if candidate.other is not None else None
            resolved.append((candidate, subject, other, result))
        for candidate, subject, other, result in resolved:
            if other is None:
                subject.add_scalar(candidate.op, candidate.factor, result)
            elif candidate.op is Operator.MULTIPLY:
                subject.add_product(other, result)
            else:
                subject.add_quotient(other, result)
            self.declarations.append(candidate)

    def relations_of(self, symbol: str) -> list[RelationCandidate]:
        """Declarations whose subject is ``symbol``, in declaration order."""
        return [c for c in self.declarations if c.subject == symbol]

    def __len__(self) -> int:
        return len(self.units)

    def __repr__(self) -> str:
        return f"UnitCatalog({self.name!r}, units={sorted(self.units)!r})"


class CatalogBuilder:
    """Two-phase loader: collect units and relation candidates, then finalize.

    Candidates may name units declared later (in another file of the same
    catalog); nothing is resolved until ``finalize``. ``fallback`` is an
    optional ``symbol -> Unit | None`` lookup used for units that live in
    other catalogs.
    """

    def __init__(self, name: str, fallback=None):
        self.name = name
        self._fallback = fallback
        self._units: dict[str, str | None] = {}
        self._candidates: list[RelationCandidate] = []
        self._finalized = False

    def declare_unit(self, symbol: str, name: str | None = None) -> None:
        self._check_open()
        if not symbol:
            raise MalformedDeclarationError("Unit symbol may not be empty")
        self._units[symbol] = name or self._units.get(symbol)

    def add_candidate(self, candidate: RelationCandidate) -> None:
        self._check_open()
        self._candidates.append(candidate)

    def add_relation(self, text: str) -> None:
        self.add_candidate(relation_from_equation(parse_relation(text)))

    def load_unit_file(self, text: str, symbol: str) -> None:
        """Add one unit file: display-name header, then relation lines.

        The whole file is parsed before anything is added to the builder.
        """
        self._check_open()
        display_name, equations = parse_unit_file(text)
        candidates = [relation_from_equation(eq) for eq in equations]
        self.declare_unit(symbol, display_name)
        self._candidates.extend(candidates)

    def finalize(self) -> UnitCatalog:
        """Resolve every candidate and freeze the builder into a catalog.

        Raises:
            MalformedDeclarationError: If a candidate names an unknown unit;
                no relation of the batch is registered in that case.
        """
        self._check_open()
        catalog = UnitCatalog(self.name)
        for symbol, name in self._units.items():
            catalog.define_unit(symbol, name)

        def resolve(symbol: str) -> Unit:
            unit = catalog.get(symbol)
            if unit is None and self._fallback is not None:
                unit = self._fallback(symbol)
            if unit is None:
                raise MalformedDeclarationError(
                    f"Unit {symbol} was not found while finalizing catalog {self.name}"
                )
            return unit

        catalog.apply_all(self._candidates, resolve)
        self._finalized = True
        logger.info(
            f"Finalized catalog {self.name}: {len(catalog)} units, "
            f"{len(self._candidates)} relations"
        )
        return catalog

    def _check_open(self) -> None:
        if self._finalized:
            raise MalformedDeclarationError(f"Catalog {self.name} was already finalized")
