"""Expression tree node types.

Every node is a frozen dataclass; derived trees (solver output, substituted
copies) are built with ``dataclasses.replace`` or fresh constructors and the
original tree is never edited in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Iterator


class FuncKind(Enum):
    SIN = "sin"
    COS = "cos"
    TAN = "tan"
    LOG = "log"
    SEC = "sec"
    CSC = "csc"
    COT = "cot"
    HYP = "hyp"
    ARCSIN = "arcsin"
    ARCCOS = "arccos"
    ARCTAN = "arctan"


class Operator(Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    MODULUS = "%"
    POWER = "^"


class UnitMode(Enum):
    APPLY = "apply"
    CAST = "cast"
    NORMALIZE = "normalize"


TRIG_FUNCTIONS = {FuncKind.SIN, FuncKind.COS, FuncKind.TAN}
INVERSE_TRIG_FUNCTIONS = {FuncKind.ARCSIN, FuncKind.ARCCOS, FuncKind.ARCTAN}
RESERVED_FUNCTIONS = {FuncKind.SEC, FuncKind.CSC, FuncKind.COT, FuncKind.HYP}

INVERSE_FUNCTIONS = {
    FuncKind.SIN: FuncKind.ARCSIN,
    FuncKind.COS: FuncKind.ARCCOS,
    FuncKind.TAN: FuncKind.ARCTAN,
    FuncKind.ARCSIN: FuncKind.SIN,
    FuncKind.ARCCOS: FuncKind.COS,
    FuncKind.ARCTAN: FuncKind.TAN,
}


class Component:
    """Base class of all expression nodes."""

    __slots__ = ()

    def children(self) -> Iterator[tuple[str, "Component"]]:
        """Yield ``(slot, child)`` pairs in source order, skipping empty slots."""
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Component):
                yield f.name, value
            elif isinstance(value, tuple):
                for i, item in enumerate(value):
                    if isinstance(item, Component):
                        yield f"{f.name}[{i}]", item

    def __str__(self) -> str:
        from .render import render

        return render(self)


@dataclass(frozen=True)
class Num(Component):
    value: float


@dataclass(frozen=True)
class Var(Component):
    name: str


@dataclass(frozen=True)
class Mem(Component):
    index: Component | None = None


@dataclass(frozen=True)
class UnaryFunc(Component):
    kind: FuncKind
    x: Component


@dataclass(frozen=True)
class Factorial(Component):
    x: Component


@dataclass(frozen=True)
class Root(Component):
    x: Component
    index: Component | None = None


@dataclass(frozen=True)
class Abs(Component):
    x: Component


@dataclass(frozen=True)
class Fraction(Component):
    x: Component
    y: Component


@dataclass(frozen=True)
class BinaryOp(Component):
    op: Operator
    x: Component
    y: Component


@dataclass(frozen=True)
class Binding(Component):
    name: str
    x: Component


@dataclass(frozen=True)
class FunctionCall(Component):
    name: str
    bindings: tuple[Binding, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Parenthesized(Component):
    x: Component


@dataclass(frozen=True)
class UnitAnnotation(Component):
    mode: UnitMode
    symbol: str | None
    x: Component


@dataclass(frozen=True)
class Equation(Component):
    lhs: Component
    rhs: Component


@dataclass(frozen=True)
class Declaration(Component):
    name: str
    x: Component


@dataclass(frozen=True)
class TargetMarker(Component):
    name: str


def walk(node: Component) -> Iterator[Component]:
    """Pre-order traversal of ``node`` and all its descendants."""
    yield node
    for _, child in node.children():
        yield from walk(child)


def count_occurrences(node: Component, name: str) -> int:
    """Number of ``Var(name)`` leaves in the tree itself (function bodies excluded)."""
    return sum(1 for n in walk(node) if isinstance(n, Var) and n.name == name)


def free_variables(node: Component, functions=None, _visiting: frozenset = frozenset()) -> set[str]:
    """Collect the names a tree needs from its context.

    For a FunctionCall the free variables of the referenced body are added,
    minus the names bound by the call itself and by the function's stored
    defaults. ``functions`` is anything with a ``lookup_function(name)``
    method; without it calls contribute only their binding expressions.
    """
    if isinstance(node, Var):
        return {node.name}
    if isinstance(node, Declaration):
        return free_variables(node.x, functions, _visiting)
    if isinstance(node, FunctionCall):
        names: set[str] = set()
        for binding in node.bindings:
            names |= free_variables(binding.x, functions, _visiting)
        definition = functions.lookup_function(node.name) if functions is not None else None
        if definition is not None and node.name not in _visiting:
            inner = free_variables(definition.body, functions, _visiting | {node.name})
            shadowed = {b.name for b in node.bindings} | set(definition.defaults)
            names |= inner - shadowed
        return names
    names = set()
    for _, child in node.children():
        names |= free_variables(child, functions, _visiting)
    return names


def is_infix(node: Component) -> bool:
    """True for nodes rendered as ``left <op> right`` without delimiters."""
    return isinstance(node, BinaryOp)


def replace_child(node: Component, slot: str, new_child: Component) -> Component:
    """Copy of ``node`` with the child in ``slot`` swapped for ``new_child``.

    Slots are the names yielded by ``children()``, so tuple members are
    addressed as ``"bindings[0]"``.
    """
    name, _, index = slot.partition("[")
    if not index:
        return replace(node, **{name: new_child})
    items = list(getattr(node, name))
    items[int(index.rstrip("]"))] = new_child
    return replace(node, **{name: tuple(items)})
