"""Hierarchical evaluation scopes.

The root context owns the session-wide collaborators (unit registry,
constant table, function store, angle mode, random source). Child scopes
reach them through the parent chain and only add their own variable
bindings, memory and enabled catalogs.
"""

from __future__ import annotations

import math
import random
from enum import Enum
from typing import Iterator

from .components import Component
from .config import BUILTIN_CONSTANTS
from .function_manager import FunctionStore
from .quantity import Quantity
from .registry import Registry
from .types import UnresolvedReferenceError, ValidationError


class AngleMode(Enum):
    """Angle modes with the factor applied to trig arguments.

    Trig arguments are multiplied by the factor before the primitive is
    called; inverse trig results are divided by it.
    """

    DEG = "deg"
    RAD = "rad"
    GRAD = "grad"

    @property
    def factor(self) -> float:
        return _ANGLE_FACTORS[self]

    def into(self, value: float) -> float:
        return value * self.factor

    def out_of(self, value: float) -> float:
        return value / self.factor

    @classmethod
    def parse(cls, text: str) -> AngleMode:
        try:
            return cls(text.strip().lower())
        except ValueError:
            raise ValidationError(
                f"Unknown angle mode {text!r} (use deg, rad or grad)", "INVALID_ANGLE_MODE"
            ) from None


_ANGLE_FACTORS = {
    AngleMode.DEG: 1.0,
    AngleMode.RAD: math.pi / 180,
    AngleMode.GRAD: 1.111111111,
}


class Context:
    """One scope of variable bindings, memory and enabled unit catalogs."""

    def __init__(
        self,
        parent: Context | None = None,
        owner: Component | None = None,
        *,
        registry: Registry | None = None,
        constants: dict[str, float] | None = None,
        functions: FunctionStore | None = None,
        angle_mode: AngleMode = AngleMode.DEG,
        rng: random.Random | None = None,
        enabled: set[str] | None = None,
    ):
        self.parent = parent
        self.owner = owner if owner is not None or parent is None else parent.owner
        self._bindings: dict[str, tuple[Component, Context | None]] = {}
        self._memory: list[Quantity] = []
        if parent is None:
            self._registry = registry or Registry()
            self._constants = dict(BUILTIN_CONSTANTS)
            self._constants.update(constants or {})
            self._functions = functions if functions is not None else FunctionStore()
            self._angle_mode = angle_mode
            self._rng = rng or random.Random()
            if enabled is None:
                enabled = {c.name for c in self._registry.catalogs()}
            self.enabled_catalogs: set[str] = set(enabled)
        else:
            self.enabled_catalogs = set(parent.enabled_catalogs if enabled is None else enabled)

    # Root-held collaborators

    @property
    def root(self) -> Context:
        ctx = self
        while ctx.parent is not None:
            ctx = ctx.parent
        return ctx

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def registry(self) -> Registry:
        return self.root._registry

    @property
    def constants(self) -> dict[str, float]:
        return self.root._constants

    @property
    def functions(self) -> FunctionStore:
        return self.root._functions

    @property
    def angle_mode(self) -> AngleMode:
        return self.root._angle_mode

    @angle_mode.setter
    def angle_mode(self, mode: AngleMode) -> None:
        self.root._angle_mode = mode

    @property
    def rng(self) -> random.Random:
        return self.root._rng

    def child(self, owner: Component | None = None) -> Context:
        return Context(self, owner)

    def chain(self) -> Iterator[Context]:
        """This scope followed by its ancestors, innermost first."""
        ctx: Context | None = self
        while ctx is not None:
            yield ctx
            ctx = ctx.parent

    # Variables

    def bind(self, name: str, expr: Component, scope: Context | None = None) -> None:
        """Bind ``name`` in this scope.

        ``scope`` fixes where the expression is evaluated; without it the
        expression is evaluated in whatever scope looks the name up.
        """
        self._bindings[name] = (expr, scope)

    def unbind(self, name: str) -> None:
        if name not in self._bindings:
            raise UnresolvedReferenceError(f"Variable {name} not found")
        del self._bindings[name]

    def lookup(self, name: str) -> tuple[Component, Context, Context | None]:
        """Return ``(expression, defining scope, evaluation scope)``.

        Raises:
            UnresolvedReferenceError: If no scope in the chain binds ``name``
        """
        for ctx in self.chain():
            if name in ctx._bindings:
                expr, scope = ctx._bindings[name]
                return expr, ctx, scope
        raise UnresolvedReferenceError(f"Variable {name} not found")

    def is_bound(self, name: str) -> bool:
        return any(name in ctx._bindings for ctx in self.chain())

    def own_variables(self) -> dict[str, Component]:
        return {name: expr for name, (expr, _) in self._bindings.items()}

    def variables(self) -> dict[str, Component]:
        """All visible bindings; inner scopes shadow outer ones."""
        visible: dict[str, Component] = {}
        for ctx in reversed(list(self.chain())):
            visible.update(ctx.own_variables())
        return visible

    def clear_variables(self) -> None:
        self._bindings.clear()

    # Memory

    def push_memory(self, value: Quantity) -> bool:
        """Push unless equal to the current top; returns whether it was pushed."""
        if self._memory and self._memory[-1] == value:
            return False
        self._memory.append(value)
        return True

    def memory_values(self) -> list[Quantity]:
        """Visible memory, most recent first, walking outward."""
        values: list[Quantity] = []
        for ctx in self.chain():
            values.extend(reversed(ctx._memory))
        return values

    def memory(self, index: int = 0) -> Quantity:
        """The ``index``-th most recent visible result (0 = latest).

        Raises:
            UnresolvedReferenceError: If the memory has fewer entries
        """
        values = self.memory_values()
        if index < 0 or index >= len(values):
            raise UnresolvedReferenceError(f"Memory index {index} not found")
        return values[index]

    def clear_memory(self) -> None:
        self._memory.clear()

    # Unit catalogs

    def enable_catalog(self, name: str) -> None:
        """Make a registry catalog's units visible in this scope.

        Raises:
            UnresolvedReferenceError: If the registry has no such catalog
        """
        self.registry.catalog(name)
        self.enabled_catalogs.add(name)

    def disable_catalog(self, name: str) -> None:
        self.enabled_catalogs.discard(name)

    def __repr__(self) -> str:
        depth = sum(1 for _ in self.chain()) - 1
        return f"Context(depth={depth}, vars={sorted(self._bindings)!r})"
