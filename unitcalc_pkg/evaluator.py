"""Recursive evaluation of expression trees into Quantities."""

from __future__ import annotations

import math

import numpy as np

from . import quantity as qty
from .components import (
    Abs,
    BinaryOp,
    Binding,
    Component,
    Declaration,
    Equation,
    Factorial,
    FuncKind,
    FunctionCall,
    Fraction,
    INVERSE_TRIG_FUNCTIONS,
    Mem,
    Num,
    Operator,
    Parenthesized,
    RESERVED_FUNCTIONS,
    Root,
    TargetMarker,
    TRIG_FUNCTIONS,
    UnaryFunc,
    UnitAnnotation,
    UnitMode,
    Var,
)
from .config import MAX_CALL_DEPTH, RANDOM_PREFIX
from .context import Context
from .logging_config import get_logger
from .quantity import Quantity
from .types import CyclicReferenceError, UnsupportedOperationError, ValidationError

logger = get_logger("evaluator")

_PRIMITIVES = {
    FuncKind.SIN: np.sin,
    FuncKind.COS: np.cos,
    FuncKind.TAN: np.tan,
    FuncKind.LOG: np.log,
    FuncKind.ARCSIN: np.arcsin,
    FuncKind.ARCCOS: np.arccos,
    FuncKind.ARCTAN: np.arctan,
}


def evaluate(node: Component, context: Context) -> Quantity:
    """Evaluate ``node`` in ``context``.

    Raises:
        UnresolvedReferenceError: Unknown variable, memory slot or unit
        CyclicReferenceError: A variable or function refers back to itself
        UnsupportedOperationError: Reserved functions and structural nodes
        DimensionalMismatchError: No relation between two operand units
    """
    return _Evaluation().run(node, context)


class _Evaluation:
    """State of one top-level evaluate() call: what is currently being resolved."""

    def __init__(self) -> None:
        self.resolving_vars: set[tuple[int, str, int]] = set()
        self.resolving_functions: list[str] = []
        self.depth = 0

    def run(self, node: Component, ctx: Context) -> Quantity:
        if isinstance(node, Num):
            return Quantity(node.value)
        if isinstance(node, Var):
            return self._variable(node.name, ctx)
        if isinstance(node, Mem):
            index = 0 if node.index is None else self._as_index(self.run(node.index, ctx))
            return ctx.memory(index)
        if isinstance(node, Parenthesized):
            return self.run(node.x, ctx)
        if isinstance(node, BinaryOp):
            return self._binary(node.op, self.run(node.x, ctx), self.run(node.y, ctx), ctx)
        if isinstance(node, Fraction):
            return ctx.registry.combine(self.run(node.x, ctx), self.run(node.y, ctx), Operator.DIVIDE)
        if isinstance(node, UnaryFunc):
            return self._function(node.kind, self.run(node.x, ctx), ctx)
        if isinstance(node, Factorial):
            return self._factorial(self.run(node.x, ctx))
        if isinstance(node, Root):
            radicand = self.run(node.x, ctx)
            index = 2.0 if node.index is None else self.run(node.index, ctx).base_value
            exponent = qty.ieee(Operator.DIVIDE, 1.0, index)
            return Quantity(qty.ieee(Operator.POWER, radicand.base_value, exponent))
        if isinstance(node, Abs):
            inner = self.run(node.x, ctx)
            return Quantity(abs(inner.value), inner.unit, inner.prefix)
        if isinstance(node, FunctionCall):
            return self._call(node, ctx)
        if isinstance(node, UnitAnnotation):
            return self._unit(node, self.run(node.x, ctx), ctx)
        if isinstance(node, (Equation, Declaration, TargetMarker, Binding)):
            raise UnsupportedOperationError(
                f"{type(node).__name__} is a statement and cannot be evaluated"
            )
        raise UnsupportedOperationError(f"Cannot evaluate {type(node).__name__}")

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_CALL_DEPTH:
            raise CyclicReferenceError(
                f"Maximum resolution depth exceeded ({MAX_CALL_DEPTH})", "TOO_DEEP"
            )

    def _variable(self, name: str, ctx: Context) -> Quantity:
        if name.startswith(RANDOM_PREFIX):
            return self._random(name, ctx)
        if name in ctx.constants:
            return Quantity(ctx.constants[name])
        expr, defined_in, scope = ctx.lookup(name)
        target = scope if scope is not None else ctx
        key = (id(defined_in), name, id(target))
        if key in self.resolving_vars:
            raise CyclicReferenceError(f"Variable {name} refers to itself")
        self.resolving_vars.add(key)
        self._enter()
        try:
            return self.run(expr, target)
        finally:
            self.depth -= 1
            self.resolving_vars.discard(key)

    def _random(self, name: str, ctx: Context) -> Quantity:
        if name.endswith("i"):
            return Quantity(float(ctx.rng.randint(0, 2**31 - 1)))
        if name.endswith("d"):
            return Quantity(ctx.rng.random())
        raise UnsupportedOperationError(
            f"Invalid random variable {name}: end it with 'i' (integer) or 'd' (decimal)"
        )

    @staticmethod
    def _as_index(q: Quantity) -> int:
        value = q.base_value
        if not math.isfinite(value) or not value.is_integer():
            raise ValidationError(f"Memory index must be a whole number, got {q}", "INVALID_INDEX")
        return int(value)

    def _binary(self, op: Operator, a: Quantity, b: Quantity, ctx: Context) -> Quantity:
        if op in (Operator.ADD, Operator.SUBTRACT):
            return qty.linear(a, b, op)
        if op in (Operator.MULTIPLY, Operator.DIVIDE):
            return ctx.registry.combine(a, b, op)
        if op is Operator.MODULUS:
            return qty.modulus(a, b)
        return qty.power(a, b)

    def _function(self, kind: FuncKind, arg: Quantity, ctx: Context) -> Quantity:
        if kind in RESERVED_FUNCTIONS:
            raise UnsupportedOperationError(f"Function {kind.value} is not implemented")
        value = arg.base_value
        mode = ctx.angle_mode
        with np.errstate(all="ignore"):
            if kind in TRIG_FUNCTIONS:
                value = mode.into(value)
            result = float(_PRIMITIVES[kind](np.float64(value)))
            if kind in INVERSE_TRIG_FUNCTIONS:
                result = mode.out_of(result)
        return Quantity(result)

    @staticmethod
    def _factorial(arg: Quantity) -> Quantity:
        value = arg.base_value
        if not math.isfinite(value):
            return arg.with_value(value)
        result = 1.0
        for i in range(2, int(value) + 1):
            result *= i
            if math.isinf(result):
                break
        return arg.with_value(result)

    def _call(self, node: FunctionCall, ctx: Context) -> Quantity:
        definition = ctx.functions.lookup_function(node.name)
        if definition is None:
            logger.debug(f"Function {node.name} not found, evaluating to NaN")
            return Quantity(math.nan)
        if node.name in self.resolving_functions:
            chain = " -> ".join(self.resolving_functions + [node.name])
            raise CyclicReferenceError(f"Function {node.name} calls itself ({chain})")
        call_ctx = ctx.child(owner=definition.body)
        for key, default in definition.defaults.items():
            if not ctx.is_bound(key):
                call_ctx.bind(key, default)
        for binding in node.bindings:
            call_ctx.bind(binding.name, binding.x, scope=ctx)
        self.resolving_functions.append(node.name)
        self._enter()
        try:
            return self.run(definition.body, call_ctx)
        finally:
            self.depth -= 1
            self.resolving_functions.pop()

    @staticmethod
    def _unit(node: UnitAnnotation, inner: Quantity, ctx: Context) -> Quantity:
        if node.mode is UnitMode.NORMALIZE:
            return inner.normalize()
        registry = ctx.registry
        if node.mode is UnitMode.CAST:
            return registry.convert(inner, node.symbol, ctx.enabled_catalogs)
        prefix, unit = registry.resolve(node.symbol, ctx.enabled_catalogs)
        return registry.combine(inner, Quantity(1.0, unit, prefix), Operator.MULTIPLY)
