"""SymPy bridge: convert trees to SymPy and check solver output.

The solver never simplifies; this module only answers whether a solved
expression really inverts the original one, for display next to the result.
"""

from __future__ import annotations

import numpy as np
import sympy as sp

from . import config
from .components import (
    Abs,
    BinaryOp,
    Component,
    Factorial,
    FunctionCall,
    Fraction,
    Num,
    Operator,
    Parenthesized,
    RESERVED_FUNCTIONS,
    Root,
    UnaryFunc,
    Var,
)
from .logging_config import get_logger
from .types import UnsupportedOperationError

logger = get_logger("symbolic")

SYMPY_CONSTANTS = {
    "pi": sp.pi,
    "e": sp.E,
    "tau": 2 * sp.pi,
}


def to_sympy(node: Component, functions=None) -> sp.Expr:
    """Translate a tree into a SymPy expression over positive symbols.

    Raises:
        UnsupportedOperationError: For memory, unit annotations, statements
            and reserved functions, which have no symbolic meaning
    """
    if isinstance(node, Num):
        value = float(node.value)
        return sp.Integer(int(value)) if value.is_integer() else sp.Float(value)
    if isinstance(node, Var):
        if node.name in SYMPY_CONSTANTS:
            return SYMPY_CONSTANTS[node.name]
        return sp.Symbol(node.name, positive=True)
    if isinstance(node, Parenthesized):
        return to_sympy(node.x, functions)
    if isinstance(node, BinaryOp):
        x, y = to_sympy(node.x, functions), to_sympy(node.y, functions)
        if node.op is Operator.ADD:
            return x + y
        if node.op is Operator.SUBTRACT:
            return x - y
        if node.op is Operator.MULTIPLY:
            return x * y
        if node.op is Operator.DIVIDE:
            return x / y
        if node.op is Operator.MODULUS:
            return sp.Mod(x, y)
        return x**y
    if isinstance(node, Fraction):
        return to_sympy(node.x, functions) / to_sympy(node.y, functions)
    if isinstance(node, Root):
        radicand = to_sympy(node.x, functions)
        if node.index is None:
            return sp.sqrt(radicand)
        return radicand ** (sp.Integer(1) / to_sympy(node.index, functions))
    if isinstance(node, UnaryFunc):
        if node.kind in RESERVED_FUNCTIONS:
            raise UnsupportedOperationError(f"Function {node.kind.value} is not implemented")
        return config.SYMPY_FUNCTIONS[node.kind.value](to_sympy(node.x, functions))
    if isinstance(node, Abs):
        return sp.Abs(to_sympy(node.x, functions))
    if isinstance(node, Factorial):
        return sp.factorial(to_sympy(node.x, functions))
    if isinstance(node, FunctionCall):
        return _call_to_sympy(node, functions)
    raise UnsupportedOperationError(f"{type(node).__name__} has no symbolic form")


def _call_to_sympy(node: FunctionCall, functions) -> sp.Expr:
    definition = functions.lookup_function(node.name) if functions is not None else None
    if definition is None:
        return sp.nan
    bindings = dict(definition.defaults)
    bindings.update({b.name: b.x for b in node.bindings})
    body = to_sympy(definition.body, functions)
    substitutions = {
        sp.Symbol(name, positive=True): to_sympy(value, functions)
        for name, value in bindings.items()
    }
    return body.subs(substitutions)


def verify_solution(
    root: Component, target: str, substitute: str, solved: Component, functions=None
) -> bool:
    """True when substituting ``substitute := root`` into ``solved`` gives ``target``.

    Tries ``sympy.simplify`` first; when that is inconclusive, compares both
    sides at VERIFY_SAMPLES random points in (0.1, 0.9).
    """
    original = to_sympy(root, functions)
    inverse = to_sympy(solved, functions)
    target_symbol = sp.Symbol(target, positive=True)
    composed = inverse.subs(sp.Symbol(substitute, positive=True), original)

    difference = sp.simplify(composed - target_symbol)
    if difference == 0:
        return True

    symbols = sorted(composed.free_symbols | {target_symbol}, key=lambda s: s.name)
    rng = np.random.default_rng(0)
    checked = 0
    for _ in range(config.VERIFY_SAMPLES * 4):
        point = {s: float(v) for s, v in zip(symbols, rng.uniform(0.1, 0.9, len(symbols)))}
        try:
            value = complex(sp.N(composed.subs(point)))
        except (TypeError, ValueError):
            # zoo and other non-numeric results at this point
            continue
        expected = point[target_symbol]
        if not np.isfinite(value) or abs(value.imag) > config.VERIFY_TOLERANCE:
            continue
        if not np.isclose(value.real, expected, rtol=config.VERIFY_TOLERANCE, atol=config.VERIFY_TOLERANCE):
            logger.debug(f"Solution check failed at {point}: {value.real} != {expected}")
            return False
        checked += 1
        if checked >= config.VERIFY_SAMPLES:
            break
    return checked > 0
