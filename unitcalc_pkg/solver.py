"""Structural equation solver.

Given an expression E containing a target variable exactly once, build the
expression for the target in terms of a substitute variable y, where
y = E. The path from the root of E down to the target is walked outermost
first and every node on it is inverted once:

    frac(b+c)(2)*d  for d  ->  a/(b+c)*2
    sqrt(a^2+b^2)   for b  ->  sqrt(c^2-a^2)

No simplification, re-association or distribution is performed.
"""

from __future__ import annotations

import math

from .components import (
    BinaryOp,
    Component,
    Equation,
    FuncKind,
    Fraction,
    INVERSE_FUNCTIONS,
    Num,
    Operator,
    Parenthesized,
    Root,
    UnaryFunc,
    Var,
    count_occurrences,
    is_infix,
)
from .evaluator import evaluate
from .logging_config import get_logger
from .types import (
    MalformedDeclarationError,
    PreconditionViolationError,
    UnsupportedOperationError,
)

logger = get_logger("solver")

PathStep = tuple[Component, str]


def check_solvable(root: Component, target: str) -> None:
    """Caller-side precondition: ``target`` must occur in ``root`` exactly once.

    Raises:
        PreconditionViolationError: TARGET_NOT_FOUND or TARGET_NOT_UNIQUE
    """
    occurrences = count_occurrences(root, target)
    if occurrences == 0:
        raise PreconditionViolationError(
            f"Variable {target} was not found in function", "TARGET_NOT_FOUND"
        )
    if occurrences > 1:
        raise PreconditionViolationError(
            f"Variable {target} was found more than once", "TARGET_NOT_UNIQUE"
        )


def find_path(root: Component, target: str) -> list[PathStep] | None:
    """Ancestors of the first ``Var(target)`` leaf, outermost first.

    Each step pairs an ancestor with the slot that leads toward the target.
    Returns None when the target does not occur.
    """
    if isinstance(root, Var):
        return [] if root.name == target else None
    for slot, child in root.children():
        path = find_path(child, target)
        if path is not None:
            return [(root, slot)] + path
    return None


def _lifted(node: Component) -> Component:
    """Operand taken out of a fraction into infix position keeps its grouping."""
    return Parenthesized(node) if is_infix(node) else node


def _is_divide(node: Component) -> bool:
    return isinstance(node, Fraction) or (
        isinstance(node, BinaryOp) and node.op is Operator.DIVIDE
    )


def _invert_binary(node: BinaryOp, slot: str, current: Component) -> Component:
    on_left = slot == "x"
    other = node.y if on_left else node.x
    op = node.op
    if op is Operator.ADD:
        return BinaryOp(Operator.SUBTRACT, current, other)
    if op is Operator.SUBTRACT:
        if on_left:
            return BinaryOp(Operator.ADD, current, other)
        return BinaryOp(Operator.SUBTRACT, other, current)
    if op is Operator.MULTIPLY:
        if _is_divide(other):
            # Dividing by n/d is multiplying by d/n, spelled (current/n)*d
            divided = BinaryOp(Operator.DIVIDE, current, _lifted(other.x))
            return BinaryOp(Operator.MULTIPLY, divided, _lifted(other.y))
        return BinaryOp(Operator.DIVIDE, current, other)
    if op is Operator.DIVIDE:
        if on_left:
            return BinaryOp(Operator.MULTIPLY, current, other)
        return BinaryOp(Operator.DIVIDE, other, current)
    if op is Operator.POWER:
        if on_left:
            return Root(current, other)
        raise UnsupportedOperationError("cannot invert a power for its exponent")
    raise UnsupportedOperationError(f"cannot invert the {op.name.lower()} operator")


def invert_step(node: Component, slot: str, current: Component) -> Component:
    """Rewrite ``current`` through the inverse of one ancestor node.

    Raises:
        UnsupportedOperationError: For nodes without a structural inverse
    """
    if isinstance(node, BinaryOp):
        return _invert_binary(node, slot, current)
    if isinstance(node, Fraction):
        if slot == "x":
            return BinaryOp(Operator.MULTIPLY, current, _lifted(node.y))
        return BinaryOp(Operator.DIVIDE, _lifted(node.x), current)
    if isinstance(node, Parenthesized):
        return current
    if isinstance(node, Root):
        if slot != "x":
            raise UnsupportedOperationError("cannot invert a root for its index")
        index = node.index if node.index is not None else Num(2.0)
        return BinaryOp(Operator.POWER, current, index)
    if isinstance(node, UnaryFunc):
        if node.kind is FuncKind.LOG:
            return BinaryOp(Operator.POWER, Var("e"), current)
        inverse = INVERSE_FUNCTIONS.get(node.kind)
        if inverse is None:
            raise UnsupportedOperationError(f"cannot invert {node.kind.value}")
        return UnaryFunc(inverse, current)
    raise UnsupportedOperationError(f"cannot invert {type(node).__name__}")


def solve(root: Component, target: str, substitute: str) -> Component:
    """Isolate ``target`` in ``root``, expressed through ``Var(substitute)``.

    The caller is expected to have checked the precondition with
    check_solvable; a missing target is reported the same way here.
    """
    path = find_path(root, target)
    if path is None:
        raise PreconditionViolationError(
            f"Variable {target} was not found in function", "TARGET_NOT_FOUND"
        )
    current: Component = Var(substitute)
    for node, slot in path:
        current = invert_step(node, slot, current)
    logger.debug(f"Solved {root} for {target}: {current}")
    return current


def split_equation(equation: Equation, target: str | None = None) -> tuple[str, Component]:
    """Split ``y = f`` (or ``f = y``) into the substitute name and f.

    A side that is the target variable itself is never taken as y.

    Raises:
        MalformedDeclarationError: If neither side is a single variable
    """
    for side, other in ((equation.lhs, equation.rhs), (equation.rhs, equation.lhs)):
        if isinstance(side, Var) and side.name != target:
            return side.name, other
    raise MalformedDeclarationError(
        f"Equation {equation} must have a single variable on one side"
    )


def solve_equation(equation: Equation, target: str) -> Equation:
    """Solve ``y = f(target, ...)`` into ``target = g(y, ...)``."""
    substitute, expression = split_equation(equation, target)
    check_solvable(expression, target)
    return Equation(Var(target), solve(expression, target, substitute))


def verify_numerically(
    root: Component, target: str, substitute: str, solved: Component, context, value: float = 1.5
) -> bool:
    """Evaluate root with target := value, feed the result through ``solved``.

    Used by tests and the REPL; unknowns other than the target must already
    be bound in ``context``.
    """
    forward = context.child()
    forward.bind(target, Num(value))
    y = evaluate(root, forward)
    backward = context.child()
    backward.bind(substitute, Num(y.base_value))
    back = evaluate(solved, backward).base_value
    return math.isclose(back, value, rel_tol=1e-9, abs_tol=1e-12)
