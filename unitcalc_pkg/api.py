"""Public API for Unitcalc - returns structured objects without side effects.

Every function accepts an optional Context; without one a fresh root context
with the built-in unit catalogs is used, so calls never share state unless
the caller passes the same context.
"""

from __future__ import annotations

from .components import Equation, free_variables
from .context import AngleMode, Context
from .evaluator import evaluate as _evaluate
from .logging_config import get_logger, log_calc_error
from .parser import parse, parse_expression
from .plotting import plot_function
from .registry import Registry
from .render import RenderMode, render
from .solver import check_solvable, solve, split_equation
from .storage import load_builtin_catalogs
from .symbolic import verify_solution
from .types import CalcError, EvalResult, SolveResult, UnsupportedOperationError

logger = get_logger("api")


def default_context(angle_mode: str = "deg") -> Context:
    """A root context with the built-in unit catalogs enabled."""
    registry = Registry()
    load_builtin_catalogs(registry)
    return Context(registry=registry, angle_mode=AngleMode.parse(angle_mode))


def evaluate(expression: str, context: Context | None = None) -> EvalResult:
    """Evaluate an expression.

    Args:
        expression: Expression string (e.g., "230[V]*16[A]", "sin(90)")
        context: Scope supplying variables, functions and unit catalogs

    Returns:
        EvalResult with the formatted quantity, its value and unit label

    Example:
        >>> from unitcalc_pkg.api import evaluate
        >>> evaluate("230[V]*16[A]").result
        '3.68[kW]'
    """
    context = context or default_context()
    try:
        node = parse_expression(expression)
        supplied = set(context.constants) | set(context.variables())
        unknown = free_variables(node, context.functions) - supplied
        quantity = _evaluate(node, context)
    except CalcError as e:
        log_calc_error(logger, e, expression)
        return EvalResult(ok=False, error=str(e), error_code=e.code)
    return EvalResult(
        ok=True,
        result=str(quantity),
        value=quantity.value,
        unit=quantity.unit_label or None,
        free_symbols=sorted(unknown) or None,
    )


def solve_expression(
    expression: str, target: str, substitute: str = "y", context: Context | None = None
) -> SolveResult:
    """Isolate ``target`` in ``expression``, where ``substitute`` stands for its value.

    Example:
        >>> from unitcalc_pkg.api import solve_expression
        >>> solve_expression("sqrt(a^2+b^2)", "b", "c").expression
        'sqrt(c^2-a^2)'
    """
    try:
        node = parse_expression(expression)
    except CalcError as e:
        return SolveResult(ok=False, target=target, error=str(e), error_code=e.code)
    return _solve(node, target, substitute, context)


def _solve(node, target: str, substitute: str, context: Context | None) -> SolveResult:
    try:
        check_solvable(node, target)
        solved = solve(node, target, substitute)
    except CalcError as e:
        log_calc_error(logger, e, f"solve {target} in {node}")
        return SolveResult(ok=False, target=target, error=str(e), error_code=e.code)
    return SolveResult(
        ok=True,
        target=target,
        expression=render(solved),
        latex=render(solved, RenderMode.LATEX),
        verified=_verify(node, target, substitute, solved, context),
    )


def solve_equation(equation: str, target: str, context: Context | None = None) -> SolveResult:
    """Solve ``y = f(target, ...)`` for ``target``.

    Example:
        >>> from unitcalc_pkg.api import solve_equation
        >>> solve_equation("y = x^2", "x").expression
        'sqrt(y)'
    """
    try:
        node = parse(equation)
        if not isinstance(node, Equation):
            raise UnsupportedOperationError(f"{equation!r} is not an equation", "NOT_AN_EQUATION")
        substitute, expression = split_equation(node, target)
    except CalcError as e:
        return SolveResult(ok=False, target=target, error=str(e), error_code=e.code)
    return _solve(expression, target, substitute, context)


def _verify(node, target, substitute, solved, context) -> bool | None:
    functions = context.functions if context is not None else None
    try:
        return verify_solution(node, target, substitute, solved, functions)
    except CalcError as e:
        logger.debug(f"Solution of {node} not verified: {e}")
        return None


def render_expression(expression: str, mode: str = "plain") -> EvalResult:
    """Parse and re-render an expression or statement ("plain" or "latex")."""
    try:
        result = render(parse(expression), RenderMode(mode))
    except ValueError:
        return EvalResult(ok=False, error=f"Unknown render mode {mode!r}", error_code="INVALID_MODE")
    except CalcError as e:
        return EvalResult(ok=False, error=str(e), error_code=e.code)
    return EvalResult(ok=True, result=result)


def validate_expression(expression: str) -> tuple[bool, str | None]:
    """Validate an expression without evaluating it.

    Returns:
        Tuple of (is_valid, error_message)

    Example:
        >>> from unitcalc_pkg.api import validate_expression
        >>> validate_expression("2 + 2")
        (True, None)
        >>> validate_expression("(2 + 2")[0]
        False
    """
    try:
        parse(expression)
        return True, None
    except CalcError as e:
        return False, str(e)


def plot(
    expression: str,
    variable: str = "x",
    x_min: float = -10,
    x_max: float = 10,
    ascii: bool = False,
    output: str | None = None,
    context: Context | None = None,
) -> EvalResult:
    """Plot one or more ``;``-separated expressions of ``variable``.

    Example:
        >>> from unitcalc_pkg.api import plot
        >>> plot("x^2", x_min=-5, x_max=5, ascii=True).ok
        True
    """
    try:
        nodes = [parse_expression(part) for part in expression.split(";") if part.strip()]
    except CalcError as e:
        return EvalResult(ok=False, error=str(e), error_code=e.code)
    return plot_function(
        nodes, context or default_context(), variable, x_min, x_max, ascii=ascii, output=output
    )
