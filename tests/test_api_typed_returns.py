"""Test that API functions return typed dataclasses."""

from unitcalc_pkg.api import (
    default_context,
    evaluate,
    plot,
    render_expression,
    solve_equation,
    solve_expression,
    validate_expression,
)
from unitcalc_pkg.components import Num
from unitcalc_pkg.types import EvalResult, SolveResult


class TestAPITypedReturns:
    """Test that all API functions return typed dataclasses."""

    def test_evaluate_returns_eval_result(self):
        """Test that evaluate() returns EvalResult."""
        result = evaluate("2 + 2")
        assert isinstance(result, EvalResult)
        assert result.ok is True
        assert result.result == "4"
        assert result.unit is None

    def test_evaluate_with_units(self):
        """Test that evaluate() reports the unit label."""
        result = evaluate("230[V]*16[A]")
        assert result.result == "3.68[kW]"
        assert result.value == 3.68
        assert result.unit == "kW"

    def test_evaluate_error_returns_eval_result(self):
        """Test that evaluate() errors return EvalResult."""
        result = evaluate("x + 1")
        assert isinstance(result, EvalResult)
        assert result.ok is False
        assert result.error_code == "UNRESOLVED_REFERENCE"

    def test_evaluate_with_context(self):
        """Test that evaluate() uses the caller's bindings."""
        ctx = default_context()
        ctx.bind("x", Num(4))
        result = evaluate("x * 2", ctx)
        assert result.result == "8"
        assert result.free_symbols is None

    def test_evaluate_in_child_context(self):
        """Test that names bound in outer scopes are not reported as unknown."""
        ctx = default_context()
        ctx.bind("k", Num(2))
        result = evaluate("k * pi", ctx.child())
        assert result.ok is True
        assert result.free_symbols is None

    def test_default_context_angle_mode(self):
        """Test that default_context() honours the angle mode."""
        assert evaluate("sin(90)", default_context("rad")).result == "1"

    def test_solve_expression_returns_solve_result(self):
        """Test that solve_expression() returns SolveResult."""
        result = solve_expression("sqrt(a^2+b^2)", "b", "c")
        assert isinstance(result, SolveResult)
        assert result.ok is True
        assert result.expression == "sqrt(c^2-a^2)"
        assert result.latex is not None
        assert result.verified is True

    def test_solve_expression_error_returns_solve_result(self):
        """Test that solve_expression() errors return SolveResult."""
        result = solve_expression("a*a", "a")
        assert isinstance(result, SolveResult)
        assert result.ok is False
        assert result.error_code == "TARGET_NOT_UNIQUE"

    def test_solve_expression_unverifiable(self):
        """Test that verification is skipped for expressions with units."""
        result = solve_expression("x*2[V]", "x")
        assert result.ok is True
        assert result.verified is None

    def test_solve_equation_returns_solve_result(self):
        """Test that solve_equation() returns SolveResult."""
        result = solve_equation("y = x^2", "x")
        assert isinstance(result, SolveResult)
        assert result.ok is True
        assert result.expression == "sqrt(y)"

    def test_solve_equation_requires_equation(self):
        """Test that solve_equation() rejects plain expressions."""
        result = solve_equation("x^2", "x")
        assert result.ok is False
        assert result.error_code == "NOT_AN_EQUATION"

    def test_render_expression(self):
        """Test that render_expression() returns EvalResult."""
        assert render_expression("frac(a)(b)").result == "frac(a)(b)"
        assert render_expression("frac(a)(b)", "latex").result == r"\frac{\text{a}}{\text{b}}"
        assert render_expression("a", "html").error_code == "INVALID_MODE"

    def test_validate_expression_returns_tuple(self):
        """Test that validate_expression() returns tuple."""
        assert validate_expression("x + 1") == (True, None)
        is_valid, error = validate_expression("(x + 1")
        assert is_valid is False
        assert isinstance(error, str)

    def test_plot_returns_eval_result(self):
        """Test that plot() returns EvalResult."""
        result = plot("x^2; x", x_min=-2, x_max=2, ascii=True)
        assert isinstance(result, EvalResult)
        assert result.ok is True

    def test_to_dict(self):
        """Test that results serialize without empty fields."""
        assert evaluate("2[V]").to_dict() == {"ok": True, "result": "2[V]", "value": 2.0, "unit": "V"}
        data = solve_expression("2^x", "x").to_dict()
        assert data["ok"] is False
        assert data["error_code"] == "UNSUPPORTED_OPERATION"
