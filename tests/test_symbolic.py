"""Tests for the SymPy bridge."""

import pytest
import sympy as sp

from unitcalc_pkg.function_manager import FunctionStore
from unitcalc_pkg.parser import parse, parse_expression
from unitcalc_pkg.solver import solve
from unitcalc_pkg.symbolic import to_sympy, verify_solution
from unitcalc_pkg.types import UnsupportedOperationError

x, y = sp.symbols("x y", positive=True)


class TestToSympy:
    def test_polynomial(self):
        assert to_sympy(parse_expression("x^2+3")) == x**2 + 3

    def test_fraction_and_roots(self):
        assert to_sympy(parse_expression("frac(x)(y)")) == x / y
        assert to_sympy(parse_expression("sqrt(x)")) == sp.sqrt(x)
        assert sp.simplify(to_sympy(parse_expression("root[3](x)")) - x ** sp.Rational(1, 3)) == 0

    def test_constants(self):
        assert to_sympy(parse_expression("2*pi")) == 2 * sp.pi
        assert to_sympy(parse_expression("log(e)")) == 1

    def test_function_call_substitutes_bindings(self):
        functions = FunctionStore()
        functions.define("power", parse("U*I"), {"U": parse("230")})
        assert to_sympy(parse_expression("$power{I=2}"), functions) == 460

    def test_unknown_function_call_is_nan(self):
        assert to_sympy(parse_expression("$missing"), FunctionStore()) is sp.nan

    @pytest.mark.parametrize("source", ["5[V]", "mem", "mem[1]", "sec(x)"])
    def test_no_symbolic_form(self, source):
        with pytest.raises(UnsupportedOperationError):
            to_sympy(parse_expression(source))


class TestVerifySolution:
    @pytest.mark.parametrize(
        "source, target, substitute",
        [
            ("x^2", "x", "y"),
            ("(x^3)/5", "x", "y"),
            ("acos(P/S)", "P", "p"),
            ("frac(b+c)(2)*d", "d", "a"),
            ("sqrt(a^2+b^2)", "b", "c"),
            ("frac(XL)(2*pi*f)", "f", "L"),
        ],
    )
    def test_solver_output_is_verified(self, source, target, substitute):
        root = parse_expression(source)
        assert verify_solution(root, target, substitute, solve(root, target, substitute))

    def test_wrong_inverse_is_rejected(self):
        assert not verify_solution(parse_expression("x^2"), "x", "y", parse_expression("y/2"))
