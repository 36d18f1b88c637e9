"""Type definitions, result dataclasses and the error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class EvalResult:
    """Result of evaluating an expression."""

    ok: bool
    result: str | None = None
    value: float | None = None
    unit: str | None = None
    free_symbols: list[str] | None = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok}
        if self.result is not None:
            result_dict["result"] = self.result
        if self.value is not None:
            result_dict["value"] = self.value
        if self.unit is not None:
            result_dict["unit"] = self.unit
        if self.free_symbols is not None:
            result_dict["free_symbols"] = self.free_symbols
        if self.error is not None:
            result_dict["error"] = self.error
        if self.error_code is not None:
            result_dict["error_code"] = self.error_code
        return result_dict

    def __repr__(self) -> str:
        if not self.ok:
            return f"EvalResult(ok=False, error={self.error!r}, error_code={self.error_code!r})"
        parts = [f"ok={self.ok}"]
        if self.result is not None:
            parts.append(f"result={self.result!r}")
        if self.unit is not None:
            parts.append(f"unit={self.unit!r}")
        if self.free_symbols is not None:
            parts.append(f"free_symbols={self.free_symbols!r}")
        return f"EvalResult({', '.join(parts)})"


@dataclass
class SolveResult:
    """Result of isolating a variable."""

    ok: bool
    target: str | None = None
    expression: str | None = None
    latex: str | None = None
    verified: bool | None = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok}
        if self.target is not None:
            result_dict["target"] = self.target
        if self.expression is not None:
            result_dict["expression"] = self.expression
        if self.latex is not None:
            result_dict["latex"] = self.latex
        if self.verified is not None:
            result_dict["verified"] = self.verified
        if self.error is not None:
            result_dict["error"] = self.error
        if self.error_code is not None:
            result_dict["error_code"] = self.error_code
        return result_dict

    def __repr__(self) -> str:
        if not self.ok:
            return f"SolveResult(ok=False, error={self.error!r}, error_code={self.error_code!r})"
        parts = [f"ok={self.ok}", f"target={self.target!r}", f"expression={self.expression!r}"]
        if self.verified is not None:
            parts.append(f"verified={self.verified!r}")
        return f"SolveResult({', '.join(parts)})"


class CalcError(Exception):
    """Base class of every error raised by the engine."""

    default_code = "CALC_ERROR"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ValidationError(CalcError):
    """Raised when input validation fails."""

    default_code = "VALIDATION_ERROR"


class ParseError(CalcError):
    """Raised when parsing fails."""

    default_code = "PARSE_ERROR"

    def __init__(self, message: str, code: str | None = None, position: int | None = None):
        self.position = position
        super().__init__(message, code)


class UnresolvedReferenceError(CalcError):
    """A variable, memory slot, unit or catalog cannot be found."""

    default_code = "UNRESOLVED_REFERENCE"


class CyclicReferenceError(UnresolvedReferenceError):
    """A variable or function refers back to itself while being resolved."""

    default_code = "CYCLIC_REFERENCE"


class UnsupportedOperationError(CalcError):
    """A node, operator or inversion that is not implemented."""

    default_code = "UNSUPPORTED_OPERATION"


class DimensionalMismatchError(CalcError):
    """No relation is declared between two units for an operator."""

    default_code = "DIMENSIONAL_MISMATCH"


class MalformedDeclarationError(CalcError):
    """A unit relation, function file or equation has the wrong shape."""

    default_code = "MALFORMED_DECLARATION"


class PreconditionViolationError(CalcError):
    """The solve target occurs zero times or more than once."""

    default_code = "PRECONDITION_VIOLATION"
