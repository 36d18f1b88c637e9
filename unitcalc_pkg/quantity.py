"""Quantity: a value paired with a unit and a magnitude prefix."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from . import prefixes
from .components import Operator
from .prefixes import NONE, MagnitudePrefix
from .units import DIMENSIONLESS, Unit

_NUMPY_OPERATIONS = {
    Operator.ADD: np.add,
    Operator.SUBTRACT: np.subtract,
    Operator.MULTIPLY: np.multiply,
    Operator.DIVIDE: np.divide,
    Operator.MODULUS: np.fmod,
    Operator.POWER: np.power,
}


def ieee(op: Operator, a: float, b: float) -> float:
    """Apply ``op`` with IEEE semantics: inf and nan propagate, nothing raises."""
    with np.errstate(all="ignore"):
        return float(_NUMPY_OPERATIONS[op](np.float64(a), np.float64(b)))


def format_value(value: float) -> str:
    """Integral values print without a fractional part, others as Python floats."""
    if math.isfinite(value) and value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


@dataclass(frozen=True)
class Quantity:
    value: float
    unit: Unit = DIMENSIONLESS
    prefix: MagnitudePrefix = NONE

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", float(self.value))

    @property
    def base_value(self) -> float:
        """The value rebased to prefix-none."""
        return prefixes.rebase(self.value, self.prefix, NONE)

    @property
    def is_dimensionless(self) -> bool:
        return self.unit.is_dimensionless

    def normalize(self) -> Quantity:
        """Re-express with the best-fit prefix; dimensionless values use none.

        A quantity already in its bracket is returned as is, so normalizing
        twice never rescales again.
        """
        base = self.base_value
        if self.is_dimensionless:
            return Quantity(base, self.unit, NONE)
        if self.prefix is not prefixes.YOTTA and prefixes.in_bracket(self.value):
            return self
        prefix = prefixes.best_fit(base)
        return Quantity(prefixes.rebase(base, NONE, prefix), self.unit, prefix)

    def with_value(self, value: float) -> Quantity:
        """Same unit, value given at prefix-none, renormalized."""
        return Quantity(value, self.unit).normalize()

    @property
    def unit_label(self) -> str:
        return f"{self.prefix.id}{self.unit.symbol}"

    def __float__(self) -> float:
        return self.base_value

    def __str__(self) -> str:
        label = self.unit_label
        text = format_value(self.value)
        return f"{text}[{label}]" if label else text


def linear(a: Quantity, b: Quantity, op: Operator) -> Quantity:
    """Addition and subtraction on rebased values.

    The unit survives only when both operands carry the identical unit.
    """
    value = ieee(op, a.base_value, b.base_value)
    unit = a.unit if a.unit == b.unit else DIMENSIONLESS
    return Quantity(value, unit).normalize()


def modulus(a: Quantity, b: Quantity) -> Quantity:
    return Quantity(ieee(Operator.MODULUS, a.base_value, b.base_value), a.unit).normalize()


def power(base: Quantity, exponent: Quantity) -> Quantity:
    """``base ^ exponent``; the result keeps the base's unit."""
    value = ieee(Operator.POWER, base.base_value, exponent.base_value)
    return Quantity(value, base.unit).normalize()
