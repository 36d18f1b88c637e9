"""Decimal magnitude prefixes (yocto to yotta) and best-fit normalization.

Centi, deci, deca and hecto are deliberately absent: normalization only
moves in steps of a thousand.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field


@dataclass(frozen=True)
class MagnitudePrefix:
    """A power-of-ten scale factor identified by its SI symbol."""

    id: str
    exponent: int
    factor: float = field(init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "factor", 10.0**self.exponent)

    def __str__(self) -> str:
        return self.id


YOCTO = MagnitudePrefix("y", -24)
ZEPTO = MagnitudePrefix("z", -21)
ATTO = MagnitudePrefix("a", -18)
FEMTO = MagnitudePrefix("f", -15)
PICO = MagnitudePrefix("p", -12)
NANO = MagnitudePrefix("n", -9)
MICRO = MagnitudePrefix("µ", -6)
MILLI = MagnitudePrefix("m", -3)
NONE = MagnitudePrefix("", 0)
KILO = MagnitudePrefix("k", 3)
MEGA = MagnitudePrefix("M", 6)
GIGA = MagnitudePrefix("G", 9)
TERA = MagnitudePrefix("T", 12)
PETA = MagnitudePrefix("P", 15)
EXA = MagnitudePrefix("E", 18)
ZETTA = MagnitudePrefix("Z", 21)
YOTTA = MagnitudePrefix("Y", 24)

# Ascending order; best_fit relies on it
PREFIXES: tuple[MagnitudePrefix, ...] = (
    YOCTO, ZEPTO, ATTO, FEMTO, PICO, NANO, MICRO, MILLI,
    NONE,
    KILO, MEGA, GIGA, TERA, PETA, EXA, ZETTA, YOTTA,
)

# Alternative spellings accepted on input; output always uses the canonical id
ALIASES = {
    "μ": MICRO,  # Greek small letter mu
    "u": MICRO,
}


def by_id(prefix_id: str) -> MagnitudePrefix | None:
    """Return the prefix with the given id (or alias), None when unknown."""
    for prefix in PREFIXES:
        if prefix.id == prefix_id:
            return prefix
    return ALIASES.get(prefix_id)


def rebase(value: float, source: MagnitudePrefix, target: MagnitudePrefix = NONE) -> float:
    """Express a value given in ``source`` units of magnitude in ``target`` ones."""
    shift = source.exponent - target.exponent
    if shift == 0:
        return value
    # Dividing by an exact power of ten rounds better than multiplying by 1e-n
    if shift > 0:
        return value * 10.0**shift
    return value / 10.0 ** (-shift)


def in_bracket(scaled: float) -> bool:
    """True when a value expressed at some prefix lies in [1, 1000)."""
    return 1 <= abs(scaled) < 1000


def best_fit(value: float) -> MagnitudePrefix:
    """Largest prefix whose factor is <= |value| while its successor's is > |value|.

    The bracket is tested on the rebased value, so the chosen prefix always
    displays a magnitude in [1, 1000). Zero, non-finite values and magnitudes
    outside [1e-24, 1e24) map to NONE.
    """
    if not math.isfinite(value) or value == 0:
        return NONE
    # Yotta has no successor to bound it
    for prefix in PREFIXES[:-1]:
        if in_bracket(rebase(value, NONE, prefix)):
            return prefix
    return NONE


def split_symbol(symbol: str) -> list[tuple[MagnitudePrefix, str]]:
    """All ways of reading ``symbol`` as a prefix followed by a remainder."""
    candidates = []
    for prefix_id, prefix in [(p.id, p) for p in PREFIXES if p.id] + list(ALIASES.items()):
        if symbol.startswith(prefix_id):
            candidates.append((prefix, symbol[len(prefix_id):]))
    return candidates
