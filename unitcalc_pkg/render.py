"""Render expression trees as plain text or LaTeX markup.

No grouping parentheses are inserted based on precedence: every node prints
its own symbol around its children, and only Parenthesized nodes produce
brackets. ``a/d*2-c`` is therefore the rendering of ((a/d)*2)-c, and the
same text re-parsed yields the same tree only when the tree came from the
parser in the first place. ``grouped`` adds the brackets needed to read a
tree back from text.
"""

from __future__ import annotations

import math
from enum import Enum

from . import config
from .components import (
    Abs,
    BinaryOp,
    Binding,
    Component,
    Declaration,
    Equation,
    Factorial,
    FunctionCall,
    Fraction,
    Mem,
    Num,
    Operator,
    Parenthesized,
    Root,
    TargetMarker,
    UnaryFunc,
    UnitAnnotation,
    UnitMode,
    Var,
    replace_child,
)


class RenderMode(Enum):
    PLAIN = "plain"
    LATEX = "latex"


def format_literal(value: float) -> str:
    """Up to OUTPUT_PRECISION decimals, trailing zeros dropped."""
    value = float(value)
    if not math.isfinite(value):
        return repr(value)
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    text = f"{value:.{config.OUTPUT_PRECISION}f}".rstrip("0").rstrip(".")
    if text in ("0", "-0"):
        # Too small for fixed notation
        return repr(value)
    return text


def _is_square(index: Component | None) -> bool:
    return index is None or (isinstance(index, Num) and index.value == 2)


_PRECEDENCE = {
    Operator.ADD: 1,
    Operator.SUBTRACT: 1,
    Operator.MULTIPLY: 2,
    Operator.DIVIDE: 2,
    Operator.MODULUS: 2,
    Operator.POWER: 3,
}


def _needs_group(parent: Component, slot: str, child: Component) -> bool:
    if isinstance(child, Num):
        # "-2^2" and "-3!" read back as -(2^2) and -(3!)
        if child.value >= 0:
            return False
        if isinstance(parent, BinaryOp):
            return parent.op is Operator.POWER and slot == "x"
        return isinstance(parent, (Factorial, UnitAnnotation))
    if not isinstance(child, BinaryOp):
        return False
    if isinstance(parent, (Factorial, UnitAnnotation)):
        return True
    if not isinstance(parent, BinaryOp):
        return False
    outer, inner = _PRECEDENCE[parent.op], _PRECEDENCE[child.op]
    if inner != outer:
        return inner < outer
    # ^ groups to the right, everything else to the left
    return slot == "x" if parent.op is Operator.POWER else slot == "y"


def grouped(node: Component) -> Component:
    """Copy of ``node`` with Parenthesized inserted wherever the plain text
    would otherwise parse back into a different tree.

    Used for text that is read back later (saved functions); display output
    renders the tree as it is.
    """
    for slot, child in list(node.children()):
        new_child = grouped(child)
        if _needs_group(node, slot, new_child):
            new_child = Parenthesized(new_child)
        if new_child is not child:
            node = replace_child(node, slot, new_child)
    return node


def render(node: Component, mode: RenderMode | str = RenderMode.PLAIN) -> str:
    """Render ``node``; ``mode`` is a RenderMode or its value ("plain", "latex")."""
    mode = RenderMode(mode) if isinstance(mode, str) else mode
    if mode is RenderMode.LATEX:
        return _latex(node)
    return _plain(node)


def _plain(node: Component) -> str:
    if isinstance(node, Num):
        return format_literal(node.value)
    if isinstance(node, Var):
        return node.name
    if isinstance(node, Mem):
        return "mem" if node.index is None else f"mem[{_plain(node.index)}]"
    if isinstance(node, UnaryFunc):
        return f"{node.kind.value}({_plain(node.x)})"
    if isinstance(node, Factorial):
        return f"{_plain(node.x)}!"
    if isinstance(node, Root):
        if _is_square(node.index):
            return f"sqrt({_plain(node.x)})"
        return f"root[{_plain(node.index)}]({_plain(node.x)})"
    if isinstance(node, Abs):
        return f"|{_plain(node.x)}|"
    if isinstance(node, Fraction):
        return f"frac({_plain(node.x)})({_plain(node.y)})"
    if isinstance(node, BinaryOp):
        return f"{_plain(node.x)}{node.op.value}{_plain(node.y)}"
    if isinstance(node, FunctionCall):
        if not node.bindings:
            return f"${node.name}"
        return f"${node.name}{{{'; '.join(_plain(b) for b in node.bindings)}}}"
    if isinstance(node, Binding):
        return f"{node.name}={_plain(node.x)}"
    if isinstance(node, Parenthesized):
        return f"({_plain(node.x)})"
    if isinstance(node, UnitAnnotation):
        return f"{_plain(node.x)}[{_unit_label(node)}]"
    if isinstance(node, Equation):
        return f"{_plain(node.lhs)} = {_plain(node.rhs)}"
    if isinstance(node, Declaration):
        return f"{node.name} := {_plain(node.x)}"
    if isinstance(node, TargetMarker):
        return f"@{node.name}"
    raise TypeError(f"Cannot render {type(node).__name__}")


def _unit_label(node: UnitAnnotation) -> str:
    if node.mode is UnitMode.NORMALIZE:
        return "?"
    if node.mode is UnitMode.CAST:
        return f"{node.symbol}?"
    return node.symbol


_LATEX_OPERATORS = {
    Operator.ADD: "+",
    Operator.SUBTRACT: "-",
    Operator.MULTIPLY: r"\cdot ",
    Operator.MODULUS: r"\bmod ",
}


def _latex(node: Component) -> str:
    if isinstance(node, Num):
        return format_literal(node.value)
    if isinstance(node, Var):
        return rf"\text{{{node.name}}}"
    if isinstance(node, Mem):
        return r"\text{mem}" if node.index is None else rf"\text{{mem}}_{{{_latex(node.index)}}}"
    if isinstance(node, UnaryFunc):
        return rf"\{node.kind.value}({_latex(node.x)})"
    if isinstance(node, Factorial):
        return f"{_latex(node.x)}!"
    if isinstance(node, Root):
        if _is_square(node.index):
            return rf"\sqrt{{{_latex(node.x)}}}"
        return rf"\sqrt[{_latex(node.index)}]{{{_latex(node.x)}}}"
    if isinstance(node, Abs):
        return rf"\left|{_latex(node.x)}\right|"
    if isinstance(node, Fraction) or (isinstance(node, BinaryOp) and node.op is Operator.DIVIDE):
        return rf"\frac{{{_latex(node.x)}}}{{{_latex(node.y)}}}"
    if isinstance(node, BinaryOp):
        if node.op is Operator.POWER:
            return f"{_latex(node.x)}^{{{_latex(node.y)}}}"
        return f"{_latex(node.x)}{_LATEX_OPERATORS[node.op]}{_latex(node.y)}"
    if isinstance(node, FunctionCall):
        args = "; ".join(_latex(b) for b in node.bindings)
        return rf"\text{{{node.name}}}({args})"
    if isinstance(node, Binding):
        return rf"\text{{{node.name}}}={_latex(node.x)}"
    if isinstance(node, Parenthesized):
        return rf"\left({_latex(node.x)}\right)"
    if isinstance(node, UnitAnnotation):
        return rf"{_latex(node.x)}\,[\text{{{_unit_label(node)}}}]"
    if isinstance(node, Equation):
        return f"{_latex(node.lhs)} &= {_latex(node.rhs)}"
    if isinstance(node, Declaration):
        return rf"\text{{{node.name}}} := {_latex(node.x)}"
    if isinstance(node, TargetMarker):
        return rf"@\text{{{node.name}}}"
    raise TypeError(f"Cannot render {type(node).__name__}")
