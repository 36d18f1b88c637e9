"""Input parsing and preprocessing module.

This module handles:
- Input sanitization and validation (length, balance, unicode operators)
- Tokenizing source text
- Recursive-descent parsing into Component trees
- Parsing unit relation files into relation equations
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .components import (
    Abs,
    Binding,
    Component,
    Declaration,
    Equation,
    Factorial,
    FuncKind,
    FunctionCall,
    Fraction,
    BinaryOp,
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
)
from .config import (
    FUNCTION_KEYWORDS,
    MAX_EXPRESSION_DEPTH,
    MAX_INPUT_LENGTH,
    RELATION_LINE_RE,
    UNIT_DESCRIPTOR_RE,
)
from .types import MalformedDeclarationError, ParseError, ValidationError

SUPERSCRIPTS = {
    "⁰": "0",
    "¹": "1",
    "²": "2",
    "³": "3",
    "⁴": "4",
    "⁵": "5",
    "⁶": "6",
    "⁷": "7",
    "⁸": "8",
    "⁹": "9",
    "⁻": "-",
}

UNICODE_OPERATORS = {
    "×": "*",
    "·": "*",
    "⋅": "*",
    "÷": "/",
    "−": "-",
    "–": "-",
}

SUPERSCRIPT_RUN_REGEX = re.compile("[" + "".join(SUPERSCRIPTS) + "]+")
SQRT_CALL_REGEX = re.compile(r"√\s*\(")
SQRT_ATOM_REGEX = re.compile(r"√\s*([A-Za-z0-9_.]+)")

TOKEN_REGEX = re.compile(
    r"""
    (?P<NUM>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<IDENT>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<DECL>:=)
  | (?P<OP>[-+*/%^!=])
  | (?P<PUNCT>[()\[\]{}|$;,@])
  | (?P<SPACE>\s+)
    """,
    re.VERBOSE,
)

BINARY_OPERATORS = {
    "+": Operator.ADD,
    "-": Operator.SUBTRACT,
    "*": Operator.MULTIPLY,
    "/": Operator.DIVIDE,
    "%": Operator.MODULUS,
}

# Identifiers followed by an index bracket rather than a unit bracket
INDEXED_KEYWORDS = {"root", "mem"}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


def is_balanced(input_str: str) -> tuple[bool, int | None]:
    """Check if parentheses/brackets are balanced. Returns (is_balanced, error_position)."""
    pairs = {"(": ")", "[": "]", "{": "}"}
    stack: list[tuple[str, int]] = []  # (char, position)
    for i, char in enumerate(input_str):
        if char in pairs:
            stack.append((char, i))
        elif char in pairs.values():
            if not stack:
                return False, i
            opening, pos = stack.pop()
            if pairs[opening] != char:
                return False, i
    if stack:
        return False, stack[0][1]
    return True, None


def preprocess(input_str: str) -> str:
    """Normalize and validate raw input before tokenizing.

    Applies transformations:
    - Strips surrounding whitespace and a leading ">>>" prompt
    - Standardizes unicode operators (×, ÷, −) to ASCII
    - Converts superscript exponents (x² -> x^2)
    - Converts the unicode square root (√x, √(x)) to sqrt(...)

    Raises:
        ValidationError: If input is empty, too long, or has unbalanced
                         parentheses/brackets
    """
    text = input_str.strip() if input_str else ""
    if text.startswith(">>>"):
        text = text[3:].strip()
    if not text:
        raise ValidationError("Empty input", "EMPTY_INPUT")
    if len(text) > MAX_INPUT_LENGTH:
        raise ValidationError(
            f"Input too long (max {MAX_INPUT_LENGTH} characters)", "TOO_LONG"
        )

    for symbol, replacement in UNICODE_OPERATORS.items():
        text = text.replace(symbol, replacement)
    text = SUPERSCRIPT_RUN_REGEX.sub(
        lambda m: "^" + "".join(SUPERSCRIPTS[c] for c in m.group(0)), text
    )
    text = SQRT_CALL_REGEX.sub("sqrt(", text)
    text = SQRT_ATOM_REGEX.sub(r"sqrt(\1)", text)

    balanced, position = is_balanced(text)
    if not balanced:
        raise ValidationError(
            f"Unbalanced parentheses or brackets at position {position}", "UNBALANCED"
        )
    return text


def tokenize(text: str) -> list[Token]:
    """Split preprocessed text into tokens.

    A ``[`` directly after ``root`` or ``mem`` opens an index; anywhere else
    the bracket content is taken verbatim as a single UNIT token.
    """
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        if text[pos] == "[" and not (
            tokens and tokens[-1].kind == "IDENT" and tokens[-1].text in INDEXED_KEYWORDS
        ):
            end = text.find("]", pos)
            if end == -1:
                raise ParseError("Unterminated unit bracket", "UNBALANCED", pos)
            tokens.append(Token("UNIT", text[pos + 1 : end], pos))
            pos = end + 1
            continue
        match = TOKEN_REGEX.match(text, pos)
        if match is None:
            raise ParseError(
                f"Unexpected character {text[pos]!r} at position {pos}", "INVALID_CHARACTER", pos
            )
        kind = match.lastgroup
        if kind != "SPACE":
            tokens.append(Token(kind, match.group(0), pos))
        pos = match.end()
    tokens.append(Token("END", "", len(text)))
    return tokens


class _Parser:
    """Recursive-descent parser over a token list.

    Precedence, loosest first: ``+ -``, ``* / %``, unary minus, ``^``
    (right-associative), postfix ``!`` and unit brackets.
    """

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.index = 0
        self.depth = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def peek(self, offset: int = 1) -> Token:
        return self.tokens[min(self.index + offset, len(self.tokens) - 1)]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind != "END":
            self.index += 1
        return token

    def check(self, text: str) -> bool:
        return self.current.kind in ("OP", "PUNCT", "DECL") and self.current.text == text

    def accept(self, text: str) -> bool:
        if self.check(text):
            self.advance()
            return True
        return False

    def expect(self, text: str) -> Token:
        if not self.check(text):
            raise self.error(f"Expected {text!r}")
        return self.advance()

    def expect_ident(self) -> str:
        if self.current.kind != "IDENT":
            raise self.error("Expected a name")
        return self.advance().text

    def error(self, message: str) -> ParseError:
        token = self.current
        found = "end of input" if token.kind == "END" else repr(token.text)
        return ParseError(f"{message} at position {token.pos}, found {found}", position=token.pos)

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_EXPRESSION_DEPTH:
            raise ValidationError(
                f"Expression too deeply nested (max depth {MAX_EXPRESSION_DEPTH})", "TOO_DEEP"
            )

    def _leave(self) -> None:
        self.depth -= 1

    # statement := '@' IDENT | IDENT ':=' expr | expr ('=' expr)?
    def statement(self) -> Component:
        if self.accept("@"):
            node: Component = TargetMarker(self.expect_ident())
        elif self.current.kind == "IDENT" and self.peek().kind == "DECL":
            name = self.advance().text
            self.advance()
            node = Declaration(name, self.expression())
        else:
            node = self.expression()
            if self.accept("="):
                node = Equation(node, self.expression())
                if self.check("="):
                    raise ParseError(
                        "Invalid equation format: more than one '='", "INVALID_EQUATION",
                        self.current.pos,
                    )
        if self.current.kind != "END":
            raise self.error("Unexpected token")
        return node

    def expression(self) -> Component:
        self._enter()
        try:
            node = self.term()
            while self.current.kind == "OP" and self.current.text in ("+", "-"):
                op = BINARY_OPERATORS[self.advance().text]
                node = BinaryOp(op, node, self.term())
            return node
        finally:
            self._leave()

    def term(self) -> Component:
        node = self.unary()
        while self.current.kind == "OP" and self.current.text in ("*", "/", "%"):
            op = BINARY_OPERATORS[self.advance().text]
            node = BinaryOp(op, node, self.unary())
        return node

    def unary(self) -> Component:
        self._enter()
        try:
            if self.accept("-"):
                operand = self.unary()
                if isinstance(operand, Num):
                    return Num(-operand.value)
                return BinaryOp(Operator.MULTIPLY, Num(-1.0), operand)
            if self.accept("+"):
                return self.unary()
            return self.power()
        finally:
            self._leave()

    def power(self) -> Component:
        base = self.postfix()
        if self.accept("^"):
            return BinaryOp(Operator.POWER, base, self.unary())
        return base

    def postfix(self) -> Component:
        node = self.primary()
        while True:
            if self.accept("!"):
                node = Factorial(node)
            elif self.current.kind == "UNIT":
                node = self._unit_annotation(self.advance(), node)
            else:
                return node

    def _unit_annotation(self, token: Token, node: Component) -> Component:
        match = UNIT_DESCRIPTOR_RE.match(token.text)
        if match is None:
            raise ParseError(f"Invalid unit descriptor [{token.text}]", "INVALID_UNIT", token.pos)
        symbol, question = match.group(1), match.group(2)
        if not symbol:
            if not question:
                raise ParseError("Empty unit descriptor []", "INVALID_UNIT", token.pos)
            return UnitAnnotation(UnitMode.NORMALIZE, None, node)
        mode = UnitMode.CAST if question else UnitMode.APPLY
        return UnitAnnotation(mode, symbol, node)

    def primary(self) -> Component:
        token = self.current
        if token.kind == "NUM":
            self.advance()
            return Num(float(token.text))
        if token.kind == "IDENT":
            return self._identifier()
        if self.accept("("):
            inner = self.expression()
            self.expect(")")
            return Parenthesized(inner)
        if self.accept("|"):
            inner = self.expression()
            self.expect("|")
            return Abs(inner)
        if self.accept("$"):
            return self._function_call()
        raise self.error("Unexpected token")

    def _parenthesized_argument(self) -> Component:
        self.expect("(")
        inner = self.expression()
        self.expect(")")
        return inner

    def _identifier(self) -> Component:
        name = self.advance().text
        if name == "frac" and self.check("("):
            numerator = self._parenthesized_argument()
            return Fraction(numerator, self._parenthesized_argument())
        if name == "sqrt" and self.check("("):
            return Root(self._parenthesized_argument())
        if name == "root" and self.check("["):
            self.advance()
            index = self.expression()
            self.expect("]")
            return Root(self._parenthesized_argument(), index)
        if name == "mem":
            if self.accept("["):
                index = self.expression()
                self.expect("]")
                return Mem(index)
            return Mem()
        if name in FUNCTION_KEYWORDS and self.check("("):
            kind = FuncKind(FUNCTION_KEYWORDS[name])
            return UnaryFunc(kind, self._parenthesized_argument())
        return Var(name)

    # $name{a = 1; b = 2}
    def _function_call(self) -> Component:
        name = self.expect_ident()
        bindings: list[Binding] = []
        if self.accept("{"):
            while not self.check("}"):
                key = self.expect_ident()
                self.expect("=")
                bindings.append(Binding(key, self.expression()))
                if not (self.accept(";") or self.accept(",")):
                    break
            self.expect("}")
        return FunctionCall(name, tuple(bindings))


def parse(source: str) -> Component:
    """Parse a statement: an expression, equation, declaration or target marker.

    Raises:
        ValidationError: On empty, overlong, unbalanced or too deeply nested input
        ParseError: On syntax errors
    """
    text = preprocess(source)
    return _Parser(tokenize(text)).statement()


def parse_expression(source: str) -> Component:
    """Parse source text that must be a plain expression."""
    node = parse(source)
    if isinstance(node, (Equation, Declaration, TargetMarker)):
        raise ParseError("Expected an expression, not a statement", "NOT_AN_EXPRESSION")
    return node


def _relation_operand(text: str) -> Component:
    try:
        return Num(float(text))
    except ValueError:
        return Var(text)


def parse_relation(line: str) -> Equation:
    """Parse one relation declaration such as ``V*A=W`` or ``h*3600=s``."""
    match = RELATION_LINE_RE.match(line)
    if match is None:
        raise MalformedDeclarationError(f"Invalid descriptor: {line.strip()}")
    left, op, right, result = match.groups()
    operator = Operator.MULTIPLY if op == "*" else Operator.DIVIDE
    if isinstance(_relation_operand(left), Num) or isinstance(_relation_operand(result), Num):
        raise MalformedDeclarationError(
            f"Invalid descriptor: {line.strip()} (only the second operand may be a number)"
        )
    return Equation(
        BinaryOp(operator, Var(left), _relation_operand(right)), Var(result)
    )


def parse_unit_file(text: str) -> tuple[str, list[Equation]]:
    """Parse a unit file into its display name and relation equations.

    The first non-blank line is the display name; every following non-blank,
    non-comment line is a relation. All lines are parsed before anything is
    returned, so a malformed line rejects the whole file.
    """
    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line and not line.startswith("#")]
    if not lines:
        raise MalformedDeclarationError("Unit file is empty")
    header, *body = lines
    return header, [parse_relation(line) for line in body]
