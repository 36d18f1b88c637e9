"""Named function definitions used by FunctionCall nodes.

A function is an expression body plus default bindings for some of its free
variables, for example the body ``U*I`` with default ``U = 230``. Calls
(``$power{I = 16}``) evaluate the body in a child context.

Text form (one function per ``.math`` file):

    U*I
    U = 230
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .components import Component, free_variables
from .config import ASSIGNMENT_LINE_RE, BUILTIN_CONSTANTS, RESERVED_NAMES, VAR_NAME_RE
from .logging_config import get_logger
from .parser import parse_expression
from .render import grouped, render
from .types import MalformedDeclarationError, UnresolvedReferenceError, ValidationError

logger = get_logger("functions")


@dataclass
class FunctionDefinition:
    name: str
    body: Component
    defaults: dict[str, Component] = field(default_factory=dict)

    def to_text(self) -> str:
        lines = [render(grouped(self.body))]
        lines.extend(f"{key} = {render(grouped(value))}" for key, value in self.defaults.items())
        return "\n".join(lines) + "\n"

    def parameters(self, functions=None) -> list[str]:
        """Free variables of the body, sorted, defaults included."""
        return sorted(free_variables(self.body, functions) | set(self.defaults))


def validate_name(name: str) -> None:
    """Reject names that are not identifiers or that clash with built-ins.

    Raises:
        ValidationError: With code INVALID_FUNCTION_NAME
    """
    if not VAR_NAME_RE.match(name or ""):
        raise ValidationError(
            f"Invalid function name {name!r}: use letters, digits and underscores",
            "INVALID_FUNCTION_NAME",
        )
    if name in RESERVED_NAMES or name in BUILTIN_CONSTANTS:
        raise ValidationError(
            f"Function name {name!r} is reserved", "INVALID_FUNCTION_NAME"
        )


def parse_function_text(name: str, text: str) -> FunctionDefinition:
    """Parse the ``.math`` text form.

    Raises:
        MalformedDeclarationError: If the body is missing or a default line
            is not ``name = value``
    """
    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line and not line.startswith("#")]
    if not lines:
        raise MalformedDeclarationError(f"Function {name} has no body")
    body = parse_expression(lines[0])
    defaults: dict[str, Component] = {}
    for line in lines[1:]:
        match = ASSIGNMENT_LINE_RE.match(line)
        if match is None:
            raise MalformedDeclarationError(f"Invalid default binding in {name}: {line}")
        defaults[match.group(1)] = parse_expression(match.group(2))
    return FunctionDefinition(name, body, defaults)


class FunctionStore:
    """In-memory function table; persistence lives in storage.py."""

    def __init__(self) -> None:
        self._functions: dict[str, FunctionDefinition] = {}

    def define(
        self, name: str, body: Component, defaults: dict[str, Component] | None = None
    ) -> FunctionDefinition:
        validate_name(name)
        definition = FunctionDefinition(name, body, dict(defaults or {}))
        self._functions[name] = definition
        logger.debug(f"Defined function {name} = {body}")
        return definition

    def define_from_text(self, name: str, text: str) -> FunctionDefinition:
        validate_name(name)
        definition = parse_function_text(name, text)
        self._functions[name] = definition
        return definition

    def lookup_function(self, name: str) -> FunctionDefinition | None:
        return self._functions.get(name)

    def get(self, name: str) -> FunctionDefinition:
        definition = self._functions.get(name)
        if definition is None:
            raise UnresolvedReferenceError(f"Function {name} not found")
        return definition

    def remove(self, name: str) -> FunctionDefinition:
        definition = self.get(name)
        del self._functions[name]
        return definition

    def rename(self, old: str, new: str) -> FunctionDefinition:
        validate_name(new)
        if new in self._functions:
            raise ValidationError(f"Function {new} already exists", "DUPLICATE_FUNCTION")
        definition = self.remove(old)
        definition.name = new
        self._functions[new] = definition
        return definition

    def list_functions(self) -> list[FunctionDefinition]:
        return [self._functions[name] for name in sorted(self._functions)]

    def clear(self) -> None:
        self._functions.clear()

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)
