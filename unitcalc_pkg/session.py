"""Interactive session state and command handling.

A Session owns the unit registry, the function store and a stack of
contexts. The bottom of the stack is the base context; every expression with
missing variables opens an editing context on top of it, where
``name = value`` lines bind the missing variables until the expression can
be evaluated. ``execute`` handles one input line and returns the lines to
print, so the same code drives the REPL, ``--eval`` and the tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from . import config, storage
from .components import (
    Component,
    Declaration,
    Equation,
    FunctionCall,
    TargetMarker,
    Var,
    free_variables,
)
from .context import AngleMode, Context
from .evaluator import evaluate
from .function_manager import FunctionStore
from .logging_config import get_logger, log_calc_error
from .parser import parse, parse_expression
from .plotting import plot_function
from .quantity import Quantity
from .registry import Registry
from .render import RenderMode, render
from .solver import check_solvable, solve
from .symbolic import verify_solution
from .types import CalcError, UnresolvedReferenceError, ValidationError

logger = get_logger("session")

HELP_TEXT = """\
Enter an expression to evaluate it, e.g. 230[V]*16[A] or frac(1)(2).
Expressions with unknown variables open an editor: bind them with name = value.

Commands:
  list <vars|func|constant|stack|mem|stash|enabled|packs|units>
  set <name> <value>        define a constant      unset <name>
  mode [deg|rad|grad]       show or set the angle mode
  enable|disable <catalog>  toggle a unit catalog
  unit <catalog> <symbol> [display name]
  relation <catalog> <a*b=c>
  save <name> | load <name> | edit <name> | rename <old> <new> | delete <name>
  solve <for> <lhs> [function]
  graph [--ascii] <f>; <g>; ...
  latex [expression]        render in LaTeX markup
  eval | drop | stash | restore
  clear <vars|mem|stash|stack|all>
  help | exit"""


class Session:
    def __init__(
        self,
        data_dir: Path | None = None,
        persist: bool = True,
        registry: Registry | None = None,
        angle_mode: AngleMode | None = None,
    ):
        self.data_dir = data_dir
        self.persist = persist
        self.registry = registry if registry is not None else Registry()
        self.functions = FunctionStore()

        settings = storage.load_config(data_dir) if persist else {}
        constants = storage.load_constants(data_dir) if persist else {}
        if registry is None:
            storage.load_builtin_catalogs(self.registry)
        if persist:
            # Saved catalogs replace built-in ones of the same name
            storage.load_all_catalogs(self.registry, data_dir)
            storage.load_all_functions(self.functions, data_dir)

        if angle_mode is None:
            angle_mode = AngleMode.parse(settings.get("angle_mode", config.ANGLE_MODE))
        enabled = settings.get("enabled")
        self.base = Context(
            registry=self.registry,
            constants=constants,
            functions=self.functions,
            angle_mode=angle_mode,
            enabled=set(enabled) & {c.name for c in self.registry.catalogs()}
            if enabled is not None
            else None,
        )
        self.auto_eval = bool(settings.get("auto_eval", config.AUTO_EVAL))
        self.stack: list[Context] = [self.base]
        self.stash: list[Context] = []
        self.target: str | None = None
        self.running = True

        self._commands: dict[str, Callable[[list[str]], list[str]]] = {
            "help": self._cmd_help,
            "exit": self._cmd_exit,
            "quit": self._cmd_exit,
            "list": self._cmd_list,
            "set": self._cmd_set,
            "unset": self._cmd_unset,
            "mode": self._cmd_mode,
            "enable": self._cmd_enable,
            "disable": self._cmd_disable,
            "unit": self._cmd_unit,
            "relation": self._cmd_relation,
            "save": self._cmd_save,
            "load": self._cmd_load,
            "edit": self._cmd_edit,
            "rename": self._cmd_rename,
            "delete": self._cmd_delete,
            "clear": self._cmd_clear,
            "drop": self._cmd_drop,
            "stash": self._cmd_stash,
            "restore": self._cmd_restore,
            "eval": self._cmd_eval,
            "solve": self._cmd_solve,
            "graph": self._cmd_graph,
            "latex": self._cmd_latex,
        }

    @property
    def current(self) -> Context:
        return self.stack[-1]

    @property
    def editing(self) -> bool:
        return len(self.stack) > 1

    def execute(self, line: str) -> list[str]:
        """Handle one input line and return the lines to show.

        Engine errors are reported as ``Error: ...`` lines and the session
        stays usable; a binding made before the failure is kept.
        """
        line = line.strip()
        if not line:
            return []
        word, _, rest = line.partition(" ")
        handler = self._commands.get(word.lower())
        try:
            if handler is not None and not _looks_like_expression(rest):
                return handler(rest.split())
            return self._statement(parse(line))
        except CalcError as e:
            log_calc_error(logger, e, line)
            return [f"Error: {e}"]

    # Expressions and statements

    def missing_variables(self, node: Component, ctx: Context | None = None) -> list[str]:
        """Free variables of ``node``, and of the bindings it reaches, that no scope supplies."""
        ctx = ctx or self.current
        missing: set[str] = set()
        seen: set[tuple[int, str]] = set()
        pending = [(name, ctx) for name in free_variables(node, self.functions)]
        while pending:
            name, scope = pending.pop()
            if (id(scope), name) in seen:
                continue
            seen.add((id(scope), name))
            if name in scope.constants or name.startswith(config.RANDOM_PREFIX):
                continue
            if not scope.is_bound(name):
                missing.add(name)
                continue
            expr, _, fixed = scope.lookup(name)
            inner = fixed if fixed is not None else scope
            pending.extend((n, inner) for n in free_variables(expr, self.functions))
        return sorted(missing)

    def _statement(self, node: Component) -> list[str]:
        if isinstance(node, TargetMarker):
            self.target = node.name
            return [f"Target set to {node.name}"]
        if isinstance(node, Declaration):
            return self._bind(node.name, node.x)
        if isinstance(node, Equation):
            if not isinstance(node.lhs, Var):
                raise ValidationError(
                    f"Left side of {node} must be a variable name", "INVALID_ASSIGNMENT"
                )
            return self._bind(node.lhs.name, node.rhs)
        if self.editing and self.target is not None:
            return self._bind(self.target, node)
        return self._expression(node)

    def _expression(self, node: Component) -> list[str]:
        missing = self.missing_variables(node)
        if missing:
            self.stack.append(self.current.child(owner=node))
            self.target = None
            return [f"{node}", f"Missing variables: {', '.join(missing)}"]
        return [self._evaluate(node, self.current)]

    def _evaluate(self, node: Component, ctx: Context) -> str:
        result = evaluate(node, ctx)
        ctx.push_memory(result)
        return str(result)

    def _bind(self, name: str, value: Component) -> list[str]:
        if not config.VAR_NAME_RE.match(name) or name in config.RESERVED_NAMES:
            raise ValidationError(f"Invalid variable name {name!r}", "INVALID_VARIABLE_NAME")
        if name in free_variables(value, self.functions):
            raise ValidationError(
                f"Variable {name} cannot refer to itself", "SELF_REFERENCE"
            )
        self.current.bind(name, value)
        lines = [f"{name} = {value}"]
        owner = self.current.owner
        if self.editing and owner is not None and self.auto_eval:
            missing = self.missing_variables(owner)
            if missing:
                lines.append(f"Missing variables: {', '.join(missing)}")
            else:
                lines.append(f"{owner} = {self._evaluate(owner, self.current)}")
        return lines

    # Commands

    def _cmd_help(self, args: list[str]) -> list[str]:
        return HELP_TEXT.splitlines()

    def _cmd_exit(self, args: list[str]) -> list[str]:
        self.running = False
        self.save_state()
        return []

    def _cmd_list(self, args: list[str]) -> list[str]:
        what = args[0].lower() if args else "vars"
        ctx = self.current
        if what == "vars":
            return [f"{k} = {v}" for k, v in sorted(ctx.variables().items())] or ["No variables"]
        if what in ("func", "functions"):
            return [
                f"{f.name}: {f.body}" + (f" ({', '.join(f'{k}={v}' for k, v in f.defaults.items())})" if f.defaults else "")
                for f in self.functions.list_functions()
            ] or ["No functions"]
        if what in ("constant", "constants"):
            return [f"{k} = {v!r}" for k, v in sorted(ctx.constants.items())]
        if what == "stack":
            return [f"{i}: {c.owner}" for i, c in enumerate(self.stack) if c.owner is not None] or ["Stack is empty"]
        if what == "mem":
            return [f"mem[{i}] = {q}" for i, q in enumerate(ctx.memory_values())] or ["Memory is empty"]
        if what == "stash":
            return [f"{i}: {c.owner}" for i, c in enumerate(self.stash)] or ["Stash is empty"]
        if what == "enabled":
            return sorted(ctx.enabled_catalogs) or ["No catalogs enabled"]
        if what == "packs":
            return [
                f"{c.name} ({len(c)} units){' [enabled]' if c.name in ctx.enabled_catalogs else ''}"
                for c in self.registry.catalogs()
            ] or ["No catalogs"]
        if what == "units":
            return [
                f"{symbol} ({unit.name}) in {catalog.name}"
                for catalog in self.registry.catalogs()
                if catalog.name in ctx.enabled_catalogs
                for symbol, unit in sorted(catalog.units.items())
            ] or ["No units"]
        raise ValidationError(f"Unknown list target {what!r}", "INVALID_COMMAND")

    def _cmd_set(self, args: list[str]) -> list[str]:
        if len(args) < 2:
            raise ValidationError("Usage: set <name> <value>", "INVALID_COMMAND")
        name = args[0]
        if not config.VAR_NAME_RE.match(name) or name in config.RESERVED_NAMES:
            raise ValidationError(f"Invalid constant name {name!r}", "INVALID_VARIABLE_NAME")
        if name in config.BUILTIN_CONSTANTS:
            raise ValidationError(f"Constant {name} is built in", "READ_ONLY")
        value = evaluate(parse_expression(" ".join(args[1:])), self.current).base_value
        self.base.constants[name] = value
        self._persist(lambda: storage.save_constants(self.base.constants, self.data_dir))
        return [f"{name} = {Quantity(value)}"]

    def _cmd_unset(self, args: list[str]) -> list[str]:
        if not args:
            raise ValidationError("Usage: unset <name>", "INVALID_COMMAND")
        name = args[0]
        if name in config.BUILTIN_CONSTANTS:
            raise ValidationError(f"Constant {name} is built in", "READ_ONLY")
        if name not in self.base.constants:
            raise UnresolvedReferenceError(f"Constant {name} not found")
        del self.base.constants[name]
        self._persist(lambda: storage.save_constants(self.base.constants, self.data_dir))
        return [f"Removed constant {name}"]

    def _cmd_mode(self, args: list[str]) -> list[str]:
        if args:
            self.base.angle_mode = AngleMode.parse(args[0])
            self.save_state()
        return [f"Angle mode: {self.base.angle_mode.value}"]

    def _cmd_enable(self, args: list[str]) -> list[str]:
        for name in args:
            self.current.enable_catalog(name)
        self.save_state()
        return [f"Enabled: {', '.join(sorted(self.current.enabled_catalogs))}"]

    def _cmd_disable(self, args: list[str]) -> list[str]:
        for name in args:
            self.current.disable_catalog(name)
        self.save_state()
        return [f"Enabled: {', '.join(sorted(self.current.enabled_catalogs)) or 'none'}"]

    def _cmd_unit(self, args: list[str]) -> list[str]:
        if len(args) < 2:
            raise ValidationError("Usage: unit <catalog> <symbol> [display name]", "INVALID_COMMAND")
        catalog, symbol = args[0], args[1]
        unit = self.registry.define_unit(catalog, symbol, " ".join(args[2:]) or None)
        self.base.enabled_catalogs.add(catalog)
        self.current.enabled_catalogs.add(catalog)
        self._persist(lambda: storage.save_catalog(self.registry.catalog(catalog), self.data_dir))
        return [f"Defined unit {unit.symbol} ({unit.name}) in {catalog}"]

    def _cmd_relation(self, args: list[str]) -> list[str]:
        if len(args) < 2:
            raise ValidationError("Usage: relation <catalog> <a*b=c>", "INVALID_COMMAND")
        catalog = args[0]
        self.registry.define_relation(catalog, "".join(args[1:]))
        self._persist(lambda: storage.save_catalog(self.registry.catalog(catalog), self.data_dir))
        return [f"Declared {''.join(args[1:])} in {catalog}"]

    def _require_editing(self) -> Context:
        if not self.editing or self.current.owner is None:
            raise ValidationError("No expression is being edited", "NOT_EDITING")
        return self.current

    def _cmd_save(self, args: list[str]) -> list[str]:
        if not args:
            raise ValidationError("Usage: save <name>", "INVALID_COMMAND")
        ctx = self._require_editing()
        definition = self.functions.define(args[0], ctx.owner, ctx.own_variables())
        self._persist(lambda: storage.save_function(definition, self.data_dir))
        return [f"Saved function {definition.name}"]

    def _open(self, node: Component, defaults: dict[str, Component] | None = None) -> Context:
        ctx = self.base.child(owner=node)
        for key, value in (defaults or {}).items():
            ctx.bind(key, value)
        self.stack.append(ctx)
        self.target = None
        return ctx

    def _cmd_load(self, args: list[str]) -> list[str]:
        if not args:
            raise ValidationError("Usage: load <name>", "INVALID_COMMAND")
        if self.persist:
            definition = storage.load_function(args[0], self.functions, self.data_dir)
        else:
            definition = self.functions.get(args[0])
        self._open(definition.body, definition.defaults)
        return [f"Loaded {definition.name}: {definition.body}"] + self._status()

    def _cmd_edit(self, args: list[str]) -> list[str]:
        if not args:
            ctx = self._require_editing()
            return [f"Editing {ctx.owner}"] + self._status()
        definition = self.functions.get(args[0])
        self._open(definition.body, definition.defaults)
        return [f"Editing {definition.name}: {definition.body}"] + self._status()

    def _status(self) -> list[str]:
        missing = self.missing_variables(self.current.owner)
        if missing:
            return [f"Missing variables: {', '.join(missing)}"]
        if self.auto_eval:
            return [f"{self.current.owner} = {self._evaluate(self.current.owner, self.current)}"]
        return []

    def _cmd_rename(self, args: list[str]) -> list[str]:
        if len(args) != 2:
            raise ValidationError("Usage: rename <old> <new>", "INVALID_COMMAND")
        definition = self.functions.rename(args[0], args[1])
        self._persist(lambda: storage.rename_function(args[0], args[1], self.data_dir))
        return [f"Renamed {args[0]} to {definition.name}"]

    def _cmd_delete(self, args: list[str]) -> list[str]:
        if not args:
            raise ValidationError("Usage: delete <name>", "INVALID_COMMAND")
        self.functions.remove(args[0])
        self._persist(lambda: storage.delete_function(args[0], self.data_dir))
        return [f"Deleted function {args[0]}"]

    def _cmd_clear(self, args: list[str]) -> list[str]:
        what = args[0].lower() if args else "all"
        if what in ("vars", "all"):
            self.current.clear_variables()
        if what in ("mem", "all"):
            self.current.clear_memory()
        if what in ("stash", "all"):
            self.stash.clear()
        if what in ("stack", "all"):
            del self.stack[1:]
            self.target = None
        if what not in ("vars", "mem", "stash", "stack", "all"):
            raise ValidationError(f"Unknown clear target {what!r}", "INVALID_COMMAND")
        return [f"Cleared {what}"]

    def _cmd_drop(self, args: list[str]) -> list[str]:
        ctx = self._require_editing()
        self.stack.pop()
        self.target = None
        return [f"Dropped {ctx.owner}"]

    def _cmd_stash(self, args: list[str]) -> list[str]:
        ctx = self._require_editing()
        self.stash.append(self.stack.pop())
        self.target = None
        return [f"Stashed {ctx.owner}"]

    def _cmd_restore(self, args: list[str]) -> list[str]:
        if not self.stash:
            raise ValidationError("Stash is empty", "EMPTY_STASH")
        ctx = self.stash.pop()
        self.stack.append(ctx)
        self.target = None
        return [f"Restored {ctx.owner}"] + self._status()

    def _cmd_eval(self, args: list[str]) -> list[str]:
        ctx = self._require_editing()
        return [f"{ctx.owner} = {self._evaluate(ctx.owner, ctx)}"]

    def _cmd_solve(self, args: list[str]) -> list[str]:
        if len(args) not in (2, 3):
            raise ValidationError("Usage: solve <for> <lhs> [function]", "INVALID_COMMAND")
        target, substitute = args[0], args[1]
        if len(args) == 3:
            expression = self.functions.get(args[2]).body
        else:
            expression = self._require_editing().owner
        check_solvable(expression, target)
        solved = solve(expression, target, substitute)
        lines = [f"{target} = {solved}"]
        if config.VERIFY_SOLUTIONS:
            try:
                verified = verify_solution(expression, target, substitute, solved, self.functions)
                lines.append("Verified" if verified else "Warning: solution could not be verified")
            except CalcError as e:
                logger.debug(f"Skipping verification: {e}")
        self._open(solved)
        return lines + self._status()

    def _cmd_graph(self, args: list[str]) -> list[str]:
        ascii_mode = "--ascii" in args
        text = " ".join(a for a in args if a != "--ascii")
        if not text and self.editing:
            nodes = [self.current.owner]
        else:
            nodes = [self._graph_target(part.strip()) for part in text.split(";") if part.strip()]
        result = plot_function(nodes, self.current, ascii=ascii_mode, open_viewer=not ascii_mode)
        if not result.ok:
            return [f"Error: {result.error}"]
        return result.result.splitlines()

    def _graph_target(self, text: str) -> Component:
        if text in self.functions:
            return FunctionCall(text)
        return parse_expression(text)

    def _cmd_latex(self, args: list[str]) -> list[str]:
        if args:
            node = parse(" ".join(args))
        else:
            node = self._require_editing().owner
        return [render(node, RenderMode.LATEX)]

    # Persistence

    def _persist(self, action: Callable[[], object]) -> None:
        if not self.persist:
            return
        try:
            action()
        except OSError as e:
            logger.warning(f"Failed to persist change: {e}")

    def save_state(self) -> None:
        """Write angle mode, auto-eval and enabled catalogs to the config file."""
        self._persist(
            lambda: storage.save_config(
                {
                    "angle_mode": self.base.angle_mode.value,
                    "auto_eval": self.auto_eval,
                    "enabled": sorted(self.base.enabled_catalogs),
                },
                self.data_dir,
            )
        )


def _looks_like_expression(rest: str) -> bool:
    """True when a leading command word is really a variable in an expression."""
    stripped = rest.lstrip()
    if stripped.startswith("--"):
        return False
    return bool(stripped) and stripped[0] in "=+-*/%^!:[("
