"""Unitcalc package: typed expressions with physical units, solver and REPL."""

__all__ = [
    "config",
    "prefixes",
    "units",
    "registry",
    "quantity",
    "components",
    "parser",
    "context",
    "evaluator",
    "function_manager",
    "solver",
    "render",
    "symbolic",
    "storage",
    "plotting",
    "session",
    "cli",
    "types",
    "api",
    "logging_config",
]

# Public API exports

__api_exports__ = [
    "evaluate",
    "solve_expression",
    "solve_equation",
    "render_expression",
    "validate_expression",
    "plot",
    "default_context",
]
