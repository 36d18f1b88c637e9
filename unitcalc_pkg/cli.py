from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

from . import config
from .api import evaluate as api_evaluate
from .api import solve_expression
from .config import VERSION
from .context import AngleMode
from .logging_config import get_logger, safe_log, setup_logging
from .session import Session

logger = get_logger("cli")


def _health_check() -> int:
    """Run health check to verify dependencies and basic operations.

    Returns:
        Exit code (0 for success, non-zero for failures)
    """
    checks_passed = 0
    checks_failed = 0

    print("Running Unitcalc health check...")
    print("-" * 50)

    for module_name in ("sympy", "numpy", "matplotlib"):
        try:
            module = __import__(module_name)
            print(f"[OK] {module_name} {module.__version__} imported successfully")
            checks_passed += 1
        except ImportError as e:
            print(f"[FAIL] {module_name} import failed: {e}")
            checks_failed += 1

    checks: list[tuple[str, Any, str]] = [
        ("Basic evaluation", lambda: api_evaluate("2+2").result, "4"),
        ("Unit arithmetic", lambda: api_evaluate("230[V]*16[A]").result, "3.68[kW]"),
        ("Solving", lambda: solve_expression("x^2", "x").expression, "sqrt(y)"),
    ]
    for label, check, expected in checks:
        output = check()
        if output == expected:
            print(f"[OK] {label} works")
            checks_passed += 1
        else:
            print(f"[FAIL] {label}: expected {expected}, got {output}")
            checks_failed += 1

    print("-" * 50)
    print(f"Health check complete: {checks_passed} passed, {checks_failed} failed")
    return 0 if checks_failed == 0 else 1


def repl_loop(session: Session, output_format: str = "human") -> None:
    """Interactive REPL loop with graceful interrupt handling."""
    try:
        import readline  # noqa: F401
    except ImportError:
        # readline not available on Windows - that's fine
        pass

    print("Unitcalc - type 'help' for commands, 'exit' to quit.")
    while session.running:
        try:
            raw = input(">>> " if not session.editing else "... ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye.")
            session.save_state()
            break
        if not raw:
            continue
        try:
            lines = session.execute(raw)
        except Exception as e:
            # Engine errors come back as "Error:" lines; anything else is a bug
            safe_log("cli", "error", "Unexpected error for %r", raw, exc_info=True)
            lines = [f"Error: unexpected {type(e).__name__}: {e}"]
        _emit(lines, output_format)


def _emit(lines: list[str], output_format: str) -> None:
    if output_format == "json":
        payload: dict[str, Any] = {"ok": not any(line.startswith("Error:") for line in lines)}
        payload["output"] = lines
        print(json.dumps(payload, ensure_ascii=False))
        return
    for line in lines:
        print(line)


def _run_eval(session: Session, expr: str, output_format: str) -> int:
    expr = expr.strip()
    # Remove ">>>" prompt if present
    if expr.startswith(">>>"):
        expr = expr[3:].strip()
    if not expr:
        print("Error: Empty input. Please enter a valid expression or command.")
        return 1
    lines = session.execute(expr)
    _emit(lines, output_format)
    return 1 if any(line.startswith("Error:") for line in lines) else 0


def main_entry(argv: list[str] | None = None) -> int:
    """
    Main entry point for Unitcalc CLI.

    Args:
        argv: Optional command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = argparse.ArgumentParser(prog="unitcalc")
    parser.add_argument(
        "-e",
        "--eval",
        type=str,
        action="append",
        help="Evaluate an expression or command and exit (repeatable)",
        dest="eval_expr",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["json", "human"],
        default="human",
        help="Output format: json (machine-readable) or human (human-readable)",
    )
    parser.add_argument(
        "--angle-mode",
        type=str,
        choices=[m.value for m in AngleMode],
        help="Angle mode for trigonometric functions (default: deg)",
    )
    parser.add_argument(
        "--data-dir", type=str, help="Directory for saved functions, constants and units"
    )
    parser.add_argument(
        "--no-persist",
        action="store_true",
        help="Do not read or write the data directory",
    )
    parser.add_argument(
        "-p", "--precision", type=int, help="Set literal output precision (decimals)"
    )
    parser.add_argument(
        "--no-verify", action="store_true", help="Skip SymPy verification of solutions"
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="Show program version"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: UNITCALC_LOG_LEVEL or WARNING)",
    )
    parser.add_argument("--log-file", type=str, help="Write logs to file")
    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Run health check and verify dependencies",
    )
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level, log_file=args.log_file)
    # Apply CLI configuration overrides
    if args.precision and args.precision > 0:
        config.OUTPUT_PRECISION = int(args.precision)
    if args.no_verify:
        config.VERIFY_SOLUTIONS = False

    if args.version:
        print(VERSION)
        return 0
    if args.health_check:
        return _health_check()

    session = Session(
        data_dir=Path(args.data_dir) if args.data_dir else None,
        persist=not args.no_persist,
        angle_mode=AngleMode.parse(args.angle_mode) if args.angle_mode else None,
    )
    logger.debug(f"Session started, persist={session.persist}")
    if args.eval_expr:
        status = 0
        for expr in args.eval_expr:
            status = max(status, _run_eval(session, expr, args.format))
        return status

    repl_loop(session, args.format)
    return 0


if __name__ == "__main__":
    raise SystemExit(main_entry())
