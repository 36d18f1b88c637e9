"""Plotting of one or more expressions over a single variable."""

from __future__ import annotations

import os
import subprocess
import sys
import tempfile

import matplotlib

matplotlib.use("Agg")  # Non-GUI backend; plots are written to files
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from . import config  # noqa: E402
from .components import Component, Num  # noqa: E402
from .context import Context  # noqa: E402
from .evaluator import evaluate  # noqa: E402
from .logging_config import get_logger  # noqa: E402
from .types import CalcError, EvalResult  # noqa: E402

logger = get_logger("plotting")

ASCII_ROWS = 20
ASCII_COLS = 60


def _open_file_in_viewer(file_path: str) -> bool:
    """Open a file in the system's default application (cross-platform)."""
    try:
        if sys.platform == "win32":
            os.startfile(file_path)
        elif sys.platform == "darwin":
            subprocess.run(["open", file_path], check=True)
        else:
            subprocess.run(["xdg-open", file_path], check=True)
        return True
    except (OSError, subprocess.CalledProcessError) as e:
        logger.info(f"Could not open plot viewer: {e}")
        return False


def sample(
    node: Component, context: Context, variable: str, x_vals: np.ndarray
) -> np.ndarray:
    """Evaluate ``node`` at every x, binding ``variable`` in a child context."""
    y_vals = np.empty_like(x_vals, dtype=float)
    for i, x in enumerate(x_vals):
        scope = context.child()
        scope.bind(variable, Num(float(x)))
        y_vals[i] = evaluate(node, scope).base_value
    return y_vals


def ascii_plot(x_vals: np.ndarray, series: list[np.ndarray]) -> str | None:
    """Render sampled series on a character grid; None when nothing is finite."""
    finite = np.concatenate([y[np.isfinite(y) & (np.abs(y) < 1e10)] for y in series])
    if finite.size == 0:
        return None
    x_min, x_max = float(x_vals[0]), float(x_vals[-1])
    y_min, y_max = float(finite.min()), float(finite.max())
    y_range = y_max - y_min if y_max != y_min else 1.0
    x_range = x_max - x_min if x_max != x_min else 1.0

    grid = [[" "] * ASCII_COLS for _ in range(ASCII_ROWS)]
    x_axis_row = (
        int((y_max - 0) / y_range * (ASCII_ROWS - 1)) if y_min <= 0 <= y_max else -1
    )
    y_axis_col = (
        int((0 - x_min) / x_range * (ASCII_COLS - 1)) if x_min <= 0 <= x_max else -1
    )
    for r in range(ASCII_ROWS):
        for c in range(ASCII_COLS):
            if r == x_axis_row and c == y_axis_col:
                grid[r][c] = "+"
            elif r == x_axis_row:
                grid[r][c] = "-"
            elif c == y_axis_col:
                grid[r][c] = "|"

    marks = "*ox#@"
    for n, y_vals in enumerate(series):
        for x, y in zip(x_vals, y_vals):
            if not np.isfinite(y) or abs(y) >= 1e10:
                continue
            col = int((x - x_min) / x_range * (ASCII_COLS - 1))
            row = int((y_max - y) / y_range * (ASCII_ROWS - 1))
            grid[max(0, min(ASCII_ROWS - 1, row))][max(0, min(ASCII_COLS - 1, col))] = marks[n % len(marks)]
    return "\n".join("".join(line) for line in grid)


def plot_function(
    nodes: list[Component],
    context: Context,
    variable: str = "x",
    x_min: float = -10,
    x_max: float = 10,
    points: int | None = None,
    ascii: bool = False,
    output: str | None = None,
    open_viewer: bool = False,
) -> EvalResult:
    """Plot expressions of one variable.

    Args:
        nodes: Expressions to plot on shared axes
        context: Scope supplying every variable except ``variable``
        variable: Variable sampled along the x axis (default: "x")
        x_min: Minimum x value for plot range (default: -10)
        x_max: Maximum x value for plot range (default: 10)
        points: Number of samples (default: PLOT_POINTS)
        ascii: If True, return ASCII plot text instead of an image
        output: PNG path; a temporary file is used when omitted
        open_viewer: Open the written file in the system viewer

    Returns:
        EvalResult with the ASCII text or the path of the written image
    """
    if not nodes:
        return EvalResult(ok=False, error="Nothing to plot", error_code="EMPTY_INPUT")
    if x_max <= x_min:
        return EvalResult(ok=False, error="Plot range is empty", error_code="INVALID_RANGE")
    x_vals = np.linspace(x_min, x_max, points or config.PLOT_POINTS)
    try:
        series = [sample(node, context, variable, x_vals) for node in nodes]
    except CalcError as e:
        return EvalResult(ok=False, error=str(e), error_code=e.code)

    if ascii:
        text = ascii_plot(x_vals, series)
        if text is None:
            return EvalResult(
                ok=False, error="Cannot plot: function values out of range", error_code="OUT_OF_RANGE"
            )
        return EvalResult(ok=True, result=f"ASCII plot:\n{text}")

    fig, ax = plt.subplots(figsize=(10, 6))
    try:
        for node, y_vals in zip(nodes, series):
            ax.plot(x_vals, y_vals, linewidth=2, label=f"{node}")
        ax.set_xlabel(variable, fontsize=12, fontweight="bold")
        ax.grid(True, alpha=0.3, linestyle="--")
        ax.axhline(y=0, color="k", linewidth=0.8, alpha=0.3)
        ax.axvline(x=0, color="k", linewidth=0.8, alpha=0.3)
        ax.legend(loc="best", fontsize=10)
        fig.tight_layout()

        if output is None:
            temp_file = tempfile.NamedTemporaryFile(suffix=".png", delete=False)
            output = temp_file.name
            temp_file.close()
        fig.savefig(output, dpi=150, bbox_inches="tight")
    except OSError as e:
        return EvalResult(ok=False, error=f"Failed to save plot: {e}", error_code="IO_ERROR")
    finally:
        plt.close(fig)

    logger.info(f"Plot saved to {output}")
    if open_viewer and _open_file_in_viewer(output):
        return EvalResult(ok=True, result=f"Plot saved and opened: {output}")
    return EvalResult(ok=True, result=f"Plot saved to: {output}")
