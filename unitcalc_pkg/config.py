"""Centralized configuration for Unitcalc.

This module defines:
- Input validation limits (length, depth)
- Evaluation guards (call depth)
- Default angle mode and built-in constants
- Solver verification options
- Data directory used for persistence
- Log level and optional log file
- Regex patterns for parsing

Configuration can be overridden via:
- CLI flags (see cli.py)
- Environment variables (prefixed with UNITCALC_)
"""

import math
import os
import re
from pathlib import Path

import sympy as sp

# Version is defined in pyproject.toml [project] section
try:
    import importlib.metadata

    VERSION = importlib.metadata.version("unitcalc")
except importlib.metadata.PackageNotFoundError:
    # Running from a source checkout
    VERSION = "1.0.0"

# Input validation limits
MAX_INPUT_LENGTH = int(os.getenv("UNITCALC_MAX_INPUT_LENGTH", "10000"))  # characters
MAX_EXPRESSION_DEPTH = int(
    os.getenv("UNITCALC_MAX_EXPRESSION_DEPTH", "200")
)  # parser nesting depth

# Evaluation guards
MAX_CALL_DEPTH = int(
    os.getenv("UNITCALC_MAX_CALL_DEPTH", "64")
)  # nested function calls and variable resolutions

# Angle mode used by the root context: "deg", "rad" or "grad"
ANGLE_MODE = os.getenv("UNITCALC_ANGLE_MODE", "deg").lower()

# Literal rendering: decimals kept when printing Num nodes
OUTPUT_PRECISION = int(os.getenv("UNITCALC_OUTPUT_PRECISION", "15"))

# Editor behaviour: print a result as soon as nothing is missing
AUTO_EVAL = os.getenv("UNITCALC_AUTO_EVAL", "true").lower() == "true"

# Solver verification through SymPy
VERIFY_SOLUTIONS = os.getenv("UNITCALC_VERIFY_SOLUTIONS", "true").lower() == "true"
VERIFY_SAMPLES = int(
    os.getenv("UNITCALC_VERIFY_SAMPLES", "5")
)  # numeric spot checks when simplify is inconclusive
VERIFY_TOLERANCE = float(os.getenv("UNITCALC_VERIFY_TOLERANCE", "1e-9"))

# Logging (the CLI flags --log-level and --log-file take precedence)
LOG_LEVEL = os.getenv("UNITCALC_LOG_LEVEL", "WARNING").upper()
LOG_FILE = os.getenv("UNITCALC_LOG_FILE") or None

# Plotting
PLOT_POINTS = int(os.getenv("UNITCALC_PLOT_POINTS", "200"))

# Persistence
DATA_DIR = Path(
    os.getenv("UNITCALC_DATA_DIR", str(Path.home() / ".unitcalc"))
).expanduser()
CONFIG_FILE_NAME = "config.json"
CONSTANTS_FILE_NAME = "constants.vars"
FUNCTION_EXT = ".math"
CATALOG_EXT = ".units"
UNIT_EXT = ".unit"

# Built-in constants, always present in the root context
BUILTIN_CONSTANTS = {
    "pi": math.pi,
    "e": math.e,
    "tau": math.tau,
}

# Variable names resolved to fresh random values instead of bindings
RANDOM_PREFIX = "rng"

# Function keywords accepted by the parser, mapped to canonical kind names
FUNCTION_KEYWORDS = {
    "sin": "sin",
    "cos": "cos",
    "tan": "tan",
    "log": "log",
    "ln": "log",
    "sec": "sec",
    "csc": "csc",
    "cot": "cot",
    "hyp": "hyp",
    "arcsin": "arcsin",
    "asin": "arcsin",
    "arccos": "arccos",
    "acos": "arccos",
    "arctan": "arctan",
    "atan": "arctan",
}

# SymPy counterparts used by the symbolic bridge
SYMPY_FUNCTIONS = {
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "log": sp.log,
    "arcsin": sp.asin,
    "arccos": sp.acos,
    "arctan": sp.atan,
}

# Names that cannot be used for variables or functions
RESERVED_NAMES = set(FUNCTION_KEYWORDS) | {"frac", "sqrt", "root", "mem"}

VAR_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Content of a unit bracket: "V", "kWh", "M?" (cast) or "?" (normalize)
UNIT_DESCRIPTOR_RE = re.compile(r"^\s*([^\s?\[\]]*)\s*(\?)?\s*$")

# One relation line of a unit file: "V*A=W", "Wh/h=W", "h*3600=s"
RELATION_LINE_RE = re.compile(r"^\s*([\w.µμ]+)\s*([*/])\s*([\w.µμ]+)\s*=\s*([\w.µμ]+)\s*;?\s*$")

# One binding line of a function or constants file: "name = value"
ASSIGNMENT_LINE_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.+?)\s*;?\s*$")
