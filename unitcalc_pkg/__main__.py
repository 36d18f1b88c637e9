"""Main entry point for running unitcalc_pkg as a module.

This allows running Unitcalc with:
    python -m unitcalc_pkg
    python -m unitcalc_pkg --health-check
    python -m unitcalc_pkg -e "230[V]*16[A]"

This is equivalent to running:
    python unitcalc.py
"""

from __future__ import annotations

import sys

from .cli import main_entry

if __name__ == "__main__":
    sys.exit(main_entry())
