#!/usr/bin/env python3
"""
Unitcalc - Unit-Aware Calculator

Thin wrapper that delegates all functionality to the unitcalc_pkg package.

Usage:
    python unitcalc.py                         # Interactive REPL
    python unitcalc.py -e "230[V]*16[A]"       # Evaluate expression
    python unitcalc.py --help                  # Show help
"""

from __future__ import annotations

import sys

from unitcalc_pkg.cli import main_entry


def main() -> int:
    """
    Main entry point for Unitcalc.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    try:
        return main_entry(sys.argv[1:])
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
