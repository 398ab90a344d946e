#!/usr/bin/env python3
"""Upload product and variant images from a local folder tree.

Thin launcher for ``kikichoice.cli`` so the tool runs from a checkout without
installing the package. See ``--help`` for flags and environment variables.
"""
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(ROOT / "src"))

from kikichoice.cli import main  # type: ignore  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main())
