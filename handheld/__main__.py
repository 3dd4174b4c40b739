"""Handheld CLI entry point (python -m handheld)"""

from __future__ import annotations

import sys

from handheld.cli import main

if __name__ == "__main__":
    sys.exit(main())
