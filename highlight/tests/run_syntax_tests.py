#!/usr/bin/env python3
"""Check the Collie TextMate grammar against the syntax fixtures.

Runs every highlight/tests/syntax/*.test.collie fixture against
highlight/syntaxes/collie.tmLanguage.json. Extra arguments are passed to the
collie-hl CLI (e.g. --strict, --show FILE, -v).
"""
from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(REPO_ROOT / "src"))

from collie_hl.runner import main as run_harness

HIGHLIGHT_DIR = REPO_ROOT / "highlight"
GRAMMAR = HIGHLIGHT_DIR / "syntaxes" / "collie.tmLanguage.json"
FIXTURES = HIGHLIGHT_DIR / "tests" / "syntax"


def main() -> int:
    argv = ["--grammar", str(GRAMMAR), *sys.argv[1:]]
    if "--show" not in argv:
        argv.append(str(FIXTURES))
    return run_harness(argv)


if __name__ == "__main__":
    sys.exit(main())
