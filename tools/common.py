#!/usr/bin/env python3
"""Shared helpers for the developer scripts."""

import subprocess
import sys
from pathlib import Path

# Project root directory
ROOT_DIR = Path(__file__).parent.parent.resolve()


def run(cmd: list[str], check: bool = True) -> subprocess.CompletedProcess:
    """Run a command from the project root, echoing it first."""
    print(f"+ {' '.join(cmd)}")
    return subprocess.run(cmd, cwd=ROOT_DIR, check=check)


def print_header(title: str) -> None:
    print()
    print("=" * 60)
    print(f"  {title}")
    print("=" * 60)
    print()


def print_result(ok: bool, message: str) -> None:
    if ok:
        print(f"✓ {message}")
    else:
        print(f"✗ {message}", file=sys.stderr)
