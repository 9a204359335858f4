#!/usr/bin/env python3
"""Lint (or with --fix, format) libsql-sync with ruff."""

import argparse
import subprocess
import sys

from common import print_header, print_result, run


def main() -> int:
    parser = argparse.ArgumentParser(description="Run ruff on libsql-sync")
    parser.add_argument("--fix", action="store_true", help="Apply fixes and format in place")
    args = parser.parse_args()

    if args.fix:
        print_header("Formatting")
        commands = [["ruff", "check", "--fix", "."], ["ruff", "format", "."]]
    else:
        print_header("Linting")
        commands = [["ruff", "check", "."], ["ruff", "format", "--check", "."]]

    success = True
    for cmd in commands:
        try:
            run(cmd)
            print_result(True, " ".join(cmd))
        except subprocess.CalledProcessError:
            print_result(False, " ".join(cmd))
            success = False

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
