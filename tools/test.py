#!/usr/bin/env python3
"""Run the libsql-sync test suite."""

import argparse
import subprocess
import sys

from common import print_header, print_result, run


def main() -> int:
    parser = argparse.ArgumentParser(description="Run libsql-sync tests")
    parser.add_argument("-k", dest="keyword", help="Only run tests matching this expression")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    args = parser.parse_args()

    print_header("Running tests")
    # sys.executable so pytest runs in the environment libsql_sync is installed in
    cmd = [sys.executable, "-m", "pytest", "tests/"]
    if args.keyword:
        cmd += ["-k", args.keyword]
    if args.verbose:
        cmd.append("-v")

    try:
        run(cmd)
    except subprocess.CalledProcessError:
        print_result(False, "Tests failed")
        return 1

    print_result(True, "Tests passed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
