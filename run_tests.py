#!/usr/bin/env python
"""Test runner for the ops agent."""

import sys
import subprocess
import argparse

AREAS = {
    "orchestration": "tests/unit/orchestration",
    "reliability": "tests/unit/reliability",
    "tools": "tests/unit/tools",
}


def main():
    """Run tests with various options."""
    parser = argparse.ArgumentParser(description="Run ops agent tests")
    parser.add_argument("--unit", action="store_true", help="Run unit tests only")
    parser.add_argument("--integration", action="store_true", help="Run integration tests only")
    parser.add_argument("--area", choices=sorted(AREAS), action="append", help="Limit to one test area (repeatable)")
    parser.add_argument("--coverage", action="store_true", help="Generate coverage report")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--fast", action="store_true", help="Skip slow tests")
    parser.add_argument("--keyword", "-k", help="Only run tests matching the expression")

    args = parser.parse_args()

    # Build pytest command
    cmd = ["pytest"]
    cmd.extend(AREAS[area] for area in args.area or [])

    # Add markers
    markers = []
    if args.unit:
        markers.append("unit")
    if args.integration:
        markers.append("integration")
    if args.fast:
        markers.append("not slow")

    if markers:
        cmd.extend(["-m", " and ".join(markers)])

    if args.keyword:
        cmd.extend(["-k", args.keyword])

    # Add verbosity
    if args.verbose:
        cmd.append("-vv")

    # Add coverage
    if args.coverage:
        cmd.extend([
            "--cov=ops_agent",
            "--cov-report=term-missing",
            "--cov-report=html"
        ])

    # Run tests
    print(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, cwd=".")

    return result.returncode


if __name__ == "__main__":
    sys.exit(main())
