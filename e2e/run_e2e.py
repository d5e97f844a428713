#!/usr/bin/env python3
"""
E2E Test Runner

Runner for scenarios against real containers.

Usage:
    python e2e/run_e2e.py                 # Run all scenarios
    python e2e/run_e2e.py --check         # Print configuration only
    python e2e/run_e2e.py --scenario dex  # Filter by scenario name
    python e2e/run_e2e.py --network sydney
"""

import argparse
import os
import subprocess
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root / "python" / "testkit" / "src"))

from ggx_testkit.config import NetworkConfig  # noqa: E402
from ggx_testkit.env import load_env_config, print_env_status, validate_env_config  # noqa: E402


def run_pytest(args: list[str], env: dict[str, str]) -> int:
    """Run pytest with given arguments"""
    cmd = [sys.executable, "-m", "pytest", "e2e/"] + args
    print(f"Running: {' '.join(cmd)}\n")

    result = subprocess.run(cmd, cwd=_project_root, env=env)
    return result.returncode


def main():
    parser = argparse.ArgumentParser(description="GGX E2E Scenario Runner")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Print the environment configuration only, don't run scenarios",
    )
    parser.add_argument(
        "--scenario",
        type=str,
        help="Filter scenarios by name (e.g., 'dex', 'ibc', 'btc')",
    )
    parser.add_argument(
        "--network",
        choices=NetworkConfig.supported_networks(),
        help="GGX network profile to pin images to",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "pytest_args",
        nargs="*",
        help="Additional pytest arguments",
    )

    args = parser.parse_args()

    env = dict(os.environ)
    env["GGX_E2E"] = "1"
    if args.network:
        env["GGX_NETWORK"] = args.network
    os.environ.update(env)

    config = load_env_config([_project_root / "e2e" / ".env", _project_root / ".env"])
    is_valid, issues = validate_env_config(config)
    print_env_status(config)

    if issues:
        print("⚠️  Environment issues:")
        for issue in issues:
            print(f"   - {issue}")
        print()

    if args.check:
        return 0 if is_valid else 1

    if not is_valid:
        print("❌ Cannot run e2e scenarios: environment not configured")
        print("   Please fix the GGX_* variables in .env")
        return 1

    pytest_args = ["-m", "e2e", "-s"]

    if args.verbose:
        pytest_args.append("-v")

    if args.scenario:
        pytest_args.extend(["-k", args.scenario])

    pytest_args.extend(args.pytest_args)

    return run_pytest(pytest_args, env)


if __name__ == "__main__":
    sys.exit(main())
