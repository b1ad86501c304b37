# SPDX-License-Identifier: MIT
"""Command-line entry point — run ThreatLens via ``python -m threatlens``.

Usage:
    threatlens [--staged] [--pack ID] [--advisory off|auto|always] [--format pretty|json]
    threatlens --base REF [--head REF] [...]
    threatlens --input PATH [...]
    threatlens --list-packs

Exit codes: 0 = pass, 1 = blocked by the fail-on threshold, 2 = error.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import subprocess  # nosec B404
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from threatlens import __version__
from threatlens.config import Settings
from threatlens.errors import CLI_ERROR_EXIT_CODE, ScanError
from threatlens.output import format_pack_listing, format_response
from threatlens.rules.base import FAIL_ON_LEVELS
from threatlens.rules.config import list_policy_packs
from threatlens.service import run_scan

log = logging.getLogger("threatlens")

EXIT_PASS = 0
EXIT_BLOCKED = 1


class DiffSourceError(RuntimeError):
    """The diff could not be read from a file or from git."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="threatlens",
        description="Scan added lines of a diff for risky security patterns.",
    )
    source = parser.add_argument_group("diff source (default: working tree, then staged)")
    source.add_argument("--input", metavar="PATH", help="Scan a diff from a file")
    source.add_argument(
        "--staged", action="store_true", help="Scan staged changes (git diff --cached)"
    )
    source.add_argument("--base", metavar="REF", help="Scan the diff from a base ref")
    source.add_argument("--head", metavar="REF", help="Optional head ref (only with --base)")

    parser.add_argument("--pack", metavar="ID", default=None, help="Policy pack id")
    parser.add_argument(
        "--list-packs", action="store_true", help="Show available policy packs and exit"
    )
    parser.add_argument(
        "--fail-on",
        choices=FAIL_ON_LEVELS,
        default=None,
        help="Override the pack's fail threshold",
    )
    parser.add_argument(
        "--advisory",
        choices=["off", "auto", "always"],
        default="off",
        help="Advisory model mode (default: off)",
    )
    parser.add_argument("--advisory-model", metavar="ID", help="Advisory model id override")
    parser.add_argument(
        "--format", choices=["pretty", "json"], default="pretty", help="Output format"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _validate_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    if args.head and not args.base:
        parser.error("--head can only be used together with --base")
    if args.input and (args.staged or args.base or args.head):
        parser.error("--input cannot be combined with --staged/--base/--head")


def run_git_diff(extra_args: Sequence[str]) -> str:
    """Run ``git diff`` with the given arguments and return stdout."""
    try:
        proc = subprocess.run(  # nosec B603 B607
            ["git", "diff", *extra_args],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        msg = f"git diff failed: {exc}"
        raise DiffSourceError(msg) from exc
    if proc.returncode != 0:
        msg = f"git diff failed: {proc.stderr.strip() or 'unknown error'}"
        raise DiffSourceError(msg)
    return proc.stdout


def resolve_diff(args: argparse.Namespace) -> str:
    """Read the diff selected by the CLI arguments.

    Raises:
        DiffSourceError: If the input file is missing or git fails.
    """
    if args.input:
        path = Path(args.input)
        if not path.is_file():
            msg = f"Input file not found: {args.input}"
            raise DiffSourceError(msg)
        return path.read_text(encoding="utf-8")

    if args.base:
        refs = [args.base, args.head] if args.head else [args.base]
        return run_git_diff(["--unified=3", *refs])

    if args.staged:
        return run_git_diff(["--cached", "--unified=3"])

    working_tree = run_git_diff(["--unified=3"])
    if working_tree.strip():
        return working_tree
    return run_git_diff(["--cached", "--unified=3"])


def _configure_logging() -> None:
    name = os.environ.get("THREATLENS_LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, name, logging.WARNING)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _error(message: str) -> int:
    print(f"threatlens: error: {message}", file=sys.stderr)
    return CLI_ERROR_EXIT_CODE


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _validate_args(parser, args)
    _configure_logging()

    if args.list_packs:
        print(format_pack_listing(list_policy_packs()))
        return EXIT_PASS

    try:
        settings = Settings.from_env()
    except ValueError as exc:
        return _error(str(exc))

    try:
        diff_text = resolve_diff(args)
    except (DiffSourceError, OSError, UnicodeDecodeError) as exc:
        return _error(str(exc))

    request: dict[str, Any] = {
        "diff": diff_text,
        "advisory": {"mode": args.advisory},
    }
    if args.pack:
        request["packId"] = args.pack
    if args.fail_on:
        request["failOn"] = args.fail_on
    if args.advisory_model:
        request["advisory"]["model"] = args.advisory_model

    # The local operator holds the configured key
    outcome = run_scan(request, settings=settings, credential=settings.api_key)
    if isinstance(outcome, ScanError):
        return _error(outcome.message)

    if args.format == "json":
        print(json.dumps(outcome.to_dict(), indent=2))
    else:
        print(format_response(outcome))

    return EXIT_BLOCKED if outcome.should_block else EXIT_PASS


if __name__ == "__main__":
    sys.exit(main())
