"""
Command-line entry point: ``idgen-load``.

Three subcommands cover a CI pipeline end to end:

- ``run`` — launch headless Locust on the packaged locustfile with the
  selected profile and hand back Locust's exit code (which the
  quitting hook sets from the threshold verdict).
- ``check`` — re-evaluate a summary exported by a previous run against
  a (possibly stricter) set of thresholds.
- ``audit-ids`` — scan run logs for IDs issued more than once, including
  across virtual users.

Exit codes follow a three-state convention so that CI can distinguish
"thresholds breached" from "script crashed":

- ``0`` — all thresholds passed / no duplicates
- ``1`` — at least one threshold was breached / duplicates found
- ``2`` — the script itself failed (missing file, bad YAML, etc.)

Key Concepts Demonstrated:
- argparse subcommands sharing one logging setup
- Human-readable summary table printed to stdout for CI logs
- Subprocess launch with configuration passed through the environment
"""

from __future__ import annotations

import argparse
import logging
import math
import os
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path

from idgen_load.config import get_config, load_run_profile
from idgen_load.id_audit import audit_files, format_audit
from idgen_load.summary import PASS_MARK, FAIL_MARK, load_summary
from idgen_load.thresholds import (
    EXIT_PASS,
    EXIT_SCRIPT_ERROR,
    EXIT_THRESHOLD_BREACH,
    RunVerdict,
    evaluate_thresholds,
)

logger = logging.getLogger(__name__)

LOCUSTFILE = Path(__file__).resolve().with_name("locustfile.py")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for all subcommands."""
    settings = get_config()
    parser = argparse.ArgumentParser(
        prog="idgen-load",
        description="Ramped load test and verdict tooling for the ID generator endpoint.",
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        help="Logging level (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the load test with Locust")
    run_parser.add_argument(
        "--host",
        default=settings.TARGET_HOST,
        help="Base URL of the ID generator (default: %(default)s)",
    )
    run_parser.add_argument(
        "--profile",
        type=Path,
        default=Path(settings.PROFILE_FILE) if settings.PROFILE_FILE else None,
        help="YAML run profile with stages and thresholds",
    )
    run_parser.add_argument(
        "--stop-timeout",
        type=float,
        default=settings.STOP_TIMEOUT,
        help="Seconds in-flight requests may finish after the ramp ends; 0 = hard cutoff",
    )
    run_parser.add_argument("--csv", dest="csv_prefix", help="Locust CSV output prefix")
    run_parser.add_argument(
        "--summary-json",
        type=Path,
        default=Path(settings.SUMMARY_EXPORT) if settings.SUMMARY_EXPORT else None,
        help="Write the run summary as JSON to this path",
    )

    check_parser = subparsers.add_parser(
        "check", help="Check an exported summary against thresholds"
    )
    check_parser.add_argument(
        "--summary",
        required=True,
        type=Path,
        help="Path to a summary JSON written by 'run --summary-json'",
    )
    check_parser.add_argument(
        "--profile",
        type=Path,
        default=None,
        help="YAML run profile whose thresholds to apply (default: IDGEN_PROFILE or built-in thresholds)",
    )

    audit_parser = subparsers.add_parser(
        "audit-ids", help="Find IDs issued more than once in run logs"
    )
    audit_parser.add_argument("logs", nargs="+", type=Path, help="Log files to scan")

    return parser.parse_args(argv)


def build_locust_command(
    *,
    host: str,
    stop_timeout: float,
    csv_prefix: str | None = None,
    log_level: str | None = None,
    locustfile: Path = LOCUSTFILE,
) -> list[str]:
    """
    Assemble the headless Locust invocation.

    The load shape in the locustfile decides user counts and run length,
    so no ``--users``/``--run-time`` flags are passed.
    """
    command = [
        sys.executable,
        "-m",
        "locust",
        "-f",
        str(locustfile),
        "--headless",
        "--only-summary",
        "--host",
        host,
        "--stop-timeout",
        str(max(math.ceil(stop_timeout), 0)),
    ]
    if log_level:
        command.extend(["--loglevel", log_level.upper()])
    if csv_prefix:
        command.extend(["--csv", csv_prefix])
    return command


def build_run_environment(
    args: argparse.Namespace, base: dict[str, str] | None = None
) -> dict[str, str]:
    """Environment for the Locust subprocess, carrying profile and export paths."""
    env = dict(os.environ if base is None else base)
    env["IDGEN_TARGET_HOST"] = args.host
    env["IDGEN_STOP_TIMEOUT"] = str(args.stop_timeout)
    env["IDGEN_LOG_LEVEL"] = args.log_level
    if args.profile is not None:
        env["IDGEN_PROFILE"] = str(args.profile)
    if args.summary_json is not None:
        env["IDGEN_SUMMARY_EXPORT"] = str(args.summary_json)
    return env


def _print_verdict(verdict: RunVerdict) -> None:
    """Print a human-readable threshold table to stdout for CI logs."""
    print("Performance Threshold Check")
    print("-" * 72)
    print(f"{'Metric':<22}{'Threshold':<16}{'Actual':>14}{'Status':>12}")
    print("-" * 72)
    for result in verdict.results:
        status = "PASS" if result.passed else "FAIL"
        print(
            f"{result.threshold.metric:<22}{result.threshold.expression:<16}"
            f"{result.actual:>14.4f}{status:>12}"
        )
    print("-" * 72)
    print(f"Overall: {PASS_MARK if verdict.passed else FAIL_MARK}")


def _run(args: argparse.Namespace) -> int:
    # Fail fast on a broken profile before spending time starting Locust.
    load_run_profile(get_config(), args.profile)

    command = build_locust_command(
        host=args.host,
        stop_timeout=args.stop_timeout,
        csv_prefix=args.csv_prefix,
        log_level=args.log_level,
    )
    logger.info("Starting Locust: %s", " ".join(command))
    completed = subprocess.run(command, env=build_run_environment(args), check=False)
    return completed.returncode


def _check(args: argparse.Namespace) -> int:
    profile = load_run_profile(get_config(), args.profile)
    summary = load_summary(args.summary)
    verdict = evaluate_thresholds(summary, profile.thresholds)
    _print_verdict(verdict)
    return EXIT_PASS if verdict.passed else EXIT_THRESHOLD_BREACH


def _audit(args: argparse.Namespace) -> int:
    report = audit_files(args.logs)
    print(format_audit(report))
    return EXIT_PASS if report.clean else EXIT_THRESHOLD_BREACH


COMMANDS = {
    "run": _run,
    "check": _check,
    "audit-ids": _audit,
}


def main(argv: Sequence[str] | None = None) -> int:
    """
    Entry point: dispatch to the selected subcommand.

    Returns:
        ``EXIT_PASS`` (0), ``EXIT_THRESHOLD_BREACH`` (1), or
        ``EXIT_SCRIPT_ERROR`` (2) on unexpected failures.  ``run``
        returns Locust's own exit code.
    """
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return COMMANDS[args.command](args)
    except Exception as exc:
        print(f"idgen-load {args.command} failed: {exc}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
