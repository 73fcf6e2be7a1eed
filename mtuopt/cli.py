"""
CLI entry-point for the MTU Optimizer.

Supports two modes:
  • **Interactive** (default on a terminal): prompts for the target and,
    after the analysis, for how to apply the recommendation.
  • **Direct**: ``mtuopt 1.1.1.1 --apply temporary`` etc., no prompts.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Optional

from mtuopt import __app_name__, __version__
from mtuopt.config import (
    DEFAULT_MAX_PAYLOAD,
    DEFAULT_MIN_PAYLOAD,
    DEFAULT_PING_INTERVAL_MS,
    DEFAULT_PROBE_TIMEOUT_MS,
    DEFAULT_STRESS_COUNT,
    DEFAULT_TARGET,
    SETTINGS,
)
from mtuopt.core.errors import MtuOptError
from mtuopt.core.session import ApplyMode, SessionController, SessionParams, SessionReport
from mtuopt.core.session_log import SessionLogger
from mtuopt.core.utils import (
    console,
    err_console,
    error_result,
    print_result,
    print_section,
    prompt,
    require_root,
)
from mtuopt.menu import choose_apply_mode, print_banner, render_analysis


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="mtuopt",
        description=f"{__app_name__} — find, stress-test and safely apply the optimal Path MTU.",
    )
    p.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")

    p.add_argument(
        "target",
        nargs="?",
        help=f"Target IP or hostname (default: {DEFAULT_TARGET}; prompted when interactive).",
    )
    p.add_argument(
        "--min-payload",
        # string defaults go through type=int, so a bad env value is a usage error
        type=int,
        default=os.environ.get("MTUOPT_MIN_PAYLOAD", str(DEFAULT_MIN_PAYLOAD)),
        help=f"Lower payload bound for the search (default: {DEFAULT_MIN_PAYLOAD}).",
    )
    p.add_argument(
        "--max-payload",
        type=int,
        default=os.environ.get("MTUOPT_MAX_PAYLOAD", str(DEFAULT_MAX_PAYLOAD)),
        help=f"Upper payload bound for the search (default: {DEFAULT_MAX_PAYLOAD}).",
    )
    p.add_argument(
        "-c", "--count",
        type=int,
        default=os.environ.get("MTUOPT_STRESS_COUNT", str(DEFAULT_STRESS_COUNT)),
        help=f"Packets in the stress test (default: {DEFAULT_STRESS_COUNT}).",
    )
    p.add_argument(
        "-i", "--interval-ms",
        type=int,
        default=os.environ.get("MTUOPT_INTERVAL_MS", str(DEFAULT_PING_INTERVAL_MS)),
        help=f"Interval between stress-test packets in ms (default: {DEFAULT_PING_INTERVAL_MS}).",
    )
    p.add_argument(
        "-t", "--timeout-ms",
        type=int,
        default=DEFAULT_PROBE_TIMEOUT_MS,
        help=f"Per-probe timeout in ms (default: {DEFAULT_PROBE_TIMEOUT_MS}).",
    )
    p.add_argument(
        "--apply",
        choices=[m.value for m in ApplyMode],
        help="Apply the recommendation without asking (default: ask when interactive, else none).",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Analyse only; show what would be applied without touching the interface.",
    )
    p.add_argument(
        "--json",
        action="store_true",
        help="Print the session report as JSON on stdout (human output goes to stderr).",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug output on stderr (or VERBOSE=1).")
    p.add_argument("--no-log", action="store_true", help="Do not write the JSON-lines session log.")
    return p


def _interactive(args: argparse.Namespace) -> bool:
    return not args.json and sys.stdin.isatty()


def _resolve_target(args: argparse.Namespace) -> str:
    default = os.environ.get("MTUOPT_TARGET", DEFAULT_TARGET)
    if args.target:
        return args.target
    if _interactive(args):
        console.print("\n  [blue][*] Target IP Configuration[/blue]")
        console.print("      Enter the target IP for MTU testing.")
        return prompt("Target IP", default=default)
    return default


def _fixed_mode(args: argparse.Namespace) -> Optional[ApplyMode]:
    if args.dry_run:
        return ApplyMode.NONE
    if args.apply:
        return ApplyMode(args.apply)
    if not _interactive(args):
        return ApplyMode.NONE
    return None


def run(args: argparse.Namespace) -> int:
    """Run one session for parsed *args* and return the process exit code."""
    if args.verbose:
        SETTINGS.verbose = True
    if args.no_log:
        SETTINGS.log_enabled = False
        SessionLogger.get().enabled = False

    out = err_console if args.json else console
    print_banner(out)
    target = _resolve_target(args)
    fixed = _fixed_mode(args)

    def choose(report: SessionReport) -> ApplyMode:
        render_analysis(report, out)
        if args.dry_run:
            out.print(
                f"  [yellow]DRY-RUN:[/yellow] would apply MTU {report.recommendation.recommended_mtu} "
                f"to {report.interface.name} (current {report.original_mtu})."
            )
        return fixed if fixed is not None else choose_apply_mode()

    params = SessionParams(
        target=target,
        min_payload=args.min_payload,
        max_payload=args.max_payload,
        stress_count=args.count,
        interval_ms=args.interval_ms,
        probe_timeout_ms=args.timeout_ms,
    )
    controller = SessionController(
        params,
        reporter=lambda result: print_result(result, show_raw=SETTINGS.verbose, out=out),
        progress=lambda msg: print_section(msg, out=out),
    )

    try:
        # fail before probing when the mode is already known to need root
        require_root(needs_root=fixed in (ApplyMode.TEMPORARY, ApplyMode.PERMANENT))
        report = controller.run(choose)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Aborted.[/yellow]")
        return 130
    except MtuOptError as exc:
        print_result(error_result(exc, target), out=out)
        return exc.exit_code

    if args.json:
        print(json.dumps(report.to_dict(), sort_keys=True))
    out.print(f"[dim]{SessionLogger.get().summary()}[/dim]")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry-point called by the ``mtuopt`` console script or ``python -m mtuopt``."""
    args = _build_parser().parse_args(argv)
    return run(args)


if __name__ == "__main__":
    raise SystemExit(main())
