"""
Helpers shared by every stage: stage results and their rich rendering,
the subprocess runner, target validation and privilege/tool guards.
"""

from __future__ import annotations

import os
import re
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, NamedTuple, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text
from rich import box

from mtuopt.config import PLATFORM, REQUIRED_PACKAGES, SETTINGS
from mtuopt.core.errors import PrivilegeError, ToolMissingError

console = Console()
err_console = Console(stderr=True)


# ── Result types ──────────────────────────────────────────────────────────────


class Status(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL = "partial"
    ERROR = "error"


@dataclass
class TestResult:
    """Universal container for every pipeline stage result."""

    __test__ = False  # not a test case, despite the name

    title: str
    status: Status
    target: str = ""
    summary: str = ""
    details: List[str] = field(default_factory=list)
    raw_output: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now().strftime("%Y-%m-%d %H:%M:%S"))


# ── Stage panels ──────────────────────────────────────────────────────────────


class _Look(NamedTuple):
    icon: str
    badge: str
    colour: str


_LOOKS = {
    Status.SUCCESS: _Look("✔", "PASS", "green"),
    Status.FAILURE: _Look("✘", "FAIL", "red"),
    Status.PARTIAL: _Look("⚠", "WARN", "yellow"),
    Status.ERROR: _Look("⊘", "ERR", "red"),
}


def _heading(result: TestResult, look: _Look) -> Text:
    heading = Text(f" {look.badge} ", style=f"bold white on {look.colour}")
    heading.append(f"    {look.icon}  ", style=f"bold {look.colour}")
    heading.append(result.title, style="bold white")
    if result.target:
        heading.append("  ➜  ", style="dim")
        heading.append(result.target, style="bold cyan")
    return heading


def _body(result: TestResult, look: _Look) -> Text:
    lines = Text()
    if result.summary:
        lines.append(f"  {result.summary}\n", style=f"bold {look.colour}")
    if result.details:
        lines.append("\n")
        for line in result.details:
            lines.append("    › ", style=f"dim {look.colour}")
            lines.append(f"{line}\n")
    if not lines:
        lines.append("  (no details)\n", style="dim")
    return lines


def render_result(result: TestResult) -> Panel:
    """Build the coloured panel for one stage result."""
    look = _LOOKS[result.status]
    return Panel(
        _body(result, look),
        title=_heading(result, look),
        title_align="left",
        subtitle=f"[dim italic]⏱  {result.timestamp}[/dim italic]",
        subtitle_align="right",
        border_style=look.colour,
        box=box.ROUNDED,
        expand=True,
        padding=(0, 1),
    )


def print_result(result: TestResult, show_raw: bool = False, out: Optional[Console] = None) -> None:
    """Render *result* on *out* (stdout by default) and record it in the session log."""
    # session_log imports this module
    from mtuopt.core.session_log import SessionLogger
    SessionLogger.get().log(result)

    out = out or console
    out.print()
    out.print(render_result(result))
    if show_raw and result.raw_output:
        out.print(Panel(
            result.raw_output,
            title="[dim italic]ping output[/dim italic]",
            title_align="left",
            border_style="bright_black",
            box=box.SIMPLE,
            expand=True,
            padding=(0, 2),
        ))


def print_section(title: str, out: Optional[Console] = None) -> None:
    """Stage banner, e.g. ``[2/5] Calculating ...``."""
    out = out or console
    out.print()
    out.print(Rule(f"[bold bright_cyan] ◆  {title}  ◆ [/bold bright_cyan]", style="bright_cyan", characters="─"))
    out.print()


def debug(msg: str) -> None:
    """Diagnostic line on stderr, shown only in verbose mode."""
    if SETTINGS.verbose:
        err_console.print(f"[cyan][DEBUG][/cyan] {msg}", highlight=False)


# ── Input helpers ─────────────────────────────────────────────────────────────


def prompt(label: str, default: str = "") -> str:
    """Read one line from the terminal; empty input, EOF or Ctrl-C give *default*."""
    suffix = f" [dim bright_cyan]({default})[/dim bright_cyan]" if default else ""
    try:
        value = console.input(f"  [bold bright_yellow]❯[/bold bright_yellow] [bold]{label}{suffix}[/bold]: ").strip()
    except (EOFError, KeyboardInterrupt):
        console.print()
        return default
    return value or default


_IPV4_RE = re.compile(r"^\d+\.\d+\.\d+\.\d+$")
_HOSTNAME_RE = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9.-]*[A-Za-z0-9])?$")


def validate_target(target: str) -> Tuple[bool, str]:
    """Return *(True, cleaned_target)* if *target* is a dotted-quad IPv4 or hostname."""
    target = target.strip()
    if not target:
        return False, "Target cannot be empty."
    if _IPV4_RE.match(target):
        if all(0 <= int(octet) <= 255 for octet in target.split(".")):
            return True, target
        return False, f"'{target}' is not a valid IPv4 address (octets must be 0-255)."
    if _HOSTNAME_RE.match(target):
        return True, target
    return False, (
        f"Invalid target format '{target}'. "
        "Expected: IP address (e.g., 1.1.1.1) or hostname (e.g., google.com)"
    )


# ── Subprocess wrapper ────────────────────────────────────────────────────────


def _decode(data: Optional[bytes]) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


def run_command(
    cmd: list[str],
    timeout: float = 60,
    capture: bool = True,
) -> Tuple[int, str, str]:
    """Run *cmd* and return ``(returncode, stdout, stderr)``.

    Output is decoded leniently so non-ASCII characters never crash the tool.
    A missing binary yields ``-1``, a timeout ``-2`` and any other OS error ``-3``.
    """
    debug(f"run: {' '.join(cmd)}")
    try:
        proc = subprocess.run(cmd, capture_output=capture, timeout=timeout)
        return proc.returncode, _decode(proc.stdout), _decode(proc.stderr)
    except FileNotFoundError:
        return -1, "", f"Command not found: {cmd[0]}"
    except subprocess.TimeoutExpired:
        return -2, "", f"Command timed out after {timeout}s"
    except OSError as exc:
        return -3, "", str(exc)


def check_tool_available(tool_attr: str) -> bool:
    """True when *tool_attr* (``ping``, ``ip``, ``netplan``) was found on PATH."""
    return getattr(PLATFORM, tool_attr, None) is not None


def require_tool(tool_attr: str) -> None:
    """Raise :class:`ToolMissingError` unless *tool_attr* is on PATH."""
    if not check_tool_available(tool_attr):
        raise ToolMissingError(tool_attr, REQUIRED_PACKAGES.get(tool_attr, ""))


def require_root(*, needs_root: bool) -> None:
    if needs_root and os.geteuid() != 0:
        raise PrivilegeError("This operation must be run as root (sudo).")


def error_result(exc: Exception, target: str = "") -> TestResult:
    """Return a standardised ERROR result for a fatal session error."""
    return TestResult(
        title=getattr(exc, "title", "Error"),
        status=Status.ERROR,
        target=target,
        summary=str(exc),
    )
