"""
Interactive pieces of the CLI: banner, analysis table and the apply menu.

The menu only gathers the user's decision; what each choice does lives in
:class:`mtuopt.core.session.SessionController`.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

from mtuopt import __app_name__, __version__
from mtuopt.config import PLATFORM
from mtuopt.core.session import ApplyMode, SessionReport
from mtuopt.core.stability import (
    JITTER_EXCELLENT,
    JITTER_OK,
    LOSS_ACCEPTABLE,
    LOSS_PERFECT,
)
from mtuopt.core.session_log import SessionLogger
from mtuopt.core.utils import console, prompt


# (key, label, description, mode)
MENU_ITEMS: List[Tuple[str, str, str, ApplyMode]] = [
    ("1", "[green]Apply Temporarily[/green]", "Lost on reboot - good for testing", ApplyMode.TEMPORARY),
    ("2", "[red]Apply Permanently[/red]", "Writes a Netplan override", ApplyMode.PERMANENT),
    ("3", "Exit", "Do nothing", ApplyMode.NONE),
]

_LOSS_STYLE = {LOSS_PERFECT: "green", LOSS_ACCEPTABLE: "yellow"}
_JITTER_STYLE = {JITTER_EXCELLENT: "green", JITTER_OK: "yellow"}


def print_banner(out: Optional[Console] = None) -> None:
    out = out or console
    tools = []
    for tool in ("ping", "ip", "netplan"):
        if getattr(PLATFORM, tool, None):
            tools.append(f"[green]✔ {tool}[/green]")
        else:
            tools.append(f"[dim]✘ {tool}[/dim]")

    logger = SessionLogger.get()
    log_line = f"[dim]{logger.log_path}[/dim]" if logger.enabled else "[dim]disabled[/dim]"

    out.print()
    out.print(Panel(
        f"  [bold white]{__app_name__}[/bold white]  [dim]v{__version__}[/dim]\n"
        f"  [dim]Path MTU discovery & stability analyzer[/dim]\n"
        f"  [dim]───────────────────────────────────────────────────────[/dim]\n"
        f"  [bold]💻 OS:[/bold]  {PLATFORM.system} {PLATFORM.release}\n"
        f"  [bold]🔧 Tools:[/bold]  {'  '.join(tools)}\n"
        f"  [bold]📝 Log:[/bold]  {log_line}",
        border_style="bright_cyan",
        box=box.DOUBLE_EDGE,
        expand=True,
        padding=(1, 2),
    ))


def render_analysis(report: SessionReport, out: Optional[Console] = None) -> None:
    """METRIC / VALUE / STATUS table followed by the recommendation."""
    out = out or console
    stab = report.stability

    table = Table(box=box.ROUNDED, border_style="cyan", expand=False)
    table.add_column("METRIC", style="bold white", min_width=20)
    table.add_column("VALUE", min_width=15)
    table.add_column("STATUS", min_width=20)

    loss_style = _LOSS_STYLE.get(stab.loss_status, "red")
    jitter_style = _JITTER_STYLE.get(stab.jitter_status, "red")
    avg = f"{stab.avg_rtt_ms} ms" if stab.avg_rtt_ms is not None else "N/A"

    table.add_row("Packet Loss", f"{stab.loss_percent}%", f"[{loss_style}]{stab.loss_status}[/{loss_style}]")
    table.add_row("Avg Latency", avg, "INFO")
    table.add_row("Jitter (Deviation)", f"{stab.jitter_ms} ms", f"[{jitter_style}]{stab.jitter_status}[/{jitter_style}]")

    out.print()
    out.print(table)
    out.print()
    out.print("[bold]OPTIMIZED RECOMMENDATION:[/bold]")
    out.print(f"Optimal MTU:  [green]{report.recommendation.recommended_mtu}[/green]")
    out.print(f"Reasoning:    {report.recommendation.message}")
    out.print()


def _print_menu() -> None:
    table = Table(show_header=False, box=None, padding=(0, 1), pad_edge=False)
    table.add_column("No.", style="bold cyan", width=6, justify="right")
    table.add_column("Name", min_width=20)
    table.add_column("Desc", style="dim")
    for key, label, desc, _ in MENU_ITEMS:
        table.add_row(f"[{key}]", label, desc)
    console.print("  [bold bright_white]Select an action:[/bold bright_white]")
    console.print(table)
    console.print()


def choose_apply_mode() -> ApplyMode:
    """Ask until a valid choice is given; EOF or Ctrl-C at the prompt means Exit."""
    modes = {key: mode for key, _, _, mode in MENU_ITEMS}
    while True:
        _print_menu()
        choice = prompt("Enter choice [1-3]", default="3")
        if choice in modes:
            if modes[choice] is ApplyMode.NONE:
                console.print("  Exiting without changes.")
            return modes[choice]
        console.print(f"  [bold red]✘ Invalid choice '{choice}'. Please enter 1, 2, or 3.[/bold red]")
