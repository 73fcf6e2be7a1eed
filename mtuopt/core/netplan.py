"""
Persistent network configuration via a Netplan override fragment.

One fragment, scoped to a single interface, at ``/etc/netplan/99-mtu-optimizer.yaml``.
Netplan merges it over the system's own files on ``netplan apply``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from mtuopt.config import NETPLAN_FRAGMENT
from mtuopt.core.utils import check_tool_available, debug, run_command

_FRAGMENT_PATH = NETPLAN_FRAGMENT


def netplan_available() -> bool:
    return check_tool_available("netplan")


def build_fragment(iface: str, mtu: int, *, dhcp4: bool) -> str:
    """Render the override; ``dhcp4`` is only written when the interface uses DHCP."""
    lines = [
        "network:",
        "  version: 2",
        "  ethernets:",
        f"    {iface}:",
        f"      mtu: {mtu}",
    ]
    if dhcp4:
        lines.append("      dhcp4: true")
    return "\n".join(lines) + "\n"


def write_fragment(text: str, path: Optional[Path] = None) -> Optional[str]:
    """Write *text* (mode 0600) and return the previous content, if any."""
    path = path or _FRAGMENT_PATH
    previous = path.read_text() if path.exists() else None
    path.write_text(text)
    os.chmod(path, 0o600)
    debug(f"wrote {path}")
    return previous


def restore_fragment(previous: Optional[str], path: Optional[Path] = None) -> None:
    """Put back what :func:`write_fragment` replaced, or remove the file."""
    path = path or _FRAGMENT_PATH
    if previous is None:
        if path.exists():
            path.unlink()
        return
    path.write_text(previous)
    os.chmod(path, 0o600)


def netplan_apply() -> bool:
    rc, _, stderr = run_command(["netplan", "apply"], timeout=120)
    if rc != 0:
        debug(f"netplan apply failed (rc={rc}): {stderr.strip()}")
    return rc == 0
