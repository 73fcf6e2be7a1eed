"""
Outbound interface inspection and the live MTU mutator (Linux ``ip``).
"""

from __future__ import annotations

import pathlib
import re
import socket
from dataclasses import dataclass
from typing import Optional

from mtuopt.core.errors import MtuUnreadableError, NetworkEnvironmentError, NoRouteError
from mtuopt.core.utils import (
    Status,
    TestResult,
    debug,
    require_tool,
    run_command,
)


@dataclass(frozen=True)
class Interface:
    """Interface used to reach the target; *mtu* is the rollback baseline."""

    name: str
    mtu: int
    gateway: Optional[str] = None


def resolve_target(target: str) -> str:
    """Resolve *target* to an IPv4 address (``ip route get`` needs one)."""
    try:
        return socket.gethostbyname(target)
    except (socket.gaierror, UnicodeError) as exc:
        raise NoRouteError(f"Could not resolve target '{target}': {exc}") from exc


def route_interface(address: str) -> Optional[str]:
    _, stdout, _ = run_command(["ip", "route", "get", address], timeout=5)
    m = re.search(r"\bdev\s+(\S+)", stdout)
    return m.group(1) if m else None


def default_gateway() -> Optional[str]:
    _, stdout, _ = run_command(["ip", "route", "show", "default", "0.0.0.0/0"], timeout=5)
    m = re.search(r"default\s+via\s+([\d.]+)", stdout)
    return m.group(1) if m else None


def read_iface_mtu(iface: str) -> int:
    """Current MTU of *iface* from sysfs, falling back to ``ip link show``."""
    try:
        return int(pathlib.Path(f"/sys/class/net/{iface}/mtu").read_text().strip())
    except (OSError, ValueError):
        pass
    _, stdout, _ = run_command(["ip", "link", "show", iface], timeout=5)
    m = re.search(r"\bmtu\s+(\d+)", stdout)
    if not m:
        raise MtuUnreadableError(f"Could not determine MTU for interface '{iface}'.")
    return int(m.group(1))


def set_iface_mtu(iface: str, mtu: int) -> None:
    """Set the live MTU; idempotent, not persisted across reboot."""
    debug(f"ip link set dev {iface} mtu {mtu}")
    rc, _, stderr = run_command(["ip", "link", "set", "dev", iface, "mtu", str(mtu)], timeout=10)
    if rc != 0:
        raise NetworkEnvironmentError(
            f"Failed to set MTU {mtu} on {iface}: {stderr.strip() or f'exit code {rc}'}"
        )


def uses_dhcp4(iface: str) -> bool:
    """True if *iface* currently holds a dynamically assigned IPv4 address."""
    _, stdout, _ = run_command(["ip", "-4", "addr", "show", "dev", iface], timeout=5)
    return bool(re.search(r"\binet\s.*\bdynamic\b", stdout))


# ── Public API ────────────────────────────────────────────────────────────────


def detect_interface(target: str) -> Interface:
    """Find the interface that routes to *target* and snapshot its MTU."""
    require_tool("ip")
    address = resolve_target(target)
    name = route_interface(address)
    debug(f"Detected interface: {name}")
    if not name:
        raise NoRouteError(f"No route to target '{target}'. Check connectivity.")
    return Interface(name=name, mtu=read_iface_mtu(name), gateway=default_gateway())


def interface_result(iface: Interface, target: str) -> TestResult:
    return TestResult(
        title="Network Configuration",
        status=Status.SUCCESS,
        target=target,
        summary=f"Reaching {target} via {iface.name} (MTU {iface.mtu}).",
        details=[
            f"Interface:    {iface.name}",
            f"Current MTU:  {iface.mtu}",
            f"Gateway:      {iface.gateway or 'N/A'}",
            f"Target:       {target}",
        ],
    )
