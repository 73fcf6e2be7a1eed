"""
Don't-fragment ICMP echo probes, the only code that talks to ``ping``.

Everything about ping's textual output is parsed here and handed to the
rest of the package as :class:`ProbeResult` / :class:`BurstResult`.  A lost
probe is a normal outcome, never an exception; only a missing or broken
network stack is fatal.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

from mtuopt.config import (
    DEFAULT_PING_INTERVAL_MS,
    DEFAULT_PROBE_TIMEOUT_MS,
    PLATFORM,
    VERIFY_PROBE_COUNT,
)
from mtuopt.core.errors import NetworkEnvironmentError
from mtuopt.core.utils import debug, require_tool, run_command


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single echo probe."""

    attempted_payload_bytes: Optional[int]
    succeeded: bool
    round_trip_time_ms: Optional[float] = None


@dataclass(frozen=True)
class BurstResult:
    """Outcome of *sent* sequential probes plus ping's own RTT summary."""

    payload_bytes: Optional[int]
    sent: int
    received: int
    outcomes: Tuple[ProbeResult, ...] = ()
    min_ms: Optional[float] = None
    avg_ms: Optional[float] = None
    max_ms: Optional[float] = None
    mdev_ms: Optional[float] = None
    raw_output: str = field(default="", repr=False)

    @property
    def lost(self) -> int:
        return self.sent - self.received

    @property
    def loss_percent(self) -> float:
        """Loss over probes *sent*, independent of how many carried timing."""
        if self.sent <= 0:
            return 100.0
        return 100.0 * self.lost / self.sent


# ── Command building ──────────────────────────────────────────────────────────


def _timeout_arg(timeout_ms: int) -> str:
    if PLATFORM.is_macos:
        return str(max(1, int(timeout_ms)))
    # iputils wants whole seconds
    return str(max(1, math.ceil(timeout_ms / 1000)))


def _build_ping_cmd(
    target: str,
    payload_bytes: Optional[int],
    count: int = 1,
    interval_ms: Optional[int] = None,
    timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
    df: bool = True,
) -> list[str]:
    """Build a ``ping`` invocation; DF is only meaningful with an explicit size."""
    cmd = ["ping", "-c", str(count)]
    if interval_ms is not None and count > 1:
        cmd += ["-i", f"{interval_ms / 1000:g}"]
    if payload_bytes is not None:
        if df:
            # macOS: -D sets DF; Linux: -M do prohibits fragmentation
            cmd += ["-D"] if PLATFORM.is_macos else ["-M", "do"]
        cmd += ["-s", str(payload_bytes)]
    cmd += ["-W", _timeout_arg(timeout_ms), "--", target]
    return cmd


# ── Output parsing ────────────────────────────────────────────────────────────


_FAILURE_INDICATORS = (
    "frag needed",
    "message too long",
    "packet needs to be fragmented",
    "100% loss",
    "100% packet loss",
    "100.0% packet loss",
    "destination host unreachable",
)


def _parse_replies(output: str) -> Dict[int, Optional[float]]:
    """Map icmp_seq -> RTT (ms) for every echo reply in *output*."""
    replies: Dict[int, Optional[float]] = {}
    for line in output.splitlines():
        if "bytes from" not in line or "DUP!" in line:
            continue
        seq = re.search(r"icmp_seq=(\d+)", line)
        if not seq:
            continue
        rtt = re.search(r"time[=<]([\d.]+)\s*ms", line)
        replies[int(seq.group(1))] = float(rtt.group(1)) if rtt else None
    return replies


def _parse_ping_stats(output: str) -> dict:
    """Extract transmit/receive counts, loss and RTT statistics from ping output."""
    stats: dict = {}

    counts = re.search(
        r"(\d+)\s+packets\s+transmitted,\s*(\d+)\s+(?:packets\s+)?received",
        output,
        re.IGNORECASE,
    )
    if counts:
        stats["transmitted"] = int(counts.group(1))
        stats["received"] = int(counts.group(2))

    loss_match = re.search(r"(\d+(?:\.\d+)?)%\s*(?:packet\s*)?loss", output, re.IGNORECASE)
    if loss_match:
        stats["packet_loss"] = float(loss_match.group(1))

    # Linux: rtt min/avg/max/mdev = 1.234/2.345/3.456/0.567 ms
    # macOS: round-trip min/avg/max/stddev = ...
    rtt = re.search(
        r"(?:rtt|round-trip)\s+min/avg/max/(?:mdev|stddev)\s*=\s*"
        r"([\d.]+)/([\d.]+)/([\d.]+)(?:/([\d.]+))?\s*ms",
        output,
        re.IGNORECASE,
    )
    if rtt:
        stats["min_ms"] = float(rtt.group(1))
        stats["avg_ms"] = float(rtt.group(2))
        stats["max_ms"] = float(rtt.group(3))
        if rtt.group(4) is not None:
            stats["mdev_ms"] = float(rtt.group(4))

    return stats


def _run_ping(cmd: list[str], timeout_s: float) -> Tuple[int, str, str]:
    """Run ping; a vanished binary or OS-level failure is fatal, a timeout is not."""
    rc, stdout, stderr = run_command(cmd, timeout=timeout_s)
    if rc == -1:
        require_tool("ping")
        raise NetworkEnvironmentError(stderr)
    if rc == -3:
        raise NetworkEnvironmentError(f"Network stack unavailable: {stderr}")
    return rc, stdout, stderr


# ── Public API ────────────────────────────────────────────────────────────────


def probe_once(
    target: str,
    payload_bytes: Optional[int],
    timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
    df: bool = True,
) -> ProbeResult:
    """Send exactly one echo request; success iff a reply arrives in time."""
    require_tool("ping")
    cmd = _build_ping_cmd(target, payload_bytes, count=1, timeout_ms=timeout_ms, df=df)
    rc, stdout, stderr = _run_ping(cmd, timeout_ms / 1000 + 5)

    output = (stdout + stderr).lower()
    ok = rc == 0 and not any(ind in output for ind in _FAILURE_INDICATORS)
    rtt = None
    if ok:
        replies = _parse_replies(stdout)
        rtt = next(iter(replies.values()), None)
    debug(f"probe {target} payload={payload_bytes} -> {'ok' if ok else 'fail'}")
    return ProbeResult(attempted_payload_bytes=payload_bytes, succeeded=ok, round_trip_time_ms=rtt)


def probe_burst(
    target: str,
    payload_bytes: Optional[int],
    count: int,
    interval_ms: int = DEFAULT_PING_INTERVAL_MS,
    timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
    df: bool = True,
) -> BurstResult:
    """Send *count* probes *interval_ms* apart and aggregate the outcome."""
    require_tool("ping")
    cmd = _build_ping_cmd(target, payload_bytes, count, interval_ms, timeout_ms, df)
    budget = count * (interval_ms + timeout_ms) / 1000 + 10
    _, stdout, stderr = _run_ping(cmd, budget)
    output = stdout + stderr

    replies = _parse_replies(output)
    stats = _parse_ping_stats(output)

    first_seq = 0 if PLATFORM.is_macos else 1
    outcomes = tuple(
        ProbeResult(
            attempted_payload_bytes=payload_bytes,
            succeeded=(first_seq + i) in replies,
            round_trip_time_ms=replies.get(first_seq + i),
        )
        for i in range(count)
    )

    received = stats.get("received", len(replies))
    received = max(0, min(received, count))

    result = BurstResult(
        payload_bytes=payload_bytes,
        sent=count,
        received=received,
        outcomes=outcomes,
        min_ms=stats.get("min_ms"),
        avg_ms=stats.get("avg_ms"),
        max_ms=stats.get("max_ms"),
        mdev_ms=stats.get("mdev_ms"),
        raw_output=output.strip(),
    )
    debug(
        f"burst {target} payload={payload_bytes}: {result.received}/{result.sent} received, "
        f"avg={result.avg_ms} mdev={result.mdev_ms}"
    )
    return result


def probe(
    target: str,
    payload_bytes: Optional[int],
    count: int = 1,
    interval_ms: int = DEFAULT_PING_INTERVAL_MS,
    per_probe_timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
) -> Union[ProbeResult, BurstResult]:
    """Single-probe mode for ``count == 1``, burst mode otherwise."""
    if count == 1:
        return probe_once(target, payload_bytes, per_probe_timeout_ms)
    return probe_burst(target, payload_bytes, count, interval_ms, per_probe_timeout_ms)


def verify_connectivity(
    target: str,
    count: int = VERIFY_PROBE_COUNT,
    timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
) -> bool:
    """Post-change check: a small default-size burst, any reply counts."""
    burst = probe_burst(target, None, count, interval_ms=1000, timeout_ms=timeout_ms, df=False)
    return burst.received > 0
