"""
Stability stress test: sustained DF-bit ping burst at the discovered payload.

Loss is counted over probes sent.  Jitter is ping's ``mdev`` (stddev on
macOS); when the platform does not report it, jitter is taken as 0 and
the link reads as EXCELLENT rather than unknown.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from mtuopt.config import (
    DEFAULT_PING_INTERVAL_MS,
    DEFAULT_PROBE_TIMEOUT_MS,
    DEFAULT_STRESS_COUNT,
)
from mtuopt.core.probe import probe_burst
from mtuopt.core.utils import Status, TestResult, debug

# Informational bands only; the recommendation has its own thresholds.
LOSS_PERFECT = "PERFECT"
LOSS_ACCEPTABLE = "ACCEPTABLE"
LOSS_CRITICAL = "CRITICAL"
JITTER_EXCELLENT = "EXCELLENT"
JITTER_OK = "OK"
JITTER_UNSTABLE = "UNSTABLE"


@dataclass(frozen=True)
class StabilityReport:
    payload_bytes: int
    sent: int
    received: int
    loss_percent: int
    avg_rtt_ms: Optional[float] = None
    jitter_ms: float = 0.0
    raw_output: str = ""

    @property
    def jitter_int(self) -> int:
        """Jitter with the fractional part discarded."""
        return int(self.jitter_ms)

    @property
    def loss_status(self) -> str:
        return classify_loss(self.loss_percent)

    @property
    def jitter_status(self) -> str:
        return classify_jitter(self.jitter_ms)


def classify_loss(loss_percent: int) -> str:
    if loss_percent == 0:
        return LOSS_PERFECT
    if loss_percent < 2:
        return LOSS_ACCEPTABLE
    return LOSS_CRITICAL


def classify_jitter(jitter_ms: float) -> str:
    jitter = int(jitter_ms)
    if jitter < 5:
        return JITTER_EXCELLENT
    if jitter < 20:
        return JITTER_OK
    return JITTER_UNSTABLE


# ── Public API ────────────────────────────────────────────────────────────────


def assess_stability(
    target: str,
    payload_bytes: int,
    sample_count: int = DEFAULT_STRESS_COUNT,
    interval_ms: int = DEFAULT_PING_INTERVAL_MS,
    timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
) -> StabilityReport:
    """Run a *sample_count* burst at *payload_bytes* and summarise it.

    A burst with every probe lost is still a valid report (loss 100%).
    """
    burst = probe_burst(target, payload_bytes, sample_count, interval_ms, timeout_ms)

    report = StabilityReport(
        payload_bytes=payload_bytes,
        sent=burst.sent,
        received=burst.received,
        loss_percent=int(math.floor(burst.loss_percent)),
        avg_rtt_ms=burst.avg_ms,
        jitter_ms=burst.mdev_ms if burst.mdev_ms is not None else 0.0,
        raw_output=burst.raw_output,
    )
    debug(f"Parsed packet loss: {report.loss_percent}%")
    debug(f"Parsed timing - Avg: {report.avg_rtt_ms} ms, Mdev: {report.jitter_ms} ms")
    return report


def stability_result(report: StabilityReport, target: str) -> TestResult:
    avg = f"{report.avg_rtt_ms} ms" if report.avg_rtt_ms is not None else "N/A"
    details = [
        f"Payload: {report.payload_bytes} bytes  |  Sent: {report.sent}  |  Received: {report.received}",
        f"Packet loss: {report.loss_percent}%  ({report.loss_status})",
        f"Avg latency: {avg}",
        f"Jitter (deviation): {report.jitter_ms} ms  ({report.jitter_status})",
    ]

    if report.loss_status == LOSS_CRITICAL or report.jitter_status == JITTER_UNSTABLE:
        status = Status.FAILURE
    elif report.loss_status == LOSS_PERFECT and report.jitter_status == JITTER_EXCELLENT:
        status = Status.SUCCESS
    else:
        status = Status.PARTIAL

    return TestResult(
        title="Stability Stress Test",
        status=status,
        target=target,
        summary=f"Loss {report.loss_percent}%, avg latency {avg}, jitter {report.jitter_ms} ms.",
        details=details,
        raw_output=report.raw_output,
    )
