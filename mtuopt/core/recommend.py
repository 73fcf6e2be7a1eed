"""
Safety-cushion policy: map measured stability to a recommended MTU.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from mtuopt.core.utils import Status, TestResult

LOSS_CUSHION = 10
JITTER_CUSHION = 8
JITTER_THRESHOLD_MS = 10


class ReasonCode(Enum):
    OPTIMAL = "Max efficiency. No issues detected."
    LOSS_DETECTED = f"Packet loss detected. Reduced by {LOSS_CUSHION} for stability."
    JITTER_DETECTED = f"High Jitter detected. Reduced by {JITTER_CUSHION} for smoother flow."


@dataclass(frozen=True)
class Recommendation:
    recommended_mtu: int
    reason: ReasonCode

    @property
    def message(self) -> str:
        return self.reason.value


def recommend(theoretical_mtu: int, loss_percent: int, jitter_ms: float) -> Recommendation:
    """Loss wins over jitter; at most one cushion is ever applied.

    The result is not clamped; callers validate it before applying.
    """
    if loss_percent != 0:
        return Recommendation(theoretical_mtu - LOSS_CUSHION, ReasonCode.LOSS_DETECTED)
    if int(jitter_ms) >= JITTER_THRESHOLD_MS:
        return Recommendation(theoretical_mtu - JITTER_CUSHION, ReasonCode.JITTER_DETECTED)
    return Recommendation(theoretical_mtu, ReasonCode.OPTIMAL)


def recommendation_result(rec: Recommendation, theoretical_mtu: int, target: str) -> TestResult:
    return TestResult(
        title="Optimized Recommendation",
        status=Status.SUCCESS if rec.reason is ReasonCode.OPTIMAL else Status.PARTIAL,
        target=target,
        summary=f"Optimal MTU: {rec.recommended_mtu}",
        details=[
            f"Reasoning: {rec.message}",
            f"Theoretical MTU: {theoretical_mtu}",
        ],
    )
