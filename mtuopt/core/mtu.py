"""
Path MTU discovery by binary search over DF-bit probe payloads.

The theoretical MTU is the largest passing payload plus the 28-byte
IPv4 + ICMP header.
"""

from __future__ import annotations

from dataclasses import dataclass

from mtuopt.config import (
    DEFAULT_MAX_PAYLOAD,
    DEFAULT_MIN_PAYLOAD,
    DEFAULT_PROBE_TIMEOUT_MS,
    HEADER_SIZE,
)
from mtuopt.core.errors import DiscoveryFailed, InvalidRangeError
from mtuopt.core.probe import probe_once
from mtuopt.core.utils import Status, TestResult, debug


@dataclass(frozen=True)
class DiscoveryResult:
    max_payload_bytes: int
    probes: int = 0

    @property
    def theoretical_mtu(self) -> int:
        return self.max_payload_bytes + HEADER_SIZE


# ── Public API ────────────────────────────────────────────────────────────────


def discover(
    target: str,
    min_payload: int = DEFAULT_MIN_PAYLOAD,
    max_payload: int = DEFAULT_MAX_PAYLOAD,
    timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
) -> DiscoveryResult:
    """Binary-search [*min_payload*, *max_payload*] for the largest passing payload.

    Assumes pass/fail is monotonic in payload size, as PMTUD always does.
    Raises :class:`DiscoveryFailed` when nothing in range passes, which
    includes a path narrower than *min_payload*.
    """
    if min_payload < 0 or max_payload < min_payload:
        raise InvalidRangeError(
            f"Invalid payload range [{min_payload}, {max_payload}]."
        )

    low, high = min_payload, max_payload
    best = None
    probes = 0

    while low <= high:
        mid = (low + high) // 2
        debug(f"Testing payload size: {mid} (low={low}, high={high})")
        probes += 1
        if probe_once(target, mid, timeout_ms).succeeded:
            best = mid
            low = mid + 1
        else:
            high = mid - 1

    if best is None:
        raise DiscoveryFailed(
            f"All pings to {target} failed between {min_payload} and {max_payload} bytes. "
            "Check firewall or connectivity."
        )

    return DiscoveryResult(max_payload_bytes=best, probes=probes)


# (lower bound, status, note) from largest to smallest
_PATH_BANDS = (
    (1500, Status.SUCCESS, "full Ethernet frame fits"),
    (1400, Status.PARTIAL, "a tunnel or PPPoE header is eating into the frame"),
    (0, Status.PARTIAL, "heavy encapsulation or a restrictive hop on the path"),
)


def discovery_result(result: DiscoveryResult, target: str) -> TestResult:
    mtu = result.theoretical_mtu
    status, note = next((s, n) for floor, s, n in _PATH_BANDS if mtu >= floor)
    return TestResult(
        title="Path MTU Discovery",
        status=status,
        target=target,
        summary=f"Largest unfragmented payload: {result.max_payload_bytes} bytes ({note}).",
        details=[
            f"Theoretical MTU (payload + {HEADER_SIZE}-byte header): {mtu} bytes",
            f"Probes sent: {result.probes}",
        ],
    )
