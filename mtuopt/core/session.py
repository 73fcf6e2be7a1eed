"""
Session orchestration: detect -> discover -> stress test -> recommend -> apply.

:class:`SessionController` owns the :class:`SessionState` for the whole run.
Its :class:`RollbackGuard` is entered around the pipeline, so any exit path
(normal return, error, Ctrl-C, SIGTERM/SIGHUP) restores the original MTU if a
live change is still outstanding.
"""

from __future__ import annotations

import signal
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union

from mtuopt.config import (
    DEFAULT_MAX_PAYLOAD,
    DEFAULT_MIN_PAYLOAD,
    DEFAULT_PING_INTERVAL_MS,
    DEFAULT_PROBE_TIMEOUT_MS,
    DEFAULT_STRESS_COUNT,
    DEFAULT_TARGET,
    SETTLE_SECONDS,
)
from mtuopt.core.apply import ApplyOutcome, MtuApplier, apply_result
from mtuopt.core.errors import InvalidTargetError, MtuOptError
from mtuopt.core.mtu import DiscoveryResult, discover, discovery_result
from mtuopt.core.net_info import Interface, detect_interface, interface_result, set_iface_mtu
from mtuopt.core.recommend import Recommendation, recommend, recommendation_result
from mtuopt.core.stability import StabilityReport, assess_stability, stability_result
from mtuopt.core.utils import TestResult, err_console, require_root, validate_target


class SessionInterrupted(KeyboardInterrupt):
    """Raised from the SIGTERM/SIGHUP handler so cleanup runs like Ctrl-C."""

    def __init__(self, signum: int) -> None:
        self.signum = signum
        super().__init__(f"Received signal {signum}")


class ApplyMode(Enum):
    NONE = "none"
    TEMPORARY = "temporary"
    PERMANENT = "permanent"


@dataclass
class SessionState:
    interface: Optional[str] = None
    original_mtu: Optional[int] = None
    mtu_changed: bool = False


@dataclass(frozen=True)
class SessionParams:
    target: str = DEFAULT_TARGET
    min_payload: int = DEFAULT_MIN_PAYLOAD
    max_payload: int = DEFAULT_MAX_PAYLOAD
    stress_count: int = DEFAULT_STRESS_COUNT
    interval_ms: int = DEFAULT_PING_INTERVAL_MS
    probe_timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS
    settle_seconds: float = SETTLE_SECONDS


@dataclass
class SessionReport:
    target: str
    interface: Interface
    discovery: DiscoveryResult
    stability: StabilityReport
    recommendation: Recommendation
    apply_outcome: Optional[ApplyOutcome] = None
    apply_mode: ApplyMode = ApplyMode.NONE

    @property
    def original_mtu(self) -> int:
        return self.interface.mtu

    @property
    def theoretical_mtu(self) -> int:
        return self.discovery.theoretical_mtu

    def to_dict(self) -> dict:
        outcome = self.apply_outcome
        return {
            "target": self.target,
            "interface": {
                "name": self.interface.name,
                "original_mtu": self.interface.mtu,
                "gateway": self.interface.gateway,
            },
            "discovery": {
                "max_payload": self.discovery.max_payload_bytes,
                "theoretical_mtu": self.discovery.theoretical_mtu,
                "probes": self.discovery.probes,
            },
            "stability": {
                "sent": self.stability.sent,
                "received": self.stability.received,
                "loss_percent": self.stability.loss_percent,
                "loss_status": self.stability.loss_status,
                "avg_rtt_ms": self.stability.avg_rtt_ms,
                "jitter_ms": self.stability.jitter_ms,
                "jitter_status": self.stability.jitter_status,
            },
            "recommendation": {
                "mtu": self.recommendation.recommended_mtu,
                "reason": self.recommendation.reason.name,
                "message": self.recommendation.message,
            },
            "apply": {
                "mode": self.apply_mode.value,
                "state": outcome.state.value if outcome else None,
                "live_mtu": outcome.live_mtu if outcome else None,
                "message": outcome.message if outcome else None,
                "fragment_path": outcome.fragment_path if outcome else None,
            },
        }


class RollbackGuard:
    """Scoped owner of the "pending rollback" responsibility.

    ``arm()`` after a live mutation, ``release()`` once it is verified or
    reverted.  Leaving the ``with`` block while armed forces the original MTU
    back onto the interface and reports it on stderr.
    """

    _SIGNALS = (signal.SIGTERM, signal.SIGHUP)

    def __init__(self, state: SessionState) -> None:
        self._state = state
        self._saved_handlers: dict = {}

    @property
    def armed(self) -> bool:
        return self._state.mtu_changed

    def arm(self) -> None:
        self._state.mtu_changed = True

    def release(self) -> None:
        self._state.mtu_changed = False

    def rollback(self) -> bool:
        """Restore the original MTU if a change is outstanding."""
        st = self._state
        if not (st.mtu_changed and st.interface and st.original_mtu):
            return False
        err_console.print(
            f"\n[yellow][*] Cleanup: Restoring original MTU {st.original_mtu} on {st.interface}...[/yellow]"
        )
        try:
            set_iface_mtu(st.interface, st.original_mtu)
        except MtuOptError as exc:
            err_console.print(f"[bold red][!] Rollback failed:[/bold red] {exc}")
            raise
        self.release()
        return True

    def _on_signal(self, signum, frame):
        raise SessionInterrupted(signum)

    def __enter__(self) -> "RollbackGuard":
        if threading.current_thread() is threading.main_thread():
            for sig in self._SIGNALS:
                self._saved_handlers[sig] = signal.signal(sig, self._on_signal)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            # a second SIGTERM/SIGHUP must not cut the restore short
            for sig in self._saved_handlers:
                signal.signal(sig, signal.SIG_IGN)
            self.rollback()
        finally:
            for sig, handler in self._saved_handlers.items():
                signal.signal(sig, handler)
            self._saved_handlers.clear()
        return False


ModeChooser = Callable[[SessionReport], ApplyMode]


class SessionController:
    """Drives one optimisation session in strict stage order."""

    def __init__(
        self,
        params: SessionParams,
        reporter: Optional[Callable[[TestResult], None]] = None,
        progress: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.params = params
        self.state = SessionState()
        self.guard = RollbackGuard(self.state)
        self._reporter = reporter
        self._progress = progress

    def _report(self, result: TestResult) -> None:
        if self._reporter:
            self._reporter(result)

    def _say(self, msg: str) -> None:
        if self._progress:
            self._progress(msg)

    def _apply(self, mode: ApplyMode, report: SessionReport) -> Optional[ApplyOutcome]:
        if mode is ApplyMode.NONE:
            return None
        require_root(needs_root=True)
        applier = MtuApplier(self.guard, settle_seconds=self.params.settle_seconds)
        args = (
            report.recommendation.recommended_mtu,
            report.interface.name,
            report.target,
            report.interface.mtu,
        )
        if mode is ApplyMode.TEMPORARY:
            self._say(f"Applying MTU {args[0]} to {args[1]} temporarily...")
            return applier.apply_temporary(*args)
        self._say("Testing configuration safety first...")
        return applier.apply_permanent(*args)

    def run(self, mode: Union[ApplyMode, ModeChooser] = ApplyMode.NONE) -> SessionReport:
        """Run the full pipeline; *mode* is an :class:`ApplyMode` or a chooser callback."""
        p = self.params
        ok, target = validate_target(p.target)
        if not ok:
            raise InvalidTargetError(target)

        with self.guard:
            self._say("[1/5] Detecting Network Configuration...")
            iface = detect_interface(target)
            self.state.interface = iface.name
            self.state.original_mtu = iface.mtu
            self._report(interface_result(iface, target))

            self._say("[2/5] Calculating Max Unfragmented Payload (Binary Search)...")
            disc = discover(target, p.min_payload, p.max_payload, p.probe_timeout_ms)
            self._report(discovery_result(disc, target))

            self._say(
                f"[3/5] Running Stability Stress Test ({p.stress_count} packets, "
                f"approx {p.stress_count * p.interval_ms // 1000} seconds)..."
            )
            stab = assess_stability(
                target, disc.max_payload_bytes, p.stress_count, p.interval_ms, p.probe_timeout_ms
            )
            self._report(stability_result(stab, target))

            self._say("[4/5] Detailed Results Analysis")
            rec = recommend(disc.theoretical_mtu, stab.loss_percent, stab.jitter_ms)
            self._report(recommendation_result(rec, disc.theoretical_mtu, target))

            report = SessionReport(target, iface, disc, stab, rec)

            self._say("[5/5] Application Options")
            chosen = mode if isinstance(mode, ApplyMode) else mode(report)
            report.apply_mode = chosen
            report.apply_outcome = self._apply(chosen, report)
            if report.apply_outcome:
                self._report(apply_result(report.apply_outcome))

        return report
