"""
Apply a new MTU to the live interface, verify, and commit or roll back.

States: IDLE -> MTU_SET -> VERIFYING -> COMMITTED | ROLLED_BACK | FAILED.
The live MTU is never left changed-but-unverified: every mutation arms the
session's rollback guard, which is released only once the change has been
verified (and, for permanent applies, persisted) or reverted.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from mtuopt.config import MTU_CEILING, MTU_FLOOR, SETTLE_SECONDS
from mtuopt.core import netplan
from mtuopt.core.errors import (
    CommitFailedError,
    InvalidMtuError,
    MtuOptError,
    PersistenceUnavailableError,
    UnsafeConfigurationError,
)
from mtuopt.core.net_info import set_iface_mtu, uses_dhcp4
from mtuopt.core.probe import verify_connectivity
from mtuopt.core.utils import Status, TestResult, debug


class ApplyState(Enum):
    IDLE = "idle"
    MTU_SET = "mtu_set"
    VERIFYING = "verifying"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


@dataclass(frozen=True)
class ApplyOutcome:
    mode: str
    state: ApplyState
    interface: str
    requested_mtu: int
    live_mtu: int
    message: str
    fragment_path: Optional[str] = None


def validate_mtu(mtu: object) -> int:
    if isinstance(mtu, bool) or not isinstance(mtu, int) or not MTU_FLOOR <= mtu <= MTU_CEILING:
        raise InvalidMtuError(mtu, MTU_FLOOR, MTU_CEILING)
    return mtu


class _NoGuard:
    def arm(self) -> None:
        pass

    def release(self) -> None:
        pass


class MtuApplier:
    """One-shot apply state machine; create a new instance per attempt."""

    def __init__(self, guard=None, settle_seconds: float = SETTLE_SECONDS) -> None:
        self.guard = guard or _NoGuard()
        self.settle_seconds = settle_seconds
        self.state = ApplyState.IDLE

    def _to(self, state: ApplyState) -> None:
        debug(f"apply: {self.state.value} -> {state.value}")
        self.state = state

    def _revert(self, iface: str, old_mtu: int) -> None:
        set_iface_mtu(iface, old_mtu)
        self.guard.release()
        self._to(ApplyState.ROLLED_BACK)

    def _abort_commit(self, iface: str, old_mtu: int, reason: str) -> CommitFailedError:
        self._revert(iface, old_mtu)
        self._to(ApplyState.FAILED)
        return CommitFailedError(f"{reason} Reverted {iface} to MTU {old_mtu}.")

    def _set_and_verify(self, new_mtu: int, iface: str, target: str, old_mtu: int) -> bool:
        """Live change + settle + verification burst; reverts on failure."""
        try:
            if new_mtu != old_mtu:
                # armed before the mutation, never after
                self.guard.arm()
                set_iface_mtu(iface, new_mtu)
            self._to(ApplyState.MTU_SET)
            time.sleep(self.settle_seconds)
            self._to(ApplyState.VERIFYING)
            ok = verify_connectivity(target)
        except MtuOptError:
            self._to(ApplyState.FAILED)
            raise
        if not ok and new_mtu != old_mtu:
            self._revert(iface, old_mtu)
        elif not ok:
            self._to(ApplyState.ROLLED_BACK)
        return ok

    # ── Public API ────────────────────────────────────────────────────────

    def apply_temporary(self, new_mtu: int, iface: str, target: str, old_mtu: int) -> ApplyOutcome:
        """Set *new_mtu* live until reboot; revert to *old_mtu* if *target* stops answering."""
        validate_mtu(new_mtu)

        if new_mtu == old_mtu:
            self._to(ApplyState.COMMITTED)
            return ApplyOutcome(
                "temporary", self.state, iface, new_mtu, old_mtu,
                f"{iface} already uses MTU {new_mtu}. Nothing to change.",
            )

        if self._set_and_verify(new_mtu, iface, target, old_mtu):
            self.guard.release()
            self._to(ApplyState.COMMITTED)
            return ApplyOutcome(
                "temporary", self.state, iface, new_mtu, new_mtu,
                "Success! Connection active. MTU will reset on reboot.",
            )
        return ApplyOutcome(
            "temporary", self.state, iface, new_mtu, old_mtu,
            f"Connection lost! Reverted {iface} to MTU {old_mtu}.",
        )

    def apply_permanent(self, new_mtu: int, iface: str, target: str, old_mtu: int) -> ApplyOutcome:
        """Verify live first, then persist through Netplan; undo everything on failure."""
        validate_mtu(new_mtu)
        if not netplan.netplan_available():
            raise PersistenceUnavailableError(
                "Netplan not found on this system. "
                "Use temporary apply or configure the MTU manually."
            )

        if not self._set_and_verify(new_mtu, iface, target, old_mtu):
            raise UnsafeConfigurationError(
                f"Test failed. Connection unstable at MTU {new_mtu}; "
                f"reverted {iface} to {old_mtu}. Aborting permanent change."
            )

        # stay armed until the persistent store has accepted the change
        if new_mtu != old_mtu:
            self.guard.arm()
        path = netplan._FRAGMENT_PATH
        fragment = netplan.build_fragment(iface, new_mtu, dhcp4=uses_dhcp4(iface))
        try:
            previous = netplan.write_fragment(fragment, path)
        except OSError as exc:
            raise self._abort_commit(iface, old_mtu, f"Could not write {path}: {exc}.") from exc

        if not netplan.netplan_apply():
            try:
                netplan.restore_fragment(previous, path)
            except OSError as exc:
                raise self._abort_commit(
                    iface, old_mtu,
                    f"Error applying netplan and could not restore {path}: {exc}. "
                    "Fix the file by hand before the next netplan apply.",
                ) from exc
            netplan.netplan_apply()
            raise self._abort_commit(
                iface, old_mtu,
                f"Error applying netplan. Removed {path} and restored the previous configuration.",
            )

        self.guard.release()
        self._to(ApplyState.COMMITTED)
        return ApplyOutcome(
            "permanent", self.state, iface, new_mtu, new_mtu,
            f"Success! MTU {new_mtu} is now permanent.",
            fragment_path=str(path),
        )


def apply_result(outcome: ApplyOutcome) -> TestResult:
    status = Status.SUCCESS if outcome.state is ApplyState.COMMITTED else Status.FAILURE
    details = [
        f"Mode: {outcome.mode}",
        f"Interface: {outcome.interface}",
        f"Requested MTU: {outcome.requested_mtu}",
        f"Live MTU: {outcome.live_mtu}",
    ]
    if outcome.fragment_path:
        details.append(f"Netplan override: {outcome.fragment_path}")
    return TestResult(
        title="Apply MTU",
        status=status,
        summary=outcome.message,
        details=details,
    )
