"""
Exception taxonomy for an optimisation session.

Every fatal condition is an :class:`MtuOptError` carrying the process exit
code the CLI should finish with.  Probe loss is never an exception; it is
data inside :class:`~mtuopt.core.probe.ProbeResult` and friends.
"""

from __future__ import annotations


class MtuOptError(Exception):
    """Base class for every error the session reports to the user."""

    exit_code = 1
    title = "MTU Optimizer Error"


# ── Environmental (not retried, fatal) ───────────────────────────────────────


class NetworkEnvironmentError(MtuOptError):
    exit_code = 2
    title = "Environment Error"


class NoRouteError(NetworkEnvironmentError):
    """No outbound route to the target."""


class MtuUnreadableError(NetworkEnvironmentError):
    """The interface MTU could not be determined."""


class ToolMissingError(NetworkEnvironmentError):
    """A required external tool is not on PATH."""

    def __init__(self, tool: str, package: str = "") -> None:
        self.tool = tool
        self.package = package or tool
        super().__init__(
            f"Required tool '{tool}' was not found on PATH. "
            f"Install '{self.package}' and try again."
        )


class PrivilegeError(NetworkEnvironmentError):
    """Changing interface settings requires root."""


# ── Validation (fatal, before any action) ────────────────────────────────────


class ValidationError(MtuOptError):
    exit_code = 3
    title = "Invalid Input"


class InvalidTargetError(ValidationError):
    pass


class InvalidMtuError(ValidationError):
    def __init__(self, mtu: object, floor: int, ceiling: int) -> None:
        self.mtu = mtu
        super().__init__(f"Invalid MTU value: {mtu} (must be {floor}-{ceiling})")


class InvalidRangeError(ValidationError):
    pass


# ── Discovery ────────────────────────────────────────────────────────────────


class DiscoveryFailed(MtuOptError):
    """No payload in the search range passed a don't-fragment probe."""

    exit_code = 4
    title = "Path MTU Discovery Failed"


NoPathError = DiscoveryFailed


# ── Apply-time ───────────────────────────────────────────────────────────────


class ApplyError(MtuOptError):
    exit_code = 5
    title = "MTU Apply Failed"


class PersistenceUnavailableError(ApplyError):
    pass


class UnsafeConfigurationError(ApplyError):
    """Live verification failed; the MTU was reverted and nothing persisted."""


class CommitFailedError(ApplyError):
    """The persistent store refused the new configuration; all changes reverted."""
