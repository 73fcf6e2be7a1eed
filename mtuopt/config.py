"""
Centralised runtime configuration and OS-detection helpers.
"""

import os
import platform
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class PlatformInfo:
    """Immutable snapshot of the host OS and available external tools."""

    system: str = field(default_factory=lambda: platform.system())  # Linux | Darwin | Windows
    release: str = field(default_factory=platform.release)
    is_linux: bool = field(default=False)
    is_macos: bool = field(default=False)

    # Paths to external tools (None if not found on PATH)
    ping: Optional[str] = None
    ip: Optional[str] = None
    netplan: Optional[str] = None

    def __post_init__(self) -> None:  # pragma: no cover
        object.__setattr__(self, "is_linux", self.system == "Linux")
        object.__setattr__(self, "is_macos", self.system == "Darwin")

        for tool_name in ("ping", "ip", "netplan"):
            object.__setattr__(self, tool_name, shutil.which(tool_name))


@dataclass
class Settings:
    """Mutable runtime switches, seeded from the environment."""

    verbose: bool = field(default_factory=lambda: os.environ.get("VERBOSE", "0") == "1")
    log_dir: str = field(default_factory=lambda: os.environ.get("MTUOPT_LOG_DIR", ""))
    log_enabled: bool = True


# Singletons, instantiated once at import time.
PLATFORM = PlatformInfo()
SETTINGS = Settings()

# Session defaults
DEFAULT_TARGET = "1.1.1.1"          # Cloudflare DNS
DEFAULT_MIN_PAYLOAD = 1200          # floor for the search
DEFAULT_MAX_PAYLOAD = 1472          # 1500 MTU - 28 bytes IP/ICMP overhead
DEFAULT_STRESS_COUNT = 50
DEFAULT_PING_INTERVAL_MS = 200
DEFAULT_PROBE_TIMEOUT_MS = 1000
HEADER_SIZE = 28                    # 20 bytes IPv4 + 8 bytes ICMP

# Apply / verification
SETTLE_SECONDS = 2.0
VERIFY_PROBE_COUNT = 2
MTU_FLOOR = 68
MTU_CEILING = 65535
NETPLAN_FRAGMENT = Path("/etc/netplan/99-mtu-optimizer.yaml")

# Tool -> distribution package, for missing-tool hints
REQUIRED_PACKAGES = {
    "ping": "iputils-ping",
    "ip": "iproute2",
    "netplan": "netplan.io",
}
