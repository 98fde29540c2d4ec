"""Host health-check pipeline.

Submodules:
    probe      -- HostProbe ABC with local (psutil) and ssh implementations.
    enumerator -- HostEnumerator: inventory listing and per-host sampling.
    checker    -- HealthChecker: thresholds, alerts and service restarts.
"""

from fleetkeeper.health.checker import HealthChecker, build_alert
from fleetkeeper.health.enumerator import HostEnumerator, read_hosts_file
from fleetkeeper.health.probe import (
    DiskInfo,
    HostProbe,
    LocalHostProbe,
    ProbeError,
    ServiceState,
    SSHHostProbe,
)

__all__ = [
    "DiskInfo",
    "HealthChecker",
    "HostEnumerator",
    "HostProbe",
    "LocalHostProbe",
    "ProbeError",
    "SSHHostProbe",
    "ServiceState",
    "build_alert",
    "read_hosts_file",
]
