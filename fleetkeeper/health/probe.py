"""Host probe clients.

    LocalHostProbe -- the machine fleetkeeper runs on, via psutil and systemctl.
    SSHHostProbe   -- remote Linux hosts via ``ping`` and ``ssh``; command
                      output is parsed by the pure ``parse_*`` helpers.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum

import psutil

from fleetkeeper.errors import FleetkeeperError
from fleetkeeper.shell import CommandResult, run_command

_GB = 1024**3

# Filesystems that never hold operator data.
_PSEUDO_FS = {"tmpfs", "devtmpfs", "squashfs", "overlay", "proc", "sysfs", "cgroup", "cgroup2", "udev"}


class ProbeError(FleetkeeperError):
    """Raised when a probe command fails or returns unparseable output."""


class ServiceState(StrEnum):
    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DiskInfo:
    drive: str
    free_gb: float
    total_gb: float


class HostProbe(ABC):
    """Read-only health probes plus the one mutating call, service restart."""

    @abstractmethod
    async def ping(self, host: str) -> bool: ...

    @abstractmethod
    async def disk_info(self, host: str) -> list[DiskInfo]: ...

    @abstractmethod
    async def cpu_percent(self, host: str) -> float: ...

    @abstractmethod
    async def memory_percent(self, host: str) -> float: ...

    @abstractmethod
    async def service_status(self, host: str, name: str) -> ServiceState: ...

    @abstractmethod
    async def restart_service(self, host: str, name: str) -> bool: ...


def parse_df(output: str) -> list[DiskInfo]:
    """Parse ``df -P -k`` output (``-T`` not required)."""
    disks: list[DiskInfo] = []
    for line in output.strip().splitlines()[1:]:
        parts = line.split()
        if len(parts) < 6:
            continue
        filesystem, blocks, _used, available = parts[0], parts[1], parts[2], parts[3]
        mount = " ".join(parts[5:])
        if filesystem in _PSEUDO_FS:
            continue
        try:
            total_gb = int(blocks) * 1024 / _GB
            free_gb = int(available) * 1024 / _GB
        except ValueError as exc:
            raise ProbeError(f"unexpected df line: {line!r}") from exc
        disks.append(DiskInfo(drive=mount, free_gb=round(free_gb, 2), total_gb=round(total_gb, 2)))
    return disks


def parse_vmstat(output: str) -> float:
    """Return CPU busy percent from the last sample of ``vmstat 1 2``."""
    lines = [line.split() for line in output.strip().splitlines() if line.strip()]
    header = next((cols for cols in lines if "id" in cols), None)
    if header is None or len(lines) < 3:
        raise ProbeError("unexpected vmstat output")
    try:
        idle = float(lines[-1][header.index("id")])
    except (IndexError, ValueError) as exc:
        raise ProbeError("unexpected vmstat sample") from exc
    return round(100.0 - idle, 1)


def parse_free(output: str) -> float:
    """Return used-memory percent from ``free -b`` (total minus available)."""
    for line in output.splitlines():
        if line.startswith("Mem:"):
            cols = line.split()
            try:
                total = float(cols[1])
                available = float(cols[6]) if len(cols) > 6 else float(cols[3])
            except (IndexError, ValueError) as exc:
                raise ProbeError(f"unexpected free line: {line!r}") from exc
            if total <= 0:
                raise ProbeError("free reported zero total memory")
            return round((total - available) / total * 100.0, 1)
    raise ProbeError("free output has no Mem: line")


def parse_service_state(output: str) -> ServiceState:
    """Map ``systemctl is-active`` output to a ServiceState."""
    state = output.strip().splitlines()[0].strip() if output.strip() else ""
    if state == "active":
        return ServiceState.RUNNING
    if state in ("inactive", "failed", "deactivating"):
        return ServiceState.STOPPED
    return ServiceState.UNKNOWN


class LocalHostProbe(HostProbe):
    """Probes the local machine; the host argument is only used for logging."""

    def __init__(self, cpu_interval: float = 1.0, timeout: float = 60.0) -> None:
        self._cpu_interval = cpu_interval
        self._timeout = timeout

    async def ping(self, host: str) -> bool:
        return True

    async def disk_info(self, host: str) -> list[DiskInfo]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._disk_info_sync)

    def _disk_info_sync(self) -> list[DiskInfo]:
        disks: list[DiskInfo] = []
        for part in psutil.disk_partitions(all=False):
            if part.fstype in _PSEUDO_FS:
                continue
            usage = psutil.disk_usage(part.mountpoint)
            disks.append(
                DiskInfo(
                    drive=part.mountpoint,
                    free_gb=round(usage.free / _GB, 2),
                    total_gb=round(usage.total / _GB, 2),
                )
            )
        return disks

    async def cpu_percent(self, host: str) -> float:
        loop = asyncio.get_running_loop()
        return float(await loop.run_in_executor(None, lambda: psutil.cpu_percent(interval=self._cpu_interval)))

    async def memory_percent(self, host: str) -> float:
        return float(psutil.virtual_memory().percent)

    async def service_status(self, host: str, name: str) -> ServiceState:
        result = await run_command(["systemctl", "is-active", name], timeout=self._timeout)
        return parse_service_state(result.stdout)

    async def restart_service(self, host: str, name: str) -> bool:
        result = await run_command(["systemctl", "restart", name], timeout=self._timeout)
        return result.ok


class SSHHostProbe(HostProbe):
    """Probes remote hosts over non-interactive ssh.

    Args:
        user:     Remote login; defaults to the ssh client's configuration.
        timeout:  Per-command timeout in seconds.
        use_sudo: Prefix the restart command with ``sudo -n``.
    """

    def __init__(
        self,
        user: str | None = None,
        timeout: float = 30.0,
        use_sudo: bool = False,
        ssh_path: str = "ssh",
        ping_path: str = "ping",
    ) -> None:
        self._user = user or None
        self._timeout = timeout
        self._use_sudo = use_sudo
        self._ssh = ssh_path
        self._ping = ping_path

    async def _remote(self, host: str, *command: str) -> CommandResult:
        destination = f"{self._user}@{host}" if self._user else host
        argv = [
            self._ssh,
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={int(self._timeout)}",
            destination,
            "--",
            *command,
        ]
        return await run_command(argv, timeout=self._timeout)

    async def _remote_ok(self, host: str, *command: str) -> str:
        result = await self._remote(host, *command)
        if not result.ok:
            raise ProbeError(f"{command[0]} on {host} failed ({result.returncode}): {result.stderr.strip()[:200]}")
        return result.stdout

    async def ping(self, host: str) -> bool:
        result = await run_command([self._ping, "-c", "1", "-W", "2", host], timeout=self._timeout)
        return result.ok

    async def disk_info(self, host: str) -> list[DiskInfo]:
        return parse_df(await self._remote_ok(host, "df", "-P", "-k"))

    async def cpu_percent(self, host: str) -> float:
        return parse_vmstat(await self._remote_ok(host, "vmstat", "1", "2"))

    async def memory_percent(self, host: str) -> float:
        return parse_free(await self._remote_ok(host, "free", "-b"))

    async def service_status(self, host: str, name: str) -> ServiceState:
        # is-active exits non-zero for stopped units; the state is on stdout.
        result = await self._remote(host, "systemctl", "is-active", name)
        if result.returncode == 255:
            raise ProbeError(f"ssh to {host} failed: {result.stderr.strip()[:200]}")
        return parse_service_state(result.stdout)

    async def restart_service(self, host: str, name: str) -> bool:
        command = ["systemctl", "restart", name]
        if self._use_sudo:
            command = ["sudo", "-n", *command]
        result = await self._remote(host, *command)
        return result.ok
