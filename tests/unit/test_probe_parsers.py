"""Tests for host probe output parsers and the ssh probe command lines."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from fleetkeeper.health.probe import (
    ProbeError,
    ServiceState,
    SSHHostProbe,
    parse_df,
    parse_free,
    parse_service_state,
    parse_vmstat,
)
from fleetkeeper.shell import CommandResult

DF_OUTPUT = """\
Filesystem     1024-blocks      Used Available Capacity Mounted on
/dev/sda1        104857600  96468992   8388608      92% /
tmpfs              4194304         0   4194304       0% /dev/shm
/dev/sdb1        524288000 104857600 419430400      20% /var/lib/data
"""

VMSTAT_OUTPUT = """\
procs -----------memory---------- ---swap-- -----io---- -system-- ------cpu-----
 r  b   swpd   free   buff  cache   si   so    bi    bo   in   cs us sy id wa st
 1  0      0 812344  10240 204800    0    0     1     2   10   20  5  2 93  0  0
 2  0      0 812000  10240 204800    0    0     0     0  300  500 60 15 25  0  0
"""

FREE_OUTPUT = """\
               total        used        free      shared  buff/cache   available
Mem:     16000000000  9000000000  1000000000   100000000  6000000000  4000000000
Swap:     2000000000           0  2000000000
"""


class TestParsers:
    def test_df_skips_pseudo_filesystems(self) -> None:
        disks = parse_df(DF_OUTPUT)
        assert [d.drive for d in disks] == ["/", "/var/lib/data"]
        assert disks[0].free_gb == 8.0
        assert disks[0].total_gb == 100.0

    def test_df_bad_numbers(self) -> None:
        with pytest.raises(ProbeError):
            parse_df("Filesystem x\n/dev/sda1 lots some few 1% /\n")

    def test_vmstat_uses_last_sample(self) -> None:
        assert parse_vmstat(VMSTAT_OUTPUT) == 75.0

    def test_vmstat_without_samples(self) -> None:
        with pytest.raises(ProbeError):
            parse_vmstat("procs\n")

    def test_free_uses_available_column(self) -> None:
        assert parse_free(FREE_OUTPUT) == 75.0

    def test_free_without_mem_line(self) -> None:
        with pytest.raises(ProbeError):
            parse_free("Swap: 1 2 3\n")

    @pytest.mark.parametrize(
        ("output", "expected"),
        [
            ("active\n", ServiceState.RUNNING),
            ("inactive\n", ServiceState.STOPPED),
            ("failed\n", ServiceState.STOPPED),
            ("activating\n", ServiceState.UNKNOWN),
            ("", ServiceState.UNKNOWN),
        ],
    )
    def test_service_state(self, output: str, expected: ServiceState) -> None:
        assert parse_service_state(output) is expected


class TestSSHProbe:
    async def test_commands_run_non_interactively(self, monkeypatch: pytest.MonkeyPatch) -> None:
        run = AsyncMock(return_value=CommandResult(("ssh",), 0, DF_OUTPUT, ""))
        monkeypatch.setattr("fleetkeeper.health.probe.run_command", run)

        disks = await SSHHostProbe(user="ops", timeout=15).disk_info("web-01")

        assert len(disks) == 2
        argv = run.await_args.args[0]
        assert argv[:5] == ["ssh", "-o", "BatchMode=yes", "-o", "ConnectTimeout=15"]
        assert argv[5:] == ["ops@web-01", "--", "df", "-P", "-k"]

    async def test_stopped_service_is_not_an_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        run = AsyncMock(return_value=CommandResult(("ssh",), 3, "inactive\n", ""))
        monkeypatch.setattr("fleetkeeper.health.probe.run_command", run)
        assert await SSHHostProbe().service_status("web-01", "nginx") is ServiceState.STOPPED

    async def test_ssh_connection_failure_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        run = AsyncMock(return_value=CommandResult(("ssh",), 255, "", "Connection refused"))
        monkeypatch.setattr("fleetkeeper.health.probe.run_command", run)
        with pytest.raises(ProbeError):
            await SSHHostProbe().service_status("web-01", "nginx")
        with pytest.raises(ProbeError):
            await SSHHostProbe().memory_percent("web-01")

    async def test_restart_with_sudo(self, monkeypatch: pytest.MonkeyPatch) -> None:
        run = AsyncMock(return_value=CommandResult(("ssh",), 0, "", ""))
        monkeypatch.setattr("fleetkeeper.health.probe.run_command", run)

        assert await SSHHostProbe(use_sudo=True).restart_service("web-01", "nginx") is True
        assert run.await_args.args[0][-5:] == ["sudo", "-n", "systemctl", "restart", "nginx"]
