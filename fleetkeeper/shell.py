"""Async subprocess helper for the CLI-backed clients."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass

from fleetkeeper.errors import FleetkeeperError
from fleetkeeper.observability.logging import get_logger

_log = get_logger("shell")


class CommandError(FleetkeeperError):
    """Raised when a command cannot be started or does not finish in time."""


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(argv: Sequence[str], timeout: float = 60.0) -> CommandResult:
    """Run *argv* without a shell and capture its output.

    A non-zero exit status is returned, not raised; callers decide whether
    it is fatal.
    """
    _log.debug("command_started", argv=list(argv))
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise CommandError(f"cannot run {argv[0]}: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError as exc:
        proc.kill()
        await proc.wait()
        raise CommandError(f"{argv[0]} timed out after {timeout:.0f}s") from exc

    result = CommandResult(
        argv=tuple(argv),
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    if not result.ok:
        _log.debug("command_failed", argv=list(argv), returncode=result.returncode, stderr=result.stderr[:200])
    return result
