"""Enumerates monitored hosts and samples their metrics.

Reading the inventory is the listing call: if it fails the run aborts.
Probing a single host is item-local: a host that does not answer, or
whose probe raises, is yielded with ``error`` set instead.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from pathlib import Path

from fleetkeeper.engine.runner import ResourceEnumerator
from fleetkeeper.errors import EnumerationError
from fleetkeeper.health.probe import HostProbe, ServiceState
from fleetkeeper.models.events import ObservationKind
from fleetkeeper.models.policy import SERVICE_RUNNING, SERVICE_STOPPED
from fleetkeeper.models.resources import Observation, Resource, Scope
from fleetkeeper.observability.logging import get_logger

_log = get_logger("health.enumerator")


def read_hosts_file(path: str | Path) -> list[str]:
    """One host per line; blank lines and ``#`` comments are ignored."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise EnumerationError(f"cannot read hosts file {path}: {exc}") from exc
    hosts: list[str] = []
    for line in text.splitlines():
        host = line.split("#", 1)[0].strip()
        if host:
            hosts.append(host)
    return hosts


class HostEnumerator(ResourceEnumerator):
    """Yields one Resource per host with disk, CPU, memory and service samples.

    Args:
        probe:       Probe client used for every host.
        hosts:       Inline inventory.
        hosts_file:  Optional inventory file, appended to ``hosts``.
        services:    Service names whose status is sampled on every host.
        concurrency: Hosts probed at the same time.
    """

    def __init__(
        self,
        probe: HostProbe,
        hosts: list[str] | None = None,
        hosts_file: str | None = None,
        services: list[str] | None = None,
        concurrency: int = 4,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._probe = probe
        self._hosts = list(hosts or [])
        self._hosts_file = hosts_file or None
        self._services = list(services or [])
        self._concurrency = max(1, concurrency)
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def inventory(self) -> list[str]:
        hosts = list(self._hosts)
        if self._hosts_file:
            hosts.extend(read_hosts_file(self._hosts_file))
        hosts = list(dict.fromkeys(hosts))
        if not hosts:
            raise EnumerationError("host inventory is empty")
        return hosts

    async def enumerate(self, scope: Scope) -> AsyncGenerator[Resource, None]:
        hosts = self.inventory()
        if not scope.is_all:
            if scope.name not in hosts:
                raise EnumerationError(f"host {scope.name!r} is not in the inventory", resource=scope.name)
            hosts = [scope.name]

        _log.info("hosts_listed", count=len(hosts), scope=str(scope))
        # Probe in batches so the generator stays lazy between batches.
        for start in range(0, len(hosts), self._concurrency):
            batch = hosts[start : start + self._concurrency]
            for resource in await asyncio.gather(*(self.observe(host) for host in batch)):
                yield resource

    async def observe(self, host: str) -> Resource:
        """Sample *host*; never raises for probe failures."""
        try:
            if not await self._probe.ping(host):
                _log.warning("host_unreachable", host=host)
                return Resource(name=host, error="host unreachable (ping failed)")
            observations = await self._sample(host)
        except Exception as exc:  # noqa: BLE001
            _log.warning("host_probe_failed", host=host, error=str(exc))
            return Resource(name=host, error=f"probe failed: {type(exc).__name__}: {exc}")
        return Resource(name=host, observations=observations)

    async def _sample(self, host: str) -> tuple[Observation, ...]:
        now = self._clock()
        observations: list[Observation] = []
        for disk in await self._probe.disk_info(host):
            observations.append(
                Observation(ObservationKind.DISK, disk.drive, disk.free_gb, now, capacity=disk.total_gb)
            )
        observations.append(Observation(ObservationKind.CPU, "cpu", await self._probe.cpu_percent(host), now))
        observations.append(Observation(ObservationKind.MEMORY, "memory", await self._probe.memory_percent(host), now))
        for name in self._services:
            state = await self._probe.service_status(host, name)
            value = SERVICE_RUNNING if state is ServiceState.RUNNING else SERVICE_STOPPED
            observations.append(Observation(ObservationKind.SERVICE, name, value, now))
        # All samples share one timestamp, so drives and services keep probe order.
        return tuple(observations)
