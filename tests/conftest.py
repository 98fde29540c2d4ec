"""Shared fakes for fleetkeeper tests.

The fakes stand in for the external collaborators (registry, host probes,
notification channels) so pipelines can be exercised end to end without
touching real registries, hosts or chat services.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest
import structlog

from fleetkeeper.health.probe import DiskInfo, HostProbe, ProbeError, ServiceState
from fleetkeeper.models.alerts import Alert
from fleetkeeper.models.events import AlertCategory, ObservationKind, Severity
from fleetkeeper.models.resources import Observation
from fleetkeeper.notifications.manager import ChannelKind, NotificationChannel
from fleetkeeper.registry.client import RegistryClient, RegistryError, TagInfo

_T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_tags(count: int, prefix: str = "v", start: datetime = _T0) -> list[TagInfo]:
    """Tags ``v1..vN`` pushed one hour apart; ``vN`` is the newest."""
    return [
        TagInfo(name=f"{prefix}{i}", pushed_at=start + timedelta(hours=i), digest=f"sha256:{i:064x}")
        for i in range(1, count + 1)
    ]


def make_tag_observations(count: int) -> tuple[Observation, ...]:
    """Image-tag observations sorted newest-first."""
    tags = sorted(make_tags(count), key=lambda t: t.pushed_at, reverse=True)
    return tuple(
        Observation(ObservationKind.IMAGE_TAG, t.name, t.pushed_at.timestamp(), t.pushed_at, digest=t.digest)
        for t in tags
    )


def make_alert(
    severity: Severity = Severity.WARNING,
    category: AlertCategory = AlertCategory.DISK,
    subject: str = "web-01",
    message: str = "Drive / on web-01 has 8.0 GB free, below the 10.0 GB threshold",
) -> Alert:
    return Alert(severity=severity, category=category, subject=subject, message=message, timestamp=_T0)


# ---------------------------------------------------------------------------
# Registry fake
# ---------------------------------------------------------------------------


class FakeRegistryClient(RegistryClient):
    """In-memory registry.

    Args:
        repos:         repository -> tags.
        fail_listing:  list_repositories raises RegistryError.
        fail_tags_for: repositories whose list_tags raises RegistryError.
        raise_on:      tags (``repo:tag``) whose delete raises RuntimeError.
        reject:        tags whose delete returns False.

    A delete removes the whole manifest, so every tag sharing the deleted
    tag's digest disappears with it.
    """

    def __init__(
        self,
        repos: dict[str, list[TagInfo]],
        fail_listing: bool = False,
        fail_tags_for: set[str] | None = None,
        raise_on: set[str] | None = None,
        reject: set[str] | None = None,
    ) -> None:
        self.repos = {name: list(tags) for name, tags in repos.items()}
        self.fail_listing = fail_listing
        self.fail_tags_for = fail_tags_for or set()
        self.raise_on = raise_on or set()
        self.reject = reject or set()
        self.delete_calls: list[str] = []
        self.closed = False

    async def list_repositories(self) -> list[str]:
        if self.fail_listing:
            raise RegistryError("registry unavailable")
        return list(self.repos)

    async def list_tags(self, repository: str) -> list[TagInfo]:
        if repository in self.fail_tags_for:
            raise RegistryError(f"cannot list {repository}")
        return list(self.repos[repository])

    async def delete_tag(self, repository: str, tag: str) -> bool:
        ref = f"{repository}:{tag}"
        self.delete_calls.append(ref)
        if ref in self.raise_on:
            raise RuntimeError(f"delete of {ref} blew up")
        if ref in self.reject:
            return False
        digest = next((t.digest for t in self.repos[repository] if t.name == tag), "")
        self.repos[repository] = [
            t for t in self.repos[repository] if t.name != tag and not (digest and t.digest == digest)
        ]
        return True

    async def aclose(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Host probe fake
# ---------------------------------------------------------------------------


@dataclass
class HostSample:
    reachable: bool = True
    disks: list[DiskInfo] = field(default_factory=lambda: [DiskInfo("/", 50.0, 100.0)])
    cpu: float = 20.0
    memory: float = 40.0
    services: dict[str, ServiceState] = field(default_factory=dict)
    probe_error: bool = False
    restart_ok: bool = True


class FakeHostProbe(HostProbe):
    def __init__(self, hosts: dict[str, HostSample]) -> None:
        self.hosts = hosts
        self.restarts: list[str] = []

    def _sample(self, host: str) -> HostSample:
        sample = self.hosts[host]
        if sample.probe_error:
            raise ProbeError(f"ssh to {host} failed")
        return sample

    async def ping(self, host: str) -> bool:
        return self.hosts[host].reachable

    async def disk_info(self, host: str) -> list[DiskInfo]:
        return list(self._sample(host).disks)

    async def cpu_percent(self, host: str) -> float:
        return self._sample(host).cpu

    async def memory_percent(self, host: str) -> float:
        return self._sample(host).memory

    async def service_status(self, host: str, name: str) -> ServiceState:
        return self._sample(host).services.get(name, ServiceState.UNKNOWN)

    async def restart_service(self, host: str, name: str) -> bool:
        self.restarts.append(f"{host}/{name}")
        return self.hosts[host].restart_ok


# ---------------------------------------------------------------------------
# Notification channel fake
# ---------------------------------------------------------------------------


class RecordingChannel(NotificationChannel):
    def __init__(self, kind: ChannelKind, succeed: bool = True, error: Exception | None = None) -> None:
        self._kind = kind
        self._succeed = succeed
        self._error = error
        self.sent: list[Alert] = []

    @property
    def kind(self) -> ChannelKind:
        return self._kind

    async def send(self, alert: Alert) -> bool:
        if self._error is not None:
            raise self._error
        self.sent.append(alert)
        return self._succeed


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _silent_logging() -> Iterator[None]:
    """Route structlog output nowhere so it never mixes with CLI output."""
    structlog.configure(
        processors=[structlog.processors.JSONRenderer()],
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def two_repo_registry() -> FakeRegistryClient:
    return FakeRegistryClient({"web/api": make_tags(12), "web/worker": make_tags(3)})


@pytest.fixture
def teams_channel() -> RecordingChannel:
    return RecordingChannel(ChannelKind.TEAMS)
