"""Resource and observation data structures."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from fleetkeeper.models.events import ObservationKind


@dataclass(frozen=True)
class Observation:
    """One sample attached to a resource: an image tag or a metric reading.

    ``recorded_at`` is the push time for image tags and the sampling time
    for metrics.  Within one resource, observations of the same kind are
    ordered by it.
    """

    kind: ObservationKind
    key: str  # tag name, drive, service name or metric name
    value: float
    recorded_at: datetime
    capacity: float | None = None  # total GB for disk samples
    digest: str = ""  # manifest digest for image tags


@dataclass(frozen=True)
class Resource:
    """A repository or monitored host plus its observations, newest first.

    ``error`` is set when the resource could not be observed at all
    (unreachable).  An empty ``observations`` tuple with no error means
    nothing was observed, which is not a failure.
    """

    name: str
    observations: tuple[Observation, ...] = ()
    error: str | None = None

    @property
    def reachable(self) -> bool:
        return self.error is None

    def of_kind(self, kind: ObservationKind) -> tuple[Observation, ...]:
        return tuple(o for o in self.observations if o.kind == kind)


def newest_first(observations: Iterable[Observation]) -> tuple[Observation, ...]:
    """Sort observations by recency descending; ties break on key for determinism."""
    by_key = sorted(observations, key=lambda o: o.key)
    return tuple(sorted(by_key, key=lambda o: o.recorded_at, reverse=True))


@dataclass(frozen=True)
class Scope:
    """Selects either a single named resource or all of them."""

    name: str | None = None

    @property
    def is_all(self) -> bool:
        return self.name is None

    @classmethod
    def parse(cls, value: str | None) -> Scope:
        if value is None:
            return cls()
        value = value.strip()
        if not value or value.lower() in ("all", "*"):
            return cls()
        return cls(name=value)

    def matches(self, name: str) -> bool:
        return self.name is None or self.name == name

    def __str__(self) -> str:
        return self.name or "all"
