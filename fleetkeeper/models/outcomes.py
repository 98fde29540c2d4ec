"""Action outcome and run summary data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from fleetkeeper.models.events import OutcomeStatus, RunState


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one attempted, simulated or skipped action.

    Immutable once recorded.  ``target`` identifies the item acted on
    (``repo:tag``, ``host/service``); ``resource`` is the owning resource.
    """

    target: str
    action: str
    status: OutcomeStatus
    resource: str = ""
    error: str | None = None
    detail: str = ""
    recorded_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def simulated(self) -> bool:
        return self.status is OutcomeStatus.SIMULATED

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.ACTED

    @property
    def attempted(self) -> bool:
        return self.status in (OutcomeStatus.ACTED, OutcomeStatus.FAILED)

    def to_dict(self) -> dict[str, object]:
        return {
            "ts": self.recorded_at.isoformat(),
            "target": self.target,
            "resource": self.resource,
            "action": self.action,
            "status": self.status.value,
            "error": self.error,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class RunSummary:
    """Ordered outcomes of one invocation plus derived counters.

    Counters are computed from ``outcomes`` on access and never stored.
    """

    run_id: str
    pipeline: str
    state: RunState
    simulate: bool
    started_at: datetime
    outcomes: tuple[ActionOutcome, ...] = ()
    finished_at: datetime | None = None
    cancelled: bool = False
    sealed: bool = False

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def considered(self) -> int:
        return len(self.outcomes)

    @property
    def attempted(self) -> int:
        return sum(1 for o in self.outcomes if o.attempted)

    @property
    def succeeded(self) -> int:
        return self._count(OutcomeStatus.ACTED)

    @property
    def simulated(self) -> int:
        return self._count(OutcomeStatus.SIMULATED)

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(OutcomeStatus.SKIPPED)

    @property
    def failures(self) -> tuple[ActionOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status is OutcomeStatus.FAILED)

    def to_dict(self) -> dict[str, object]:
        return {
            "run_id": self.run_id,
            "pipeline": self.pipeline,
            "state": self.state.value,
            "simulate": self.simulate,
            "cancelled": self.cancelled,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "counts": {
                "considered": self.considered,
                "attempted": self.attempted,
                "succeeded": self.succeeded,
                "simulated": self.simulated,
                "failed": self.failed,
                "skipped": self.skipped,
            },
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
