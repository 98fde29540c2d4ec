"""Append-only accumulation of action outcomes for one run."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import uuid4

from fleetkeeper.models.events import RunState
from fleetkeeper.models.outcomes import ActionOutcome, RunSummary
from fleetkeeper.observability.logging import get_logger
from fleetkeeper.observability.metrics import actions_total

_log = get_logger("engine.aggregator")

OutcomeSink = Callable[[str, ActionOutcome], None]


class RunAggregator:
    """Collects ActionOutcomes as they are produced.

    * Appends are serialised by a lock so concurrent workers can record.
    * ``snapshot()`` may be called at any time for a partial view.
    * ``seal()`` freezes the run; recording afterwards raises RuntimeError.
    * Sinks (e.g. the outcome log file) are called once per recorded outcome.
    """

    def __init__(
        self,
        pipeline: str,
        simulate: bool,
        run_id: str | None = None,
        sinks: list[OutcomeSink] | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.simulate = simulate
        self.run_id = run_id or uuid4().hex[:12]
        self.started_at = datetime.now(tz=UTC)
        self._sinks = list(sinks or [])
        self._outcomes: list[ActionOutcome] = []
        self._state = RunState.ENUMERATING
        self._cancelled = False
        self._final: RunSummary | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def sealed(self) -> bool:
        return self._final is not None

    def transition(self, state: RunState) -> None:
        with self._lock:
            if self._final is not None:
                raise RuntimeError(f"run {self.run_id} is sealed")
            _log.debug("run_state_changed", run_id=self.run_id, old=self._state.value, new=state.value)
            self._state = state

    def mark_cancelled(self) -> None:
        with self._lock:
            self._cancelled = True

    def record(self, outcome: ActionOutcome) -> None:
        with self._lock:
            if self._final is not None:
                raise RuntimeError(f"run {self.run_id} is sealed; outcome for {outcome.target} rejected")
            self._outcomes.append(outcome)
        actions_total.labels(pipeline=self.pipeline, action=outcome.action, status=outcome.status.value).inc()
        for sink in self._sinks:
            try:
                sink(self.run_id, outcome)
            except OSError as exc:
                _log.error("outcome_sink_failed", run_id=self.run_id, target=outcome.target, error=str(exc))

    def snapshot(self) -> RunSummary:
        """Return the current view; the sealed summary once sealed."""
        with self._lock:
            if self._final is not None:
                return self._final
            return self._build(finished_at=None, sealed=False)

    def seal(self, state: RunState = RunState.AGGREGATED) -> RunSummary:
        """Freeze the run in *state* and return the final summary.

        Sealing twice returns the first sealed summary unchanged.
        """
        with self._lock:
            if self._final is None:
                self._state = state
                self._final = self._build(finished_at=datetime.now(tz=UTC), sealed=True)
            return self._final

    def _build(self, finished_at: datetime | None, sealed: bool) -> RunSummary:
        return RunSummary(
            run_id=self.run_id,
            pipeline=self.pipeline,
            state=self._state,
            simulate=self.simulate,
            started_at=self.started_at,
            outcomes=tuple(self._outcomes),
            finished_at=finished_at,
            cancelled=self._cancelled,
            sealed=sealed,
        )
