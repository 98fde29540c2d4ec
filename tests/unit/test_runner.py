"""Tests for MaintenanceRun phase handling: cancellation while enumerating and evaluation failures."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator

import pytest

from fleetkeeper.engine.evaluator import PolicyDecision
from fleetkeeper.engine.executor import ActionExecutor
from fleetkeeper.engine.runner import MaintenanceRun, ResourceEnumerator, ResourcePlan, ResourceProcessor
from fleetkeeper.errors import PolicyError, RunFatalError
from fleetkeeper.models.events import RunState
from fleetkeeper.models.resources import Resource, Scope


class _TrackingEnumerator(ResourceEnumerator):
    """Yields one Resource per name, recording what was pulled and whether it was closed.

    ``cancel_on`` sets *cancel* just before that name is yielded.
    """

    def __init__(self, names: list[str], cancel: asyncio.Event | None = None, cancel_on: str = "") -> None:
        self.names = names
        self.cancel = cancel
        self.cancel_on = cancel_on
        self.pulled: list[str] = []
        self.closed = False

    async def enumerate(self, scope: Scope) -> AsyncGenerator[Resource, None]:
        try:
            for name in self.names:
                self.pulled.append(name)
                if self.cancel is not None and name == self.cancel_on:
                    self.cancel.set()
                yield Resource(name=name)
        finally:
            self.closed = True


class _RecordingProcessor(ResourceProcessor):
    pipeline = "prune-images"

    def __init__(self, fail_on: str = "") -> None:
        self.fail_on = fail_on
        self.acted: list[str] = []

    def evaluate(self, resource: Resource) -> ResourcePlan:
        if resource.name == self.fail_on:
            raise KeyError(resource.name)
        return ResourcePlan(resource=resource, decision=PolicyDecision())

    async def act(self, plan: ResourcePlan, executor: ActionExecutor) -> None:
        self.acted.append(plan.resource.name)
        executor.skip(plan.resource.name, "retain", resource=plan.resource.name)


class TestCancelDuringEnumeration:
    async def test_preset_cancel_pulls_nothing(self) -> None:
        cancel = asyncio.Event()
        cancel.set()
        enumerator = _TrackingEnumerator(["a", "b"])
        processor = _RecordingProcessor()

        summary = await MaintenanceRun(enumerator, processor, cancel_event=cancel).run(Scope.parse("all"))

        assert enumerator.pulled == []
        assert processor.acted == []
        assert summary.cancelled
        assert summary.considered == 0
        assert summary.state is RunState.AGGREGATED

    async def test_cancel_stops_pulling_and_closes_the_enumerator(self) -> None:
        cancel = asyncio.Event()
        enumerator = _TrackingEnumerator(["a", "b", "c"], cancel=cancel, cancel_on="a")
        processor = _RecordingProcessor()

        summary = await MaintenanceRun(enumerator, processor, cancel_event=cancel).run(Scope.parse("all"))

        assert enumerator.pulled == ["a"]
        assert enumerator.closed
        assert processor.acted == []
        assert summary.cancelled

    async def test_enumerator_is_closed_after_a_full_run(self) -> None:
        enumerator = _TrackingEnumerator(["a", "b"])
        processor = _RecordingProcessor()

        summary = await MaintenanceRun(enumerator, processor).run(Scope.parse("all"))

        assert enumerator.closed
        assert sorted(processor.acted) == ["a", "b"]
        assert not summary.cancelled


class TestEvaluationFailure:
    async def test_unexpected_evaluate_error_aborts_and_seals_the_run(self) -> None:
        processor = _RecordingProcessor(fail_on="b")
        run = MaintenanceRun(_TrackingEnumerator(["a", "b"]), processor, simulate=False)

        with pytest.raises(PolicyError, match="evaluating b failed: KeyError") as exc_info:
            await run.run(Scope.parse("all"))

        assert isinstance(exc_info.value, RunFatalError)
        assert isinstance(exc_info.value.__cause__, KeyError)
        summary = exc_info.value.summary
        assert summary is not None
        assert summary.state is RunState.ABORTED
        assert summary.sealed
        assert processor.acted == []
