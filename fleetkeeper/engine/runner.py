"""Pipeline run coordination.

A run moves through ``enumerating -> evaluating -> acting -> aggregated``.
Enumeration is drained completely before anything is evaluated, so an
enumeration failure aborts the run (``aborted``) with no action taken.
Once acting begins the run always reaches ``aggregated``: per-item
failures are absorbed by the ActionExecutor.

Resources are acted on concurrently under a fixed-size semaphore.  The
optional ``cancel_event`` is checked before each resource is pulled from
the enumerator and before each resource starts acting.  A policy that
raises while evaluating aborts the run like an enumeration failure.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from contextlib import aclosing
from dataclasses import dataclass

import structlog

from fleetkeeper.engine.aggregator import OutcomeSink, RunAggregator
from fleetkeeper.engine.evaluator import PolicyDecision
from fleetkeeper.engine.executor import ActionExecutor
from fleetkeeper.errors import EnumerationError, PolicyError, RunFatalError
from fleetkeeper.models.events import RunState
from fleetkeeper.models.outcomes import RunSummary
from fleetkeeper.models.resources import Resource, Scope
from fleetkeeper.observability.logging import get_logger
from fleetkeeper.observability.metrics import run_duration_seconds, runs_total

_log = get_logger("engine.runner")

DEFAULT_WORKERS = 4


class ResourceEnumerator(ABC):
    """Lists the resources in scope, each with observations newest-first.

    ``enumerate`` is an async generator: lazy, finite and not restartable.
    It raises EnumerationError when an upstream listing call fails.
    """

    @abstractmethod
    def enumerate(self, scope: Scope) -> AsyncGenerator[Resource, None]:
        """Yield every resource selected by *scope*."""


@dataclass(frozen=True)
class ResourcePlan:
    """Evaluation result for one resource, handed to the acting phase."""

    resource: Resource
    decision: PolicyDecision


class ResourceProcessor(ABC):
    """Evaluates policy for one resource and performs the resulting actions."""

    pipeline: str = "pipeline"

    @abstractmethod
    def evaluate(self, resource: Resource) -> ResourcePlan:
        """Pure: decide what to do with *resource*."""

    @abstractmethod
    async def act(self, plan: ResourcePlan, executor: ActionExecutor) -> None:
        """Carry out *plan* through *executor*."""


class MaintenanceRun:
    """Drives one enumerate -> evaluate -> act -> aggregate invocation.

    Args:
        enumerator:   Source of resources.
        processor:    Policy evaluation and actions per resource.
        simulate:     Dry-run flag threaded into the ActionExecutor.
        workers:      Maximum number of resources acted on concurrently.
        cancel_event: Cooperative cancellation signal.
        sinks:        Extra per-outcome sinks (e.g. OutcomeLog).
    """

    def __init__(
        self,
        enumerator: ResourceEnumerator,
        processor: ResourceProcessor,
        simulate: bool = True,
        workers: int = DEFAULT_WORKERS,
        cancel_event: asyncio.Event | None = None,
        sinks: list[OutcomeSink] | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self._enumerator = enumerator
        self._processor = processor
        self._simulate = simulate
        self._workers = workers
        self._cancel = cancel_event or asyncio.Event()
        self._sinks = sinks or []
        self.aggregator: RunAggregator | None = None

    @property
    def pipeline(self) -> str:
        return self._processor.pipeline

    async def run(self, scope: Scope) -> RunSummary:
        """Execute the run and return the sealed summary.

        Raises:
            RunFatalError: enumeration or evaluation failed.  The sealed
                ``aborted`` summary is attached as ``exc.summary``.
        """
        aggregator = RunAggregator(self.pipeline, simulate=self._simulate, sinks=self._sinks)
        self.aggregator = aggregator
        structlog.contextvars.bind_contextvars(run_id=aggregator.run_id, pipeline=self.pipeline)
        t_start = time.monotonic()
        _log.info("run_started", scope=str(scope), simulate=self._simulate, workers=self._workers)
        try:
            try:
                resources = await self._enumerate(scope, aggregator)
                aggregator.transition(RunState.EVALUATING)
                plans = self._evaluate(resources)
            except RunFatalError as exc:
                exc.summary = aggregator.seal(RunState.ABORTED)
                self._finish(exc.summary, t_start)
                _log.error("run_aborted", error=str(exc))
                raise

            aggregator.transition(RunState.ACTING)
            executor = ActionExecutor(aggregator, simulate=self._simulate)
            await self._act(plans, executor, aggregator)
            summary = aggregator.seal(RunState.AGGREGATED)
            self._finish(summary, t_start)
            _log.info(
                "run_completed",
                considered=summary.considered,
                succeeded=summary.succeeded,
                simulated=summary.simulated,
                failed=summary.failed,
                skipped=summary.skipped,
                cancelled=summary.cancelled,
            )
            return summary
        finally:
            structlog.contextvars.unbind_contextvars("run_id", "pipeline")

    async def _enumerate(self, scope: Scope, aggregator: RunAggregator) -> list[Resource]:
        resources: list[Resource] = []
        try:
            async with aclosing(self._enumerator.enumerate(scope)) as stream:
                while True:
                    if self._cancel.is_set():
                        aggregator.mark_cancelled()
                        _log.warning("run_cancelled_during_enumeration", enumerated=len(resources))
                        break
                    try:
                        resource = await anext(stream)
                    except StopAsyncIteration:
                        break
                    resources.append(resource)
        except RunFatalError:
            raise
        except Exception as exc:
            raise EnumerationError(f"enumeration failed: {exc}") from exc
        _log.info("enumeration_complete", resources=len(resources))
        return resources

    def _evaluate(self, resources: list[Resource]) -> list[ResourcePlan]:
        plans: list[ResourcePlan] = []
        for resource in resources:
            try:
                plans.append(self._processor.evaluate(resource))
            except RunFatalError:
                raise
            except Exception as exc:
                raise PolicyError(f"evaluating {resource.name} failed: {type(exc).__name__}: {exc}") from exc
        return plans

    async def _act(self, plans: list[ResourcePlan], executor: ActionExecutor, aggregator: RunAggregator) -> None:
        semaphore = asyncio.Semaphore(self._workers)

        async def _process(plan: ResourcePlan) -> None:
            async with semaphore:
                if self._cancel.is_set():
                    aggregator.mark_cancelled()
                    _log.info("resource_not_started", resource=plan.resource.name, reason="cancelled")
                    return
                try:
                    await self._processor.act(plan, executor)
                except Exception as exc:  # noqa: BLE001
                    name = plan.resource.name
                    executor.fail(name, "process", f"{type(exc).__name__}: {exc}", resource=name)

        await asyncio.gather(*(_process(plan) for plan in plans))

    def _finish(self, summary: RunSummary, t_start: float) -> None:
        runs_total.labels(pipeline=self.pipeline, state=summary.state.value).inc()
        run_duration_seconds.labels(pipeline=self.pipeline).observe(time.monotonic() - t_start)
