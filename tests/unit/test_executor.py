"""Tests for ActionExecutor: simulate mode and per-item isolation."""

from __future__ import annotations

from unittest.mock import AsyncMock

from fleetkeeper.engine.aggregator import RunAggregator
from fleetkeeper.engine.executor import ActionExecutor
from fleetkeeper.models.events import OutcomeStatus
from fleetkeeper.notifications.manager import AlertDispatcher, ChannelKind
from tests.conftest import RecordingChannel, make_alert


def _executor(simulate: bool) -> tuple[ActionExecutor, RunAggregator]:
    agg = RunAggregator("prune-images", simulate=simulate)
    return ActionExecutor(agg, simulate=simulate), agg


class TestSimulate:
    async def test_simulate_never_calls_the_operation(self) -> None:
        executor, agg = _executor(simulate=True)
        operation = AsyncMock(side_effect=RuntimeError("must not run"))

        outcome = await executor.execute("web/api:v1", "delete-tag", operation, resource="web/api")

        operation.assert_not_awaited()
        assert outcome.status is OutcomeStatus.SIMULATED
        assert outcome.simulated
        assert agg.snapshot().failed == 0

    async def test_simulated_failures_are_never_counted(self) -> None:
        executor, agg = _executor(simulate=True)
        for i in range(5):
            await executor.execute(f"t{i}", "delete-tag", AsyncMock(return_value=False))
        summary = agg.seal()
        assert summary.simulated == 5
        assert summary.failed == 0


class TestIsolation:
    async def test_exception_becomes_failed_outcome(self) -> None:
        executor, agg = _executor(simulate=False)
        outcome = await executor.execute("web/api:v1", "delete-tag", AsyncMock(side_effect=RuntimeError("boom")))

        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.error == "RuntimeError: boom"
        assert agg.snapshot().failed == 1

    async def test_failure_does_not_stop_later_items(self) -> None:
        executor, agg = _executor(simulate=False)
        first = AsyncMock(side_effect=ConnectionError("reset"))
        second = AsyncMock(return_value=True)

        await executor.execute("a", "delete-tag", first)
        await executor.execute("b", "delete-tag", second)

        second.assert_awaited_once()
        summary = agg.seal()
        assert (summary.failed, summary.succeeded) == (1, 1)

    async def test_false_return_is_a_failure(self) -> None:
        executor, _ = _executor(simulate=False)
        outcome = await executor.execute("a", "delete-tag", AsyncMock(return_value=False))
        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.error == "operation reported failure"

    async def test_none_return_is_success(self) -> None:
        executor, _ = _executor(simulate=False)
        outcome = await executor.execute("a", "restart-service", AsyncMock(return_value=None))
        assert outcome.succeeded


class TestRecordingHelpers:
    async def test_skip_and_fail_are_recorded(self) -> None:
        executor, agg = _executor(simulate=False)
        executor.skip("web/api:v9", "retain", resource="web/api")
        executor.fail("db-01", "probe", "host unreachable", resource="db-01")
        summary = agg.seal()
        assert (summary.skipped, summary.failed, summary.attempted) == (1, 1, 1)

    async def test_notify_records_acted_even_when_channel_fails(self) -> None:
        executor, agg = _executor(simulate=False)
        dispatcher = AlertDispatcher([RecordingChannel(ChannelKind.SLACK, succeed=False)])

        outcome = await executor.notify(dispatcher, make_alert(), channels=[ChannelKind.SLACK], target="web-01/nginx")

        assert outcome.status is OutcomeStatus.ACTED
        assert outcome.target == "web-01/nginx"
        assert "slack=failed" in outcome.detail
        assert agg.snapshot().failed == 0

    async def test_notify_in_simulate_mode_contacts_no_channel(self) -> None:
        executor, _ = _executor(simulate=True)
        channel = RecordingChannel(ChannelKind.EMAIL)
        outcome = await executor.notify(AlertDispatcher([channel]), make_alert(), channels=[ChannelKind.EMAIL])

        assert channel.sent == []
        assert outcome.status is OutcomeStatus.SIMULATED
        assert "email=simulated" in outcome.detail
