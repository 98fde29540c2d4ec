"""Per-item action execution with simulate mode and failure isolation.

Every action goes through ``ActionExecutor``.  An exception raised by one
action is converted into a failed ActionOutcome and logged; it never
propagates to the caller, so the remaining items are still processed.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING

from fleetkeeper.engine.aggregator import RunAggregator
from fleetkeeper.models.alerts import Alert
from fleetkeeper.models.events import OutcomeStatus
from fleetkeeper.models.outcomes import ActionOutcome
from fleetkeeper.observability.logging import get_logger

if TYPE_CHECKING:
    from fleetkeeper.notifications.manager import AlertDispatcher, ChannelKind

_log = get_logger("engine.executor")

Operation = Callable[[], Awaitable[bool | None]]


class ActionExecutor:
    """Performs mutating actions unless ``simulate`` is set.

    Args:
        aggregator: Receives every outcome as soon as it is produced.
        simulate:   When True, no operation is invoked and outcomes are
                    recorded as ``simulated``.
    """

    def __init__(self, aggregator: RunAggregator, simulate: bool) -> None:
        self._aggregator = aggregator
        self.simulate = simulate

    async def execute(
        self,
        target: str,
        action: str,
        operation: Operation,
        resource: str = "",
    ) -> ActionOutcome:
        """Run *operation* for *target* and record the outcome.

        An operation returning ``False`` is treated as a failure reported by
        the remote side; ``True`` or ``None`` is success.
        """
        if self.simulate:
            _log.info("action_simulated", target=target, action=action, resource=resource)
            return self._record(
                ActionOutcome(
                    target=target,
                    action=action,
                    status=OutcomeStatus.SIMULATED,
                    resource=resource,
                    detail=f"would {action}",
                )
            )

        try:
            result = await operation()
        except Exception as exc:  # noqa: BLE001
            _log.error("action_failed", target=target, action=action, resource=resource, error=str(exc))
            return self._record(
                ActionOutcome(
                    target=target,
                    action=action,
                    status=OutcomeStatus.FAILED,
                    resource=resource,
                    error=f"{type(exc).__name__}: {exc}",
                )
            )

        if result is False:
            _log.warning("action_rejected", target=target, action=action, resource=resource)
            return self._record(
                ActionOutcome(
                    target=target,
                    action=action,
                    status=OutcomeStatus.FAILED,
                    resource=resource,
                    error="operation reported failure",
                )
            )

        _log.info("action_succeeded", target=target, action=action, resource=resource)
        return self._record(ActionOutcome(target=target, action=action, status=OutcomeStatus.ACTED, resource=resource))

    def skip(self, target: str, action: str, resource: str = "", detail: str = "") -> ActionOutcome:
        """Record an item that was considered and needed no action."""
        return self._record(
            ActionOutcome(
                target=target,
                action=action,
                status=OutcomeStatus.SKIPPED,
                resource=resource,
                detail=detail,
            )
        )

    def fail(self, target: str, action: str, error: str, resource: str = "") -> ActionOutcome:
        """Record an item-local failure detected outside ``execute`` (e.g. a probe)."""
        _log.warning("item_failed", target=target, action=action, resource=resource, error=error)
        return self._record(
            ActionOutcome(
                target=target,
                action=action,
                status=OutcomeStatus.FAILED,
                resource=resource,
                error=error,
            )
        )

    async def notify(
        self,
        dispatcher: AlertDispatcher,
        alert: Alert,
        channels: Iterable[ChannelKind] | None = None,
        target: str | None = None,
        resource: str = "",
    ) -> ActionOutcome:
        """Dispatch *alert* and record one outcome for it under *target*.

        Channel failures are reported in ``detail`` only; they never turn
        the outcome into a failure.
        """
        result = await dispatcher.dispatch(alert, channels=channels, simulate=self.simulate)
        status = OutcomeStatus.SIMULATED if self.simulate else OutcomeStatus.ACTED
        return self._record(
            ActionOutcome(
                target=target or alert.subject,
                action="alert",
                status=status,
                resource=resource,
                detail=f"{alert.severity.value}/{alert.category.value}: {result.describe()}",
            )
        )

    def _record(self, outcome: ActionOutcome) -> ActionOutcome:
        self._aggregator.record(outcome)
        return outcome
