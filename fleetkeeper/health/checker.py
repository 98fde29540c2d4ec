"""Health checking: threshold evaluation, alerting and service restarts."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from functools import partial

from fleetkeeper.engine.evaluator import PolicyDecision, evaluate
from fleetkeeper.engine.executor import ActionExecutor
from fleetkeeper.engine.runner import ResourcePlan, ResourceProcessor
from fleetkeeper.health.probe import HostProbe
from fleetkeeper.models.alerts import Alert
from fleetkeeper.models.events import AlertCategory, ObservationKind, Severity, category_for
from fleetkeeper.models.policy import HealthThresholds, ThresholdPolicy
from fleetkeeper.models.resources import Observation, Resource
from fleetkeeper.notifications.manager import AlertDispatcher, ChannelKind
from fleetkeeper.observability.logging import get_logger

_log = get_logger("health.checker")


def describe_breach(host: str, obs: Observation, policy: ThresholdPolicy) -> str:
    if obs.kind is ObservationKind.DISK:
        capacity = f" of {obs.capacity:.1f} GB" if obs.capacity is not None else ""
        return (
            f"Drive {obs.key} on {host} has {obs.value:.1f} GB free{capacity}, "
            f"below the {policy.threshold:.1f} GB threshold"
        )
    if obs.kind is ObservationKind.CPU:
        return f"CPU usage on {host} is {obs.value:.1f}%, above the {policy.threshold:.1f}% threshold"
    if obs.kind is ObservationKind.MEMORY:
        return f"Memory usage on {host} is {obs.value:.1f}%, above the {policy.threshold:.1f}% threshold"
    if obs.kind is ObservationKind.SERVICE:
        return f"Service {obs.key} on {host} is not running"
    return f"{obs.key} on {host} is {obs.value} ({policy.comparison.value} {policy.threshold})"


def build_alert(host: str, obs: Observation, policy: ThresholdPolicy) -> Alert:
    """Alert for one observation that breached *policy*."""
    return Alert(
        severity=policy.severity,
        category=category_for(obs.kind),
        subject=host,
        message=describe_breach(host, obs, policy),
        timestamp=obs.recorded_at,
    )


class HealthChecker(ResourceProcessor):
    """Evaluates each host's samples against kind-scoped thresholds.

    * Unreachable host: one failed ``probe`` outcome and a Critical alert.
    * Healthy sample: a skipped ``check`` outcome.
    * Breached sample: an ``alert`` outcome and a dispatched Alert.
    * Stopped service with ``restart_services``: a ``restart-service`` action.
    """

    pipeline = "health-check"

    def __init__(
        self,
        probe: HostProbe,
        dispatcher: AlertDispatcher,
        thresholds: HealthThresholds | None = None,
        channels: list[ChannelKind] | None = None,
        restart_services: bool = False,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._probe = probe
        self._dispatcher = dispatcher
        self.thresholds = thresholds or HealthThresholds()
        self._policies = self.thresholds.policies()
        self._channels = channels
        self._restart_services = restart_services
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def evaluate(self, resource: Resource) -> ResourcePlan:
        if not resource.reachable:
            return ResourcePlan(resource=resource, decision=PolicyDecision())
        return ResourcePlan(resource=resource, decision=evaluate(resource.observations, self._policies))

    async def act(self, plan: ResourcePlan, executor: ActionExecutor) -> None:
        resource = plan.resource
        host = resource.name

        if not resource.reachable:
            executor.fail(host, "probe", resource.error or "unreachable", resource=host)
            alert = Alert(
                severity=Severity.CRITICAL,
                category=AlertCategory.OTHER,
                subject=host,
                message=f"Host {host} could not be checked: {resource.error}",
                timestamp=self._clock(),
            )
            await executor.notify(self._dispatcher, alert, channels=self._channels, target=host, resource=host)
            return

        if not resource.observations:
            executor.skip(host, "check", resource=host, detail="nothing observed")
            return

        _log.info(
            "host_evaluated",
            host=host,
            samples=len(resource.observations),
            breached=len(plan.decision.prune),
        )
        for obs in plan.decision.retain:
            executor.skip(f"{host}/{obs.key}", "check", resource=host, detail=f"{obs.kind.value}={obs.value:g}")

        for obs in plan.decision.prune:
            target = f"{host}/{obs.key}"
            alert = build_alert(host, obs, self._policies[obs.kind])
            await executor.notify(self._dispatcher, alert, channels=self._channels, target=target, resource=host)
            if obs.kind is ObservationKind.SERVICE and self._restart_services:
                await executor.execute(
                    target,
                    "restart-service",
                    partial(self._probe.restart_service, host, obs.key),
                    resource=host,
                )
