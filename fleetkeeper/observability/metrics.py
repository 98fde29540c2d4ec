"""Prometheus metrics for fleetkeeper runs.

All collectors live on a dedicated registry so that a Pushgateway push
carries only fleetkeeper series.
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram, push_to_gateway

from fleetkeeper.observability.logging import get_logger

_log = get_logger("observability.metrics")

REGISTRY = CollectorRegistry()

actions_total = Counter(
    "fleetkeeper_actions_total",
    "Recorded action outcomes by pipeline, action and status.",
    ["pipeline", "action", "status"],
    registry=REGISTRY,
)

notifications_total = Counter(
    "fleetkeeper_notifications_total",
    "Alert delivery attempts by channel and status.",
    ["channel", "status"],
    registry=REGISTRY,
)

runs_total = Counter(
    "fleetkeeper_runs_total",
    "Completed or aborted runs by pipeline and final state.",
    ["pipeline", "state"],
    registry=REGISTRY,
)

run_duration_seconds = Histogram(
    "fleetkeeper_run_duration_seconds",
    "Wall-clock duration of a pipeline run.",
    ["pipeline"],
    registry=REGISTRY,
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1800),
)


def push_metrics(gateway: str, job: str) -> bool:
    """Push the fleetkeeper registry to a Pushgateway.

    Failure is logged and reported as False; it never aborts a run.
    """
    try:
        push_to_gateway(gateway, job=job, registry=REGISTRY)
    except OSError as exc:
        _log.warning("metrics_push_failed", gateway=gateway, job=job, error=str(exc))
        return False
    _log.debug("metrics_pushed", gateway=gateway, job=job)
    return True
