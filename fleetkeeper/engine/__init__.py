"""Enumerate -> evaluate -> act -> aggregate engine shared by all pipelines."""

from fleetkeeper.engine.aggregator import RunAggregator
from fleetkeeper.engine.audit import OutcomeLog
from fleetkeeper.engine.evaluator import PolicyDecision, evaluate
from fleetkeeper.engine.executor import ActionExecutor
from fleetkeeper.engine.runner import (
    MaintenanceRun,
    ResourceEnumerator,
    ResourcePlan,
    ResourceProcessor,
)

__all__ = [
    "ActionExecutor",
    "MaintenanceRun",
    "OutcomeLog",
    "PolicyDecision",
    "ResourceEnumerator",
    "ResourcePlan",
    "ResourceProcessor",
    "RunAggregator",
    "evaluate",
]
