"""Core data structures for fleetkeeper."""

from fleetkeeper.models.alerts import Alert
from fleetkeeper.models.config import FleetkeeperConfig
from fleetkeeper.models.events import (
    AlertCategory,
    Comparison,
    ObservationKind,
    OutcomeStatus,
    RunState,
    Severity,
)
from fleetkeeper.models.outcomes import ActionOutcome, RunSummary
from fleetkeeper.models.policy import HealthThresholds, RetentionPolicy, ThresholdPolicy
from fleetkeeper.models.resources import Observation, Resource, Scope

__all__ = [
    "ActionOutcome",
    "Alert",
    "AlertCategory",
    "Comparison",
    "FleetkeeperConfig",
    "HealthThresholds",
    "Observation",
    "ObservationKind",
    "OutcomeStatus",
    "Resource",
    "RetentionPolicy",
    "RunState",
    "RunSummary",
    "Scope",
    "Severity",
    "ThresholdPolicy",
]
