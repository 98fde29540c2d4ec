"""Core enumerations shared across the data model."""

from __future__ import annotations

from enum import StrEnum


class Severity(StrEnum):
    """Alert severity level."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertCategory(StrEnum):
    """What kind of condition an alert reports."""

    DISK = "disk"
    CPU = "cpu"
    MEMORY = "memory"
    SERVICE = "service"
    OTHER = "other"


class ObservationKind(StrEnum):
    """Kind of observation attached to a resource."""

    IMAGE_TAG = "image_tag"
    DISK = "disk"
    CPU = "cpu"
    MEMORY = "memory"
    SERVICE = "service"


class OutcomeStatus(StrEnum):
    """Status of a single recorded action."""

    ACTED = "acted"
    SIMULATED = "simulated"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunState(StrEnum):
    """Lifecycle state of one pipeline run."""

    ENUMERATING = "enumerating"
    EVALUATING = "evaluating"
    ACTING = "acting"
    AGGREGATED = "aggregated"
    ABORTED = "aborted"


class Comparison(StrEnum):
    """Direction in which a threshold is crossed."""

    BELOW = "below"
    ABOVE = "above"


_CATEGORY_BY_KIND: dict[ObservationKind, AlertCategory] = {
    ObservationKind.DISK: AlertCategory.DISK,
    ObservationKind.CPU: AlertCategory.CPU,
    ObservationKind.MEMORY: AlertCategory.MEMORY,
    ObservationKind.SERVICE: AlertCategory.SERVICE,
}


def category_for(kind: ObservationKind) -> AlertCategory:
    """Map an observation kind to the alert category it raises."""
    return _CATEGORY_BY_KIND.get(kind, AlertCategory.OTHER)
