"""Retention and threshold policy data structures.

Policies are validated on construction; a misconfigured policy raises
PolicyError, which is run-fatal.
"""

from __future__ import annotations

from dataclasses import dataclass

from fleetkeeper.errors import PolicyError
from fleetkeeper.models.events import Comparison, ObservationKind, Severity


@dataclass(frozen=True)
class RetentionPolicy:
    """Keep the ``keep_count`` most recent observations of each resource."""

    keep_count: int

    def __post_init__(self) -> None:
        if isinstance(self.keep_count, bool) or not isinstance(self.keep_count, int):
            raise PolicyError(f"keep_count must be an integer, got {self.keep_count!r}")
        if self.keep_count < 1:
            raise PolicyError(f"keep_count must be >= 1, got {self.keep_count}")


@dataclass(frozen=True)
class ThresholdPolicy:
    """Flags a metric sample whose value crosses ``threshold``.

    The comparison is strict: a value equal to the threshold is healthy.
    """

    kind: ObservationKind
    threshold: float
    comparison: Comparison
    severity: Severity = Severity.WARNING

    def breached(self, value: float) -> bool:
        if self.comparison is Comparison.BELOW:
            return value < self.threshold
        return value > self.threshold


# Service observations carry 1.0 for running and 0.0 for anything else.
SERVICE_RUNNING = 1.0
SERVICE_STOPPED = 0.0


@dataclass(frozen=True)
class HealthThresholds:
    """The recognized health-check options."""

    disk_free_gb: float = 10.0
    cpu_percent: float = 90.0
    memory_percent: float = 90.0

    def __post_init__(self) -> None:
        if self.disk_free_gb < 0:
            raise PolicyError(f"disk threshold must be >= 0 GB, got {self.disk_free_gb}")
        for name, value in (("cpu", self.cpu_percent), ("memory", self.memory_percent)):
            if not 0 < value <= 100:
                raise PolicyError(f"{name} threshold must be in (0, 100], got {value}")

    def policies(self) -> dict[ObservationKind, ThresholdPolicy]:
        """Return the kind-scoped policy mapping used by the evaluator."""
        return {
            ObservationKind.DISK: ThresholdPolicy(ObservationKind.DISK, self.disk_free_gb, Comparison.BELOW),
            ObservationKind.CPU: ThresholdPolicy(ObservationKind.CPU, self.cpu_percent, Comparison.ABOVE),
            ObservationKind.MEMORY: ThresholdPolicy(ObservationKind.MEMORY, self.memory_percent, Comparison.ABOVE),
            ObservationKind.SERVICE: ThresholdPolicy(
                ObservationKind.SERVICE,
                SERVICE_RUNNING,
                Comparison.BELOW,
                severity=Severity.CRITICAL,
            ),
        }
