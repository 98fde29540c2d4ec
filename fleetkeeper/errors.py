"""Exception hierarchy shared by every fleetkeeper pipeline.

Two tiers matter to callers:

    RunFatalError -- aborts the whole invocation before any action is taken.
                     The CLI maps it to a non-zero exit code.
    everything else raised while acting on one item is item-local and is
    captured by the ActionExecutor as a failed ActionOutcome.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fleetkeeper.models.outcomes import RunSummary


class FleetkeeperError(Exception):
    """Base class for all fleetkeeper errors."""


class RunFatalError(FleetkeeperError):
    """Raised when the run cannot proceed at all.

    The runner attaches the sealed ``aborted`` summary as ``summary``.
    """

    summary: RunSummary | None = None


class EnumerationError(RunFatalError):
    """Raised when an upstream listing call fails.

    Enumeration is all-or-nothing: a single failure aborts the run.
    """

    def __init__(self, message: str, resource: str | None = None) -> None:
        super().__init__(message)
        self.resource = resource


class PolicyError(RunFatalError, ValueError):
    """Raised when a retention or threshold policy is misconfigured."""


class ConfigError(RunFatalError, ValueError):
    """Raised when configuration values cannot be parsed or validated."""
