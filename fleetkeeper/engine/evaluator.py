"""Pure policy evaluation.

``evaluate`` takes observations already sorted newest-first and a policy,
and splits them into the set to retain and the set to act on.  It performs
no I/O and never raises for empty input.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from fleetkeeper.errors import PolicyError
from fleetkeeper.models.events import ObservationKind
from fleetkeeper.models.policy import RetentionPolicy, ThresholdPolicy
from fleetkeeper.models.resources import Observation

Policy = RetentionPolicy | ThresholdPolicy | Mapping[ObservationKind, ThresholdPolicy]


@dataclass(frozen=True)
class PolicyDecision:
    """Split of one resource's observations.

    ``prune`` holds the observations to act on: tags to delete in retention
    mode, or samples that breached their threshold in threshold mode.
    """

    retain: tuple[Observation, ...] = ()
    prune: tuple[Observation, ...] = ()


def evaluate(observations: Sequence[Observation], policy: Policy) -> PolicyDecision:
    """Apply *policy* to *observations* and return the resulting decision."""
    if isinstance(policy, RetentionPolicy):
        return _evaluate_retention(observations, policy)
    if isinstance(policy, ThresholdPolicy):
        return _evaluate_thresholds(observations, {policy.kind: policy})
    if isinstance(policy, Mapping):
        return _evaluate_thresholds(observations, policy)
    raise PolicyError(f"Unsupported policy type: {type(policy).__name__}")


def _evaluate_retention(observations: Sequence[Observation], policy: RetentionPolicy) -> PolicyDecision:
    keep = policy.keep_count
    return PolicyDecision(retain=tuple(observations[:keep]), prune=tuple(observations[keep:]))


def _evaluate_thresholds(
    observations: Sequence[Observation],
    policies: Mapping[ObservationKind, ThresholdPolicy],
) -> PolicyDecision:
    retain: list[Observation] = []
    breached: list[Observation] = []
    for obs in observations:
        policy = policies.get(obs.kind)
        # Kinds without a policy are never flagged.
        if policy is not None and policy.breached(obs.value):
            breached.append(obs)
        else:
            retain.append(obs)
    return PolicyDecision(retain=tuple(retain), prune=tuple(breached))
