"""Tests for the pure policy evaluator: retention and threshold modes."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from hypothesis import given
from hypothesis import strategies as st

from fleetkeeper.engine.evaluator import PolicyDecision, evaluate
from fleetkeeper.errors import PolicyError
from fleetkeeper.models.events import Comparison, ObservationKind, Severity
from fleetkeeper.models.policy import HealthThresholds, RetentionPolicy, ThresholdPolicy
from fleetkeeper.models.resources import Observation
from tests.conftest import make_tag_observations

_TS = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


def _metric(kind: ObservationKind, value: float, key: str = "") -> Observation:
    return Observation(kind=kind, key=key or kind.value, value=value, recorded_at=_TS)


# ---------------------------------------------------------------------------
# Retention mode
# ---------------------------------------------------------------------------


class TestRetention:
    def test_twelve_tags_keep_five(self) -> None:
        observations = make_tag_observations(12)
        decision = evaluate(observations, RetentionPolicy(5))

        assert len(decision.prune) == 7
        assert len(decision.retain) == 5
        assert [o.key for o in decision.retain] == ["v12", "v11", "v10", "v9", "v8"]
        assert [o.key for o in decision.prune] == ["v7", "v6", "v5", "v4", "v3", "v2", "v1"]

    def test_fewer_tags_than_keep_count_prunes_nothing(self) -> None:
        decision = evaluate(make_tag_observations(3), RetentionPolicy(5))
        assert decision.prune == ()
        assert len(decision.retain) == 3

    def test_exactly_keep_count_prunes_nothing(self) -> None:
        decision = evaluate(make_tag_observations(5), RetentionPolicy(5))
        assert decision.prune == ()

    def test_empty_input_is_not_an_error(self) -> None:
        assert evaluate((), RetentionPolicy(1)) == PolicyDecision()

    @pytest.mark.parametrize("keep", [0, -1, -100])
    def test_non_positive_keep_count_rejected(self, keep: int) -> None:
        with pytest.raises(PolicyError):
            RetentionPolicy(keep)

    def test_bool_keep_count_rejected(self) -> None:
        with pytest.raises(PolicyError):
            RetentionPolicy(True)

    @given(n=st.integers(min_value=0, max_value=60), keep=st.integers(min_value=1, max_value=20))
    def test_retention_properties(self, n: int, keep: int) -> None:
        observations = make_tag_observations(n)
        decision = evaluate(observations, RetentionPolicy(keep))

        assert len(decision.prune) == max(0, n - keep)
        assert decision.retain + decision.prune == observations
        newest = sorted(observations, key=lambda o: o.recorded_at, reverse=True)[:keep]
        assert set(decision.retain) == set(newest)


# ---------------------------------------------------------------------------
# Threshold mode
# ---------------------------------------------------------------------------


class TestThresholds:
    def test_disk_below_threshold_breaches(self) -> None:
        policy = ThresholdPolicy(ObservationKind.DISK, 10.0, Comparison.BELOW)
        disk = _metric(ObservationKind.DISK, 8.0, key="/")
        decision = evaluate([disk], policy)
        assert decision.prune == (disk,)
        assert decision.retain == ()

    def test_value_equal_to_threshold_is_healthy(self) -> None:
        policy = ThresholdPolicy(ObservationKind.CPU, 90.0, Comparison.ABOVE)
        assert evaluate([_metric(ObservationKind.CPU, 90.0)], policy).prune == ()

    def test_policies_are_kind_scoped(self) -> None:
        policies = HealthThresholds(disk_free_gb=10.0, cpu_percent=80.0, memory_percent=80.0).policies()
        # 85 breaches as CPU usage but is plenty of free disk.
        cpu = _metric(ObservationKind.CPU, 85.0)
        disk = _metric(ObservationKind.DISK, 85.0, key="/data")
        decision = evaluate([cpu, disk], policies)
        assert decision.prune == (cpu,)
        assert decision.retain == (disk,)

    def test_kind_without_policy_is_never_flagged(self) -> None:
        policy = ThresholdPolicy(ObservationKind.MEMORY, 50.0, Comparison.ABOVE)
        cpu = _metric(ObservationKind.CPU, 99.0)
        assert evaluate([cpu], policy).retain == (cpu,)

    def test_stopped_service_breaches_critical_policy(self) -> None:
        policies = HealthThresholds().policies()
        stopped = _metric(ObservationKind.SERVICE, 0.0, key="nginx")
        running = _metric(ObservationKind.SERVICE, 1.0, key="sshd")
        decision = evaluate([stopped, running], policies)
        assert decision.prune == (stopped,)
        assert policies[ObservationKind.SERVICE].severity is Severity.CRITICAL

    def test_empty_input_yields_empty_decision(self) -> None:
        assert evaluate([], HealthThresholds().policies()) == PolicyDecision()

    @pytest.mark.parametrize(
        ("disk", "cpu", "memory"),
        [(-1.0, 90.0, 90.0), (10.0, 0.0, 90.0), (10.0, 90.0, 101.0)],
    )
    def test_invalid_thresholds_rejected(self, disk: float, cpu: float, memory: float) -> None:
        with pytest.raises(PolicyError):
            HealthThresholds(disk_free_gb=disk, cpu_percent=cpu, memory_percent=memory)

    @given(
        values=st.lists(st.floats(min_value=0, max_value=100, allow_nan=False), max_size=30),
        threshold=st.floats(min_value=1, max_value=100, allow_nan=False),
    )
    def test_breached_subset_matches_comparison(self, values: list[float], threshold: float) -> None:
        observations = [_metric(ObservationKind.MEMORY, v, key=f"m{i}") for i, v in enumerate(values)]
        decision = evaluate(observations, ThresholdPolicy(ObservationKind.MEMORY, threshold, Comparison.ABOVE))
        assert [o.value for o in decision.prune] == [v for v in values if v > threshold]
        assert len(decision.prune) + len(decision.retain) == len(values)


def test_unsupported_policy_type_raises() -> None:
    with pytest.raises(PolicyError):
        evaluate([], object())  # type: ignore[arg-type]
