"""
Tests for quota planning and weight renormalization.
"""

import math

import pytest

from ratiomix.mixers.quota_planner import MixConfigError, plan, renormalize
from ratiomix.mixers.types import SourceQuota, TargetSpec

COUNT_10 = TargetSpec(mode="count", value=10)


class TestPlan:
    def test_normalizes_on_one_axis(self):
        quotas = [
            SourceQuota("A", weight=1, weight_type="frequency"),
            SourceQuota("B", weight=3, weight_type="time"),
        ]
        p = plan(quotas, COUNT_10)
        assert p.normalized_weight == {"A": 0.25, "B": 0.75}

    def test_group_bounds_pass_through(self):
        p = plan([SourceQuota("A", min_group=2, max_group=5)], COUNT_10)
        assert p.group_bounds == {"A": (2, 5)}

    def test_only_active_sources_share_weight(self):
        quotas = [SourceQuota("A", weight=2), SourceQuota("B", weight=2), SourceQuota("C", weight=4)]
        p = plan(quotas, COUNT_10, active=["A", "C"])
        assert p.normalized_weight == pytest.approx({"A": 1 / 3, "C": 2 / 3})

    def test_all_mode_ignores_value(self):
        plan([SourceQuota("A")], TargetSpec(mode="all"))


class TestValidation:
    """Malformed configuration is rejected, never clamped."""

    @pytest.mark.parametrize(
        "quota",
        [
            SourceQuota("A", min_group=3, max_group=2),
            SourceQuota("A", min_group=0, max_group=2),
            SourceQuota("A", min_group=1.5, max_group=2),
            SourceQuota("A", weight=0),
            SourceQuota("A", weight=-1),
            SourceQuota("A", weight=math.inf),
            SourceQuota("A", weight=math.nan),
            SourceQuota("A", weight=True),
            SourceQuota("A", weight_type="popularity"),
        ],
    )
    def test_bad_quota(self, quota):
        with pytest.raises(MixConfigError):
            plan([quota], COUNT_10)

    @pytest.mark.parametrize(
        "target",
        [
            TargetSpec(mode="count", value=0),
            TargetSpec(mode="duration", value=-1000),
            TargetSpec(mode="count", value=True),
            TargetSpec(mode="songs", value=10),
        ],
    )
    def test_bad_target(self, target):
        with pytest.raises(MixConfigError):
            plan([SourceQuota("A")], target)

    def test_config_error_is_value_error(self):
        assert issubclass(MixConfigError, ValueError)


class TestRenormalize:
    def test_sums_to_one(self):
        weights = {"A": 1.0, "B": 2.0, "C": 5.0}
        out = renormalize(weights, ["B", "C"])
        assert set(out) == {"B", "C"}
        assert sum(out.values()) == pytest.approx(1.0)
        assert out["C"] == pytest.approx(5 / 7)

    def test_empty_active_set(self):
        assert renormalize({"A": 1.0}, []) == {}

    def test_unknown_ids_are_ignored(self):
        assert renormalize({"A": 2.0}, ["A", "Z"]) == {"A": 1.0}
