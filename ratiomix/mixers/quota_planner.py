from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Mapping

from ratiomix.mixers.types import TARGET_MODES, WEIGHT_TYPES, SourceQuota, TargetSpec


class MixConfigError(ValueError):
    """Raised for quota or target configuration the caller must fix."""


@dataclass(frozen=True)
class QuotaPlan:
    normalized_weight: dict[str, float]
    group_bounds: dict[str, tuple[int, int]]


def validate_quota(quota: SourceQuota) -> None:
    sid = quota.source_id
    if not isinstance(quota.min_group, int) or not isinstance(quota.max_group, int):
        raise MixConfigError(f"quota[{sid}]: min_group/max_group must be integers")
    if quota.min_group < 1:
        raise MixConfigError(f"quota[{sid}]: min_group must be >= 1 (got {quota.min_group})")
    if quota.min_group > quota.max_group:
        raise MixConfigError(
            f"quota[{sid}]: min_group ({quota.min_group}) must not exceed max_group ({quota.max_group})"
        )
    if isinstance(quota.weight, bool) or not isinstance(quota.weight, (int, float)):
        raise MixConfigError(f"quota[{sid}]: weight must be a number")
    if not math.isfinite(quota.weight) or quota.weight <= 0:
        raise MixConfigError(f"quota[{sid}]: weight must be a positive finite number (got {quota.weight})")
    if quota.weight_type not in WEIGHT_TYPES:
        raise MixConfigError(f"quota[{sid}]: unknown weight_type {quota.weight_type!r}")


def validate_target(target: TargetSpec) -> None:
    if target.mode not in TARGET_MODES:
        raise MixConfigError(f"unknown target mode {target.mode!r}")
    if target.mode == "all":
        return
    if isinstance(target.value, bool) or not isinstance(target.value, int) or target.value <= 0:
        raise MixConfigError(f"target value must be a positive integer for mode {target.mode!r}")


def renormalize(weights: Mapping[str, float], active: Iterable[str]) -> dict[str, float]:
    """Rescale the weights of the active sources so they sum to 1."""
    active_ids = [sid for sid in active if sid in weights]
    total = sum(weights[sid] for sid in active_ids)
    if total <= 0:
        return {}
    return {sid: weights[sid] / total for sid in active_ids}


def plan(quotas: Iterable[SourceQuota], target: TargetSpec, *, active: Iterable[str] | None = None) -> QuotaPlan:
    quota_list = list(quotas)
    for q in quota_list:
        validate_quota(q)
    validate_target(target)

    raw = {q.source_id: float(q.weight) for q in quota_list}
    active_ids = list(active) if active is not None else list(raw)
    return QuotaPlan(
        normalized_weight=renormalize(raw, active_ids),
        group_bounds={q.source_id: (q.min_group, q.max_group) for q in quota_list},
    )
