from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Mapping, Sequence

from ratiomix.mixers.types import SourceQuota, SourceStats, TargetSpec, Track

# Used to convert between song counts and durations when a pool has no tracks to average.
DEFAULT_AVG_TRACK_MS = 210_000

# A limiting source only warns when it runs dry before this share of the target.
IMBALANCE_WARN_RATIO = 0.9


@dataclass(frozen=True)
class ExceedsLimitWarning:
    unit: Literal["songs", "ms"]
    requested: int
    available: int


@dataclass(frozen=True)
class RatioImbalanceWarning:
    limiting_source_id: str
    unit: Literal["songs", "ms"]
    imbalanced_at: int
    will_stop_early: bool


@dataclass(frozen=True)
class MixWarnings:
    exceeds_limit: ExceedsLimitWarning | None = None
    ratio_imbalance: RatioImbalanceWarning | None = None


def format_duration(ms: object) -> str:
    """m:ss, or h:mm:ss from one hour up."""
    if isinstance(ms, bool) or not isinstance(ms, (int, float)):
        return "0:00"
    if not math.isfinite(ms) or ms < 0:
        return "0:00"
    total_seconds = int(ms // 1000)
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def build_breakdown(
    tracks: Sequence[Track],
    weight_types: Mapping[str, str],
    *,
    exhausted: set[str] | frozenset[str] = frozenset(),
) -> dict[str, SourceStats]:
    counts: dict[str, int] = {}
    durations: dict[str, int] = {}
    for sid in weight_types:
        counts[sid] = 0
        durations[sid] = 0
    for tr in tracks:
        counts[tr.source_id] = counts.get(tr.source_id, 0) + 1
        durations[tr.source_id] = durations.get(tr.source_id, 0) + tr.duration_ms

    total_count = len(tracks)
    total_duration = sum(durations.values())
    out: dict[str, SourceStats] = {}
    for sid in counts:
        if weight_types.get(sid, "frequency") == "time":
            share = 100.0 * durations[sid] / total_duration if total_duration > 0 else 0.0
        else:
            share = 100.0 * counts[sid] / total_count if total_count > 0 else 0.0
        out[sid] = SourceStats(
            count=counts[sid],
            duration_ms=durations[sid],
            share=round(share, 2),
            exhausted=sid in exhausted,
        )
    return out


def estimate_warnings(
    pools_by_source: Mapping[str, Sequence[Track]],
    quotas: Mapping[str, SourceQuota],
    target: TargetSpec,
    *,
    continue_when_exhausted: bool = True,
) -> MixWarnings:
    """
    Cheap pre-mix checks shown before a mix is run.

    exceeds_limit: the target asks for more than all sources hold together.
    ratio_imbalance: with the requested weights, the first source to run dry
    does so before the target is reached. imbalanced_at is the mix length
    (songs or ms, matching the target) at which that happens.
    """
    pools = {sid: tracks for sid, tracks in pools_by_source.items() if tracks}
    unique: dict[str, Track] = {}
    for tracks in pools.values():
        for tr in tracks:
            unique.setdefault(tr.track_id, tr)
    available_count = len(unique)
    available_ms = sum(tr.duration_ms for tr in unique.values())

    exceeds: ExceedsLimitWarning | None = None
    if target.mode == "count" and target.value > available_count:
        exceeds = ExceedsLimitWarning(unit="songs", requested=target.value, available=available_count)
    elif target.mode == "duration" and target.value > available_ms:
        exceeds = ExceedsLimitWarning(unit="ms", requested=target.value, available=available_ms)

    imbalance: RatioImbalanceWarning | None = None
    if len(pools) >= 2:
        imbalance = _ratio_imbalance(pools, quotas, target, continue_when_exhausted, available_count)

    return MixWarnings(exceeds_limit=exceeds, ratio_imbalance=imbalance)


def _ratio_imbalance(
    pools: Mapping[str, Sequence[Track]],
    quotas: Mapping[str, SourceQuota],
    target: TargetSpec,
    continue_when_exhausted: bool,
    available_count: int,
) -> RatioImbalanceWarning | None:
    weights = {sid: float(quotas[sid].weight) if sid in quotas else 1.0 for sid in pools}
    total_weight = sum(weights.values())
    if total_weight <= 0:
        return None

    unit: Literal["songs", "ms"] = "ms" if target.mode == "duration" else "songs"
    limiting: tuple[float, str] | None = None
    for sid, tracks in pools.items():
        ratio = weights[sid] / total_weight
        count = len(tracks)
        duration = sum(tr.duration_ms for tr in tracks)
        avg_ms = duration / count if count else DEFAULT_AVG_TRACK_MS
        weight_type = quotas[sid].weight_type if sid in quotas else "frequency"
        if duration <= 0 and (weight_type == "time" or unit == "ms"):
            # zero-length tracks never move a time total, so this source cannot run the mix dry
            continue

        # mix length at which this source is used up, in the target's unit
        if weight_type == "time":
            at_ms = duration / ratio
            at = at_ms if unit == "ms" else at_ms / avg_ms
        else:
            at_songs = count / ratio
            at = at_songs * avg_ms if unit == "ms" else at_songs
        if limiting is None or at < limiting[0]:
            limiting = (at, sid)

    if limiting is None:
        return None
    at, sid = limiting

    if target.mode == "all":
        goal = float(available_count)
    else:
        goal = float(target.value)
    if at >= goal * IMBALANCE_WARN_RATIO:
        return None
    return RatioImbalanceWarning(
        limiting_source_id=sid,
        unit=unit,
        imbalanced_at=int(at),
        will_stop_early=not continue_when_exhausted,
    )
