from __future__ import annotations

import dataclasses
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping, Sequence

from ratiomix.mixers.mix_stats import build_breakdown
from ratiomix.mixers.popularity import (
    DEFAULT_RECENCY_MAX_BONUS,
    DEFAULT_RECENCY_WINDOW_DAYS,
    classify,
)
from ratiomix.mixers.quota_planner import MixConfigError, plan, renormalize
from ratiomix.mixers.strategies import MixingStrategy, clamp_fraction, get_strategy
from ratiomix.mixers.track_pool import TrackPool, dedupe_tracks
from ratiomix.mixers.types import (
    MixResult,
    SourceContribution,
    SourceQuota,
    StrategySpec,
    TargetSpec,
    Track,
)


def target_reached(target: TargetSpec, count: int, duration_ms: int) -> bool:
    if target.mode == "count":
        return count >= target.value
    if target.mode == "duration":
        return duration_ms >= target.value
    return False


@dataclass
class _MixSession:
    pools: dict[str, TrackPool]
    quotas: dict[str, SourceQuota]
    raw_weights: dict[str, float]
    weights: dict[str, float]
    active: list[str]
    total_available: int
    contributions: dict[str, SourceContribution] = field(default_factory=dict)
    output: list[Track] = field(default_factory=list)
    count: int = 0
    duration_ms: int = 0
    exhausted: list[str] = field(default_factory=list)


class PlaylistMixer:
    """
    Weighted round-robin interleaver over per-source track pools.

    One call to mix() runs SELECT_SOURCE -> DRAW_BATCH -> ORDER_BATCH ->
    APPEND -> CHECK_TARGET until the target is met or every source is used
    up. All randomness goes through self.rng.
    """
    # A source below this fraction of its expected share draws max_group.
    BALANCE_BOOST_THRESHOLD = 0.8

    def __init__(
        self,
        rng: random.Random | None = None,
        *,
        seed: int | None = None,
        as_of: date | None = None,
        recency_window_days: int = DEFAULT_RECENCY_WINDOW_DAYS,
        recency_max_bonus: float = DEFAULT_RECENCY_MAX_BONUS,
        enable_debug_logs: bool = False,
        enable_timing_logs: bool = False,
    ) -> None:
        self.rng = rng if rng is not None else random.Random(seed)
        self.as_of = as_of
        self.recency_window_days = recency_window_days
        self.recency_max_bonus = recency_max_bonus
        self.enable_debug_logs = enable_debug_logs
        self.enable_timing_logs = enable_timing_logs
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def mix(
        self,
        pools_by_source: Mapping[str, Sequence[Track]],
        quotas: Mapping[str, SourceQuota],
        target: TargetSpec,
        strategy: StrategySpec,
    ) -> MixResult:
        total_start = time.perf_counter()
        debug: dict[str, Any] = {
            "timing_s": {},
            "decisions": {
                "strategy": strategy.popularity_strategy,
                "target": {"mode": target.mode, "value": target.value},
                "batches": [],
                "exhaustion_events": [],
            },
            "fallbacks": [],
            "errors": [],
        }

        step_start = time.perf_counter()
        strategy_impl = get_strategy(strategy.popularity_strategy)
        session = self._open_session(pools_by_source, quotas, target, strategy, debug)
        self._record_timing(debug, "plan", step_start)

        step_start = time.perf_counter()
        stop_reason = self._run(session, target, strategy, strategy_impl, debug)
        self._record_timing(debug, "sequence", step_start)
        debug["decisions"]["stop_reason"] = stop_reason

        result = self._build_result(session, target, debug)
        self._record_timing(debug, "total", total_start)
        self.logger.info(
            "Mix complete: %d tracks, %d ms from %d sources (stop=%s, strategy=%s)",
            len(result.tracks),
            result.total_duration_ms,
            len(session.pools),
            stop_reason,
            strategy.popularity_strategy,
        )
        self._emit_mix_debug(debug)
        return result

    # ---------- Planning ----------

    def _open_session(
        self,
        pools_by_source: Mapping[str, Sequence[Track]],
        quotas: Mapping[str, SourceQuota],
        target: TargetSpec,
        strategy: StrategySpec,
        debug: dict[str, Any],
    ) -> _MixSession:
        for sid, quota in quotas.items():
            if quota.source_id != sid:
                raise MixConfigError(f"quota keyed {sid!r} names source {quota.source_id!r}")

        resolved: dict[str, SourceQuota] = dict(quotas)
        for sid in pools_by_source:
            if sid not in resolved:
                resolved[sid] = SourceQuota(source_id=sid)
                debug["fallbacks"].append(f"default_quota:{sid}")

        tracks_by_source: dict[str, list[Track]] = {}
        for sid, tracks in pools_by_source.items():
            unique = dedupe_tracks(tracks)
            tracks_by_source[sid] = [
                tr if tr.source_id == sid else dataclasses.replace(tr, source_id=sid) for tr in unique
            ]
        active = [sid for sid, tracks in tracks_by_source.items() if tracks]

        quota_plan = plan(resolved.values(), target, active=active)

        pools: dict[str, TrackPool] = {}
        for sid in active:
            quartile_of = classify(
                tracks_by_source[sid],
                recency_boost=strategy.recency_boost,
                as_of=self.as_of,
                window_days=self.recency_window_days,
                max_bonus=self.recency_max_bonus,
            )
            pools[sid] = TrackPool(
                sid,
                tracks_by_source[sid],
                quartile_of,
                rng=self.rng,
                shuffle_within_groups=strategy.shuffle_within_groups,
            )

        unique_ids = {tr.track_id for sid in active for tr in tracks_by_source[sid]}
        debug["decisions"]["active_sources"] = list(active)
        debug["decisions"]["normalized_weights"] = dict(quota_plan.normalized_weight)
        debug["decisions"]["group_bounds"] = {sid: list(b) for sid, b in quota_plan.group_bounds.items()}
        debug["decisions"]["total_available"] = len(unique_ids)

        return _MixSession(
            pools=pools,
            quotas={sid: resolved[sid] for sid in active},
            raw_weights={sid: float(resolved[sid].weight) for sid in active},
            weights=dict(quota_plan.normalized_weight),
            active=list(active),
            total_available=len(unique_ids),
            contributions={sid: SourceContribution() for sid in active},
        )

    # ---------- Sequencing ----------

    def _run(
        self,
        session: _MixSession,
        target: TargetSpec,
        strategy: StrategySpec,
        strategy_impl: MixingStrategy,
        debug: dict[str, Any],
    ) -> str:
        if not session.active:
            return "no_active_sources"

        while True:
            # SELECT_SOURCE
            sid = self._select_source(session)
            pool = session.pools[sid]

            # DRAW_BATCH
            size = self._batch_size(session, sid, target)
            fraction = self._position_fraction(session, target)
            preference = strategy_impl.preference(fraction)
            batch: list[Track] = []
            while len(batch) < size:
                tr = pool.take(preference)
                if tr is None:
                    break
                batch.append(tr)

            # ORDER_BATCH
            ordered = strategy_impl.order_batch(batch, pool.quartile_of, fraction)

            # APPEND (the governor is checked per track so the last batch can stop short)
            appended = 0
            for tr in ordered:
                self._append(session, sid, tr)
                appended += 1
                if target_reached(target, session.count, session.duration_ms):
                    break
            if appended < len(ordered):
                pool.put_back(ordered[appended:])
            debug["decisions"]["batches"].append(
                {"source_id": sid, "size": appended, "fraction": round(fraction, 4)}
            )
            self.logger.debug(
                "Batch from %s: %d tracks at fraction %.3f (preference=%s)",
                sid,
                appended,
                fraction,
                preference,
            )

            exhausted_now = self._handle_exhaustion(session, debug)

            # CHECK_TARGET
            if target_reached(target, session.count, session.duration_ms):
                return "target_reached"
            if not session.active:
                return "all_sources_exhausted"
            if exhausted_now and not strategy.continue_when_exhausted:
                return "source_exhausted"

    def _select_source(self, session: _MixSession) -> str:
        total_count = sum(session.contributions[s].count for s in session.active)
        total_duration = sum(session.contributions[s].duration_ms for s in session.active)

        def deficit(item: tuple[int, str]) -> tuple[float, int]:
            idx, sid = item
            share = self._share(session, sid, total_count, total_duration)
            return (round(share - session.weights[sid], 12), idx)

        return min(enumerate(session.active), key=deficit)[1]

    def _share(self, session: _MixSession, sid: str, total_count: int, total_duration: int) -> float:
        contrib = session.contributions[sid]
        if session.quotas[sid].weight_type == "time":
            return contrib.duration_ms / total_duration if total_duration > 0 else 0.0
        return contrib.count / total_count if total_count > 0 else 0.0

    def _batch_size(self, session: _MixSession, sid: str, target: TargetSpec) -> int:
        quota = session.quotas[sid]
        remaining = len(session.pools[sid])
        if remaining < quota.min_group:
            size = remaining
        else:
            size = quota.min_group
            if quota.max_group > quota.min_group and self._below_expected(session, sid):
                size = quota.max_group
            size = min(size, remaining)
        if target.mode == "count":
            size = min(size, target.value - session.count)
        return max(size, 1)

    def _below_expected(self, session: _MixSession, sid: str) -> bool:
        contrib = session.contributions[sid]
        if session.quotas[sid].weight_type == "time":
            total = sum(session.contributions[s].duration_ms for s in session.active)
            mine = contrib.duration_ms
        else:
            total = sum(session.contributions[s].count for s in session.active)
            mine = contrib.count
        if total <= 0:
            return False
        return mine < total * session.weights[sid] * self.BALANCE_BOOST_THRESHOLD

    def _position_fraction(self, session: _MixSession, target: TargetSpec) -> float:
        if target.mode == "duration":
            return clamp_fraction(session.duration_ms / target.value)
        denom = target.value if target.mode == "count" else session.total_available
        if denom <= 0:
            return 0.0
        return clamp_fraction(session.count / denom)

    def _append(self, session: _MixSession, sid: str, track: Track) -> None:
        session.output.append(track)
        session.count += 1
        session.duration_ms += track.duration_ms
        contrib = session.contributions[sid]
        contrib.count += 1
        contrib.duration_ms += track.duration_ms
        # the same id may sit in other pools (shared songs); it is placed only once
        for other_sid in session.active:
            if other_sid != sid:
                session.pools[other_sid].discard(track.track_id)

    # ---------- Exhaustion ----------

    def _handle_exhaustion(self, session: _MixSession, debug: dict[str, Any]) -> list[str]:
        exhausted_now = [sid for sid in session.active if len(session.pools[sid]) == 0]
        for sid in exhausted_now:
            session.active.remove(sid)
            session.exhausted.append(sid)
            session.weights = renormalize(session.raw_weights, session.active)
            debug["decisions"]["exhaustion_events"].append(
                {
                    "source_id": sid,
                    "at_count": session.count,
                    "at_duration_ms": session.duration_ms,
                    "weights_after": dict(session.weights),
                }
            )
            self.logger.info(
                "Source %s exhausted after %d tracks; %d sources remain",
                sid,
                session.contributions[sid].count,
                len(session.active),
            )
        return exhausted_now

    # ---------- Result ----------

    def _build_result(self, session: _MixSession, target: TargetSpec, debug: dict[str, Any]) -> MixResult:
        if target.mode == "count":
            requested = target.value
            shortfall = max(0, target.value - session.count)
        elif target.mode == "duration":
            requested = target.value
            shortfall = max(0, target.value - session.duration_ms)
        else:
            requested = session.total_available
            shortfall = 0

        weight_types = {sid: q.weight_type for sid, q in session.quotas.items()}
        breakdown = build_breakdown(session.output, weight_types, exhausted=set(session.exhausted))
        debug["decisions"]["output_count"] = session.count
        debug["decisions"]["output_duration_ms"] = session.duration_ms
        return MixResult(
            tracks=list(session.output),
            breakdown=breakdown,
            total_duration_ms=session.duration_ms,
            requested=requested,
            shortfall=shortfall,
            debug=debug,
        )

    def _record_timing(self, debug: dict[str, Any], label: str, start: float) -> None:
        elapsed = time.perf_counter() - start
        debug["timing_s"][label] = round(elapsed, 6)
        if self.enable_timing_logs:
            self.logger.info("Mix timing %s: %.4fs", label, elapsed)

    def _emit_mix_debug(self, debug: dict[str, Any]) -> None:
        if self.enable_debug_logs:
            self.logger.info("Mix debug payload: %s", debug.get("decisions", {}))


def mix(
    pools_by_source: Mapping[str, Sequence[Track]],
    quotas: Mapping[str, SourceQuota],
    target: TargetSpec,
    strategy: StrategySpec,
    *,
    rng: random.Random | None = None,
) -> list[Track]:
    return PlaylistMixer(rng).mix(pools_by_source, quotas, target, strategy).tracks
