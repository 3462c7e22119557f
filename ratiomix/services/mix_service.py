from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ratiomix.core.config import settings
from ratiomix.mixers.mix_stats import MixWarnings, estimate_warnings, format_duration
from ratiomix.mixers.playlist_mixer import PlaylistMixer
from ratiomix.mixers.popularity import popularity_metrics
from ratiomix.mixers.presets import PRESETS, Preset, PresetPlan, PresetQuota, apply_preset
from ratiomix.mixers.types import (
    AD_HOC_SOURCE,
    MixResult,
    SourceQuota,
    StrategySpec,
    TargetSpec,
    Track,
)
from ratiomix.schemas.mix import (
    ExceedsLimitOut,
    MixCreateIn,
    MixOut,
    MixPublishIn,
    MixPublishOut,
    MixTrackOut,
    MixWarningsOut,
    PopularityMetricsOut,
    PresetListOut,
    PresetOut,
    QuotaIn,
    RatioImbalanceOut,
    StrategyIn,
    TargetIn,
    SourceStatsOut,
    TrackIn,
)
from ratiomix.services.catalog_client import CatalogClient
from ratiomix.services.source_service import SourceService, parse_source_id


def track_from_input(tr: TrackIn, *, source_id: str) -> Track:
    return Track(
        track_id=tr.track_id,
        duration_ms=tr.duration_ms,
        popularity=tr.popularity,
        source_id=source_id,
        release_date=tr.release_date,
        name=tr.name,
        artist_name=tr.artist_name,
        album_name=tr.album_name,
        uri=tr.uri,
    )


def _warnings_out(warnings: MixWarnings) -> MixWarningsOut:
    exceeds = None
    if warnings.exceeds_limit is not None:
        w = warnings.exceeds_limit
        exceeds = ExceedsLimitOut(unit=w.unit, requested=w.requested, available=w.available)
    imbalance = None
    if warnings.ratio_imbalance is not None:
        w = warnings.ratio_imbalance
        imbalance = RatioImbalanceOut(
            limiting_source_id=w.limiting_source_id,
            unit=w.unit,
            imbalanced_at=w.imbalanced_at,
            imbalanced_at_formatted=format_duration(w.imbalanced_at) if w.unit == "ms" else None,
            will_stop_early=w.will_stop_early,
        )
    return MixWarningsOut(exceeds_limit=exceeds, ratio_imbalance=imbalance)


def _quota_in(quota: PresetQuota) -> QuotaIn:
    return QuotaIn(
        min_group=quota.min_group,
        max_group=quota.max_group,
        weight=quota.weight,
        weight_type=quota.weight_type,
    )


def _preset_out(preset: Preset) -> PresetOut:
    s = preset.strategy
    return PresetOut(
        preset_id=preset.preset_id,
        name=preset.name,
        description=preset.description,
        strategy=StrategyIn(
            popularity_strategy=s.popularity_strategy,
            recency_boost=s.recency_boost,
            shuffle_within_groups=s.shuffle_within_groups,
            continue_when_exhausted=s.continue_when_exhausted,
        ),
        target=TargetIn(mode=preset.target.mode, value=preset.target.value),
        default_quota=_quota_in(preset.default_quota),
        name_rules={keyword: _quota_in(q) for keyword, q in preset.name_rules},
    )


class MixService:
    def __init__(
        self,
        db: Optional[AsyncSession],
        *,
        catalog: CatalogClient | None = None,
        enable_debug_logs: bool | None = None,
    ):
        self.db = db
        self.catalog = catalog
        self.sources = SourceService(db, catalog=catalog) if db is not None else None
        self.enable_debug_logs = settings.MIX_DEBUG_LOGS if enable_debug_logs is None else enable_debug_logs
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def list_presets(self) -> PresetListOut:
        return PresetListOut(presets=[_preset_out(p) for p in PRESETS.values()])

    async def create_mix(self, payload: MixCreateIn) -> MixOut:
        preset_plan = None
        if payload.preset is not None:
            preset_plan = apply_preset(payload.preset, [(s.source_id, s.name) for s in payload.sources])
        pools, quotas = await self._collect_pools(payload, preset_plan)

        if payload.target is not None:
            target = TargetSpec(mode=payload.target.mode, value=payload.target.value)
        elif preset_plan is not None:
            target = preset_plan.target
        else:
            raise ValueError("target is required unless a preset is given")

        if preset_plan is not None and "strategy" not in payload.model_fields_set:
            strategy = preset_plan.strategy
        else:
            strategy = StrategySpec(
                popularity_strategy=payload.strategy.popularity_strategy,
                recency_boost=payload.strategy.recency_boost,
                shuffle_within_groups=payload.strategy.shuffle_within_groups,
                continue_when_exhausted=payload.strategy.continue_when_exhausted,
            )

        mixer = PlaylistMixer(
            seed=payload.seed,
            recency_window_days=settings.RECENCY_WINDOW_DAYS,
            recency_max_bonus=settings.RECENCY_MAX_BONUS,
            enable_debug_logs=self.enable_debug_logs,
        )
        # the mixer is CPU-only; keep it off the event loop
        result: MixResult = await asyncio.to_thread(mixer.mix, pools, quotas, target, strategy)

        # runs after mix() so the quotas have already been validated
        warnings = estimate_warnings(
            pools,
            quotas,
            target,
            continue_when_exhausted=strategy.continue_when_exhausted,
        )

        tracks = list(result.tracks)
        placed = {tr.track_id for tr in tracks}
        for tr_in in payload.ad_hoc_tracks:
            if tr_in.track_id in placed:
                continue
            placed.add(tr_in.track_id)
            tracks.append(track_from_input(tr_in, source_id=AD_HOC_SOURCE))

        total_duration_ms = sum(tr.duration_ms for tr in tracks)
        nothing_to_mix = not tracks
        if nothing_to_mix:
            self.logger.info("Nothing to mix: all %d sources are empty", len(pools))

        return MixOut(
            tracklist=[
                MixTrackOut(
                    position=i,
                    track_id=tr.track_id,
                    source_id=tr.source_id,
                    duration_ms=tr.duration_ms,
                    popularity=tr.popularity,
                    name=tr.name,
                    artist_name=tr.artist_name,
                    album_name=tr.album_name,
                    uri=tr.uri,
                )
                for i, tr in enumerate(tracks)
            ],
            breakdown={
                sid: SourceStatsOut(
                    count=s.count,
                    duration_ms=s.duration_ms,
                    share=s.share,
                    exhausted=s.exhausted,
                )
                for sid, s in result.breakdown.items()
            },
            total_duration_ms=total_duration_ms,
            total_duration_formatted=format_duration(total_duration_ms),
            requested=result.requested,
            shortfall=result.shortfall,
            nothing_to_mix=nothing_to_mix,
            warnings=_warnings_out(warnings),
            popularity=PopularityMetricsOut.model_validate(popularity_metrics(tracks)),
            debug=result.debug if self.enable_debug_logs else None,
        )

    async def publish_mix(self, payload: MixPublishIn) -> MixPublishOut:
        if self.catalog is None:
            raise RuntimeError("catalog client not configured")
        if not payload.uris:
            raise ValueError("uris must not be empty")

        playlist_id = await self.catalog.create_playlist(
            user_id=payload.user_id,
            name=payload.name,
            description=payload.description,
            public=payload.public,
        )
        uploaded = await self.catalog.add_tracks(playlist_id, payload.uris)
        return MixPublishOut(playlist_id=playlist_id, uploaded=uploaded)

    async def _collect_pools(
        self,
        payload: MixCreateIn,
        preset_plan: PresetPlan | None = None,
    ) -> tuple[dict[str, list[Track]], dict[str, SourceQuota]]:
        pools: dict[str, list[Track]] = {}
        quotas: dict[str, SourceQuota] = {}
        for i, src in enumerate(payload.sources):
            if src.source_id in pools:
                raise ValueError(f"sources[{i}]: duplicate source_id {src.source_id!r}")
            if src.source_id == AD_HOC_SOURCE:
                raise ValueError(f"sources[{i}]: source_id {AD_HOC_SOURCE!r} is reserved")
            if (src.tracks is None) == (src.stored_source_id is None):
                raise ValueError(f"sources[{i}]: provide exactly one of tracks or stored_source_id")

            if src.tracks is not None:
                pools[src.source_id] = [track_from_input(t, source_id=src.source_id) for t in src.tracks]
            else:
                if self.sources is None:
                    raise RuntimeError("stored sources need a database session")
                pools[src.source_id] = await self.sources.load_tracks(
                    parse_source_id(src.stored_source_id),
                    pool_id=src.source_id,
                )

            if preset_plan is not None and "quota" not in src.model_fields_set:
                quotas[src.source_id] = preset_plan.quotas[src.source_id]
                continue
            quotas[src.source_id] = SourceQuota(
                source_id=src.source_id,
                min_group=src.quota.min_group,
                max_group=src.quota.max_group,
                weight=src.quota.weight,
                weight_type=src.quota.weight_type,
            )
        return pools, quotas
