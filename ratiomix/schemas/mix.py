from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional

from ratiomix.mixers.types import PopularityStrategy, TargetMode, WeightType


class TrackIn(BaseModel):
    track_id: str = Field(min_length=1)
    duration_ms: int = Field(ge=0)
    popularity: Optional[int] = None
    release_date: Optional[str] = None   # YYYY | YYYY-MM | YYYY-MM-DD
    name: str = ""
    artist_name: str = ""
    album_name: str = ""
    uri: Optional[str] = None


class QuotaIn(BaseModel):
    # range checks live in the mixer so bad values come back as 400 with a readable message
    min_group: int = 1
    max_group: int = 1
    weight: float = 1.0
    weight_type: WeightType = "frequency"


class MixSourceIn(BaseModel):
    """One input pool: either inline tracks or a previously imported snapshot."""
    source_id: str = Field(min_length=1)
    name: str = ""     # display name; presets match their keywords against it
    tracks: Optional[List[TrackIn]] = None
    stored_source_id: Optional[str] = None
    quota: QuotaIn = Field(default_factory=QuotaIn)


class TargetIn(BaseModel):
    mode: TargetMode = "count"
    value: int = 0          # songs, or milliseconds for duration


class StrategyIn(BaseModel):
    popularity_strategy: PopularityStrategy = "mixed"
    recency_boost: bool = False
    shuffle_within_groups: bool = False
    continue_when_exhausted: bool = True


class MixCreateIn(BaseModel):
    sources: List[MixSourceIn]
    # without a preset, target is required; with one, explicitly sent fields win over the preset
    target: Optional[TargetIn] = None
    strategy: StrategyIn = Field(default_factory=StrategyIn)
    preset: Optional[str] = None
    seed: Optional[int] = None
    # appended after the mixed tracks, in the given order
    ad_hoc_tracks: List[TrackIn] = Field(default_factory=list)


class MixTrackOut(BaseModel):
    position: int
    track_id: str
    source_id: str
    duration_ms: int
    popularity: Optional[int] = None
    name: str = ""
    artist_name: str = ""
    album_name: str = ""
    uri: Optional[str] = None


class SourceStatsOut(BaseModel):
    count: int
    duration_ms: int
    share: float
    exhausted: bool


class ExceedsLimitOut(BaseModel):
    unit: Literal["songs", "ms"]
    requested: int
    available: int


class RatioImbalanceOut(BaseModel):
    limiting_source_id: str
    unit: Literal["songs", "ms"]
    imbalanced_at: int
    imbalanced_at_formatted: Optional[str] = None
    will_stop_early: bool


class MixWarningsOut(BaseModel):
    exceeds_limit: Optional[ExceedsLimitOut] = None
    ratio_imbalance: Optional[RatioImbalanceOut] = None


class PopularityRangeOut(BaseModel):
    min: int
    max: int


class PopularityMetricsOut(BaseModel):
    total_tracks: int
    scored_tracks: int
    average_popularity: float
    popularity_range: PopularityRangeOut
    distribution: Dict[str, int]   # top_hits 80+, popular 60-79, moderate 40-59, deep_cuts <40


class MixOut(BaseModel):
    tracklist: List[MixTrackOut]
    breakdown: Dict[str, SourceStatsOut]
    total_duration_ms: int
    total_duration_formatted: str
    requested: int
    shortfall: int
    nothing_to_mix: bool
    warnings: MixWarningsOut
    popularity: PopularityMetricsOut
    debug: Optional[dict] = None


class MixPublishIn(BaseModel):
    user_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = ""
    public: bool = False
    uris: List[str]


class MixPublishOut(BaseModel):
    playlist_id: str
    uploaded: int


class PresetOut(BaseModel):
    preset_id: str
    name: str
    description: str
    strategy: StrategyIn
    target: TargetIn
    default_quota: QuotaIn
    name_rules: Dict[str, QuotaIn]   # keyword -> quota, first match wins


class PresetListOut(BaseModel):
    presets: List[PresetOut]
