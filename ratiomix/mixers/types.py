from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

WeightType = Literal["frequency", "time"]
TargetMode = Literal["count", "duration", "all"]
PopularityStrategy = Literal["mixed", "front-loaded", "mid-peak", "crescendo"]
Quartile = Literal["top_hits", "popular", "moderate", "deep_cuts", "none"]

WEIGHT_TYPES: tuple[str, ...] = ("frequency", "time")
TARGET_MODES: tuple[str, ...] = ("count", "duration", "all")

# Ranked quartiles, most popular first. "none" is not ranked.
RANKED_QUARTILES: tuple[Quartile, ...] = ("top_hits", "popular", "moderate", "deep_cuts")
QUARTILE_RANK: dict[str, int] = {q: i for i, q in enumerate(RANKED_QUARTILES)}

# Source id for tracks added by hand rather than drawn from a playlist.
AD_HOC_SOURCE = "__ad_hoc__"


@dataclass(frozen=True)
class Track:
    track_id: str
    duration_ms: int
    popularity: int | None = None
    source_id: str = AD_HOC_SOURCE
    release_date: str | None = None  # "YYYY", "YYYY-MM" or "YYYY-MM-DD"

    # display / reference metadata, passed through untouched
    name: str = ""
    artist_name: str = ""
    album_name: str = ""
    uri: str | None = None


@dataclass(frozen=True)
class SourceQuota:
    source_id: str
    min_group: int = 1
    max_group: int = 1
    weight: float = 1.0
    weight_type: WeightType = "frequency"


@dataclass(frozen=True)
class TargetSpec:
    """
    mode="count":    value is a song count
    mode="duration": value is total milliseconds
    mode="all":      value is ignored; runs until the sources are used up
    """
    mode: TargetMode
    value: int = 0


@dataclass(frozen=True)
class StrategySpec:
    popularity_strategy: PopularityStrategy = "mixed"
    recency_boost: bool = False
    shuffle_within_groups: bool = False
    # False: stop at the first exhausted source so the requested ratios hold exactly.
    continue_when_exhausted: bool = True


@dataclass(frozen=True)
class SourceStats:
    count: int
    duration_ms: int
    share: float  # percent of the output, per the source's weight type
    exhausted: bool


@dataclass(frozen=True)
class MixResult:
    tracks: list[Track]
    breakdown: dict[str, SourceStats]
    total_duration_ms: int
    requested: int
    shortfall: int
    debug: dict[str, Any] | None = None


@dataclass
class SourceContribution:
    count: int = 0
    duration_ms: int = 0
