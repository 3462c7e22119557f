"""
Named mix templates.

A preset bundles a popularity strategy, per-source quotas and a time limit.
Quotas are picked per source by matching keywords against the lower-cased
source name; a source that matches no keyword gets the preset's default quota.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ratiomix.mixers.quota_planner import MixConfigError
from ratiomix.mixers.types import SourceQuota, StrategySpec, TargetSpec, WeightType


@dataclass(frozen=True)
class PresetQuota:
    min_group: int
    max_group: int
    weight: float
    weight_type: WeightType = "frequency"

    def for_source(self, source_id: str) -> SourceQuota:
        return SourceQuota(
            source_id=source_id,
            min_group=self.min_group,
            max_group=self.max_group,
            weight=self.weight,
            weight_type=self.weight_type,
        )


@dataclass(frozen=True)
class Preset:
    preset_id: str
    name: str
    description: str
    strategy: StrategySpec
    target_minutes: int
    default_quota: PresetQuota
    # checked in order; first keyword found in the source name wins
    name_rules: tuple[tuple[str, PresetQuota], ...] = ()

    @property
    def target(self) -> TargetSpec:
        return TargetSpec(mode="duration", value=self.target_minutes * 60_000)

    def quota_for(self, source_id: str, source_name: str = "") -> SourceQuota:
        name = (source_name or source_id).lower()
        for keyword, quota in self.name_rules:
            if keyword in name:
                return quota.for_source(source_id)
        return self.default_quota.for_source(source_id)


@dataclass(frozen=True)
class PresetPlan:
    quotas: dict[str, SourceQuota]
    strategy: StrategySpec
    target: TargetSpec


_PRESETS: tuple[Preset, ...] = (
    Preset(
        preset_id="karimctiva",
        name="Karimctiva",
        description="Bachata/salsa mixing with a dance-floor peak in the middle",
        strategy=StrategySpec(
            popularity_strategy="mid-peak",
            recency_boost=True,
            shuffle_within_groups=True,
        ),
        target_minutes=300,
        default_quota=PresetQuota(min_group=1, max_group=2, weight=50, weight_type="time"),
        name_rules=(
            ("bachata", PresetQuota(min_group=2, max_group=2, weight=55, weight_type="time")),
            ("salsa", PresetQuota(min_group=1, max_group=2, weight=45, weight_type="time")),
        ),
    ),
    Preset(
        preset_id="workout-mix",
        name="Workout Mix",
        description="High energy, hits first",
        strategy=StrategySpec(
            popularity_strategy="front-loaded",
            recency_boost=True,
            shuffle_within_groups=True,
        ),
        target_minutes=60,
        default_quota=PresetQuota(min_group=3, max_group=5, weight=3),
    ),
    Preset(
        preset_id="road-trip",
        name="Road Trip",
        description="Builds to a finale of sing-along hits",
        strategy=StrategySpec(
            popularity_strategy="crescendo",
            recency_boost=True,
            shuffle_within_groups=True,
        ),
        target_minutes=180,
        default_quota=PresetQuota(min_group=2, max_group=3, weight=2),
    ),
)

PRESETS: dict[str, Preset] = {p.preset_id: p for p in _PRESETS}


def get_preset(preset_id: str) -> Preset:
    try:
        return PRESETS[preset_id]
    except KeyError:
        raise MixConfigError(f"unknown preset {preset_id!r}") from None


def apply_preset(preset_id: str, sources: Iterable[tuple[str, str]]) -> PresetPlan:
    """sources: (source_id, display name) pairs. Names drive keyword matching."""
    preset = get_preset(preset_id)
    return PresetPlan(
        quotas={sid: preset.quota_for(sid, name) for sid, name in sources},
        strategy=preset.strategy,
        target=preset.target,
    )
