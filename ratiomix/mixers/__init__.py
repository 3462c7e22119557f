from ratiomix.mixers.mix_stats import MixWarnings, build_breakdown, estimate_warnings, format_duration
from ratiomix.mixers.playlist_mixer import PlaylistMixer, mix, target_reached
from ratiomix.mixers.presets import PRESETS, apply_preset, get_preset
from ratiomix.mixers.quota_planner import MixConfigError
from ratiomix.mixers.types import (
    AD_HOC_SOURCE,
    MixResult,
    SourceQuota,
    SourceStats,
    StrategySpec,
    TargetSpec,
    Track,
)

__all__ = [
    "AD_HOC_SOURCE",
    "MixConfigError",
    "MixResult",
    "MixWarnings",
    "PRESETS",
    "PlaylistMixer",
    "SourceQuota",
    "SourceStats",
    "StrategySpec",
    "TargetSpec",
    "Track",
    "apply_preset",
    "build_breakdown",
    "estimate_warnings",
    "format_duration",
    "get_preset",
    "mix",
    "target_reached",
]
