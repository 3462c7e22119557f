"""
Popularity-shape strategies.

Each strategy maps the mix position fraction f (output so far / target,
clamped to [0, 1]) to:

- a quartile preference used when drawing a batch from a pool, and
- an in-batch ordering by quartile rank.

Mappings (rank 0 = top_hits ... 3 = deep_cuts; unscored tracks rank as moderate):

    front-loaded  home h = min(3, floor(4f)); prefer h, h-1..0, h+1..3; batch ascending
    crescendo     home h = 3 - min(3, floor(4f)); prefer h, h+1..3, h-1..0; batch descending
    mid-peak      d = |2f - 1|, home h = min(3, floor(4d))
                    f < 0.5: prefer h, h+1..3, h-1..0; batch descending (build up)
                    f >= 0.5: prefer h, h-1..0, h+1..3; batch ascending (come down)
    mixed         pool order, batch untouched

Falling back toward the side the curve has already passed uses up
leftovers of that band before moving on, which keeps the overall trend
monotonic when a band runs short.
"""

from __future__ import annotations

from typing import Mapping, Protocol, Sequence

from ratiomix.mixers.popularity import ordering_rank
from ratiomix.mixers.quota_planner import MixConfigError
from ratiomix.mixers.types import RANKED_QUARTILES, Quartile, Track


def clamp_fraction(f: float) -> float:
    return min(1.0, max(0.0, f))


def _band(f: float) -> int:
    return min(3, int(4 * clamp_fraction(f)))


def _preference(home: int, *, toward_hits_first: bool) -> tuple[Quartile, ...]:
    hits_side = list(range(home - 1, -1, -1))
    deep_side = list(range(home + 1, 4))
    ranks = [home] + (hits_side + deep_side if toward_hits_first else deep_side + hits_side)
    out: list[Quartile] = []
    for r in ranks:
        q = RANKED_QUARTILES[r]
        out.append(q)
        if q == "moderate":
            out.append("none")
    return tuple(out)


def _sorted_by_rank(batch: Sequence[Track], quartile_of: Mapping[str, Quartile], *, descending: bool) -> list[Track]:
    return sorted(
        batch,
        key=lambda tr: ordering_rank(quartile_of.get(tr.track_id, "none")),
        reverse=descending,
    )


class MixingStrategy(Protocol):
    name: str

    def preference(self, fraction: float) -> tuple[Quartile, ...] | None:
        ...

    def order_batch(self, batch: Sequence[Track], quartile_of: Mapping[str, Quartile], fraction: float) -> list[Track]:
        ...


class MixedStrategy:
    name = "mixed"

    def preference(self, fraction: float) -> tuple[Quartile, ...] | None:
        return None

    def order_batch(self, batch: Sequence[Track], quartile_of: Mapping[str, Quartile], fraction: float) -> list[Track]:
        return list(batch)


class FrontLoadedStrategy:
    name = "front-loaded"

    def preference(self, fraction: float) -> tuple[Quartile, ...] | None:
        return _preference(_band(fraction), toward_hits_first=True)

    def order_batch(self, batch: Sequence[Track], quartile_of: Mapping[str, Quartile], fraction: float) -> list[Track]:
        return _sorted_by_rank(batch, quartile_of, descending=False)


class CrescendoStrategy:
    name = "crescendo"

    def preference(self, fraction: float) -> tuple[Quartile, ...] | None:
        return _preference(3 - _band(fraction), toward_hits_first=False)

    def order_batch(self, batch: Sequence[Track], quartile_of: Mapping[str, Quartile], fraction: float) -> list[Track]:
        return _sorted_by_rank(batch, quartile_of, descending=True)


class MidPeakStrategy:
    name = "mid-peak"

    def preference(self, fraction: float) -> tuple[Quartile, ...] | None:
        f = clamp_fraction(fraction)
        home = _band(abs(2 * f - 1))
        return _preference(home, toward_hits_first=f >= 0.5)

    def order_batch(self, batch: Sequence[Track], quartile_of: Mapping[str, Quartile], fraction: float) -> list[Track]:
        return _sorted_by_rank(batch, quartile_of, descending=clamp_fraction(fraction) < 0.5)


_STRATEGIES: dict[str, MixingStrategy] = {
    s.name: s for s in (MixedStrategy(), FrontLoadedStrategy(), MidPeakStrategy(), CrescendoStrategy())
}


def get_strategy(name: str) -> MixingStrategy:
    try:
        return _STRATEGIES[name]
    except KeyError:
        raise MixConfigError(f"unknown popularity strategy {name!r}") from None
