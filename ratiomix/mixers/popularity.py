from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable

from ratiomix.mixers.types import QUARTILE_RANK, RANKED_QUARTILES, Quartile, Track

DEFAULT_RECENCY_WINDOW_DAYS = 730
DEFAULT_RECENCY_MAX_BONUS = 20.0

_RELEASE_DATE_FORMATS = ("%Y-%m-%d", "%Y-%m", "%Y")


def parse_release_date(value: str | None) -> date | None:
    if not value:
        return None
    for fmt in _RELEASE_DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    return None


def recency_bonus(
    release_date: date,
    *,
    as_of: date,
    window_days: int = DEFAULT_RECENCY_WINDOW_DAYS,
    max_bonus: float = DEFAULT_RECENCY_MAX_BONUS,
) -> float:
    """
    Linear bonus for recent releases: max_bonus on release day, falling to 0
    at window_days. Future dates count as released today.
    """
    if window_days <= 0:
        return 0.0
    age_days = max(0, (as_of - release_date).days)
    if age_days >= window_days:
        return 0.0
    return max_bonus * (1.0 - age_days / window_days)


def effective_popularity(
    track: Track,
    *,
    recency_boost: bool = False,
    as_of: date | None = None,
    window_days: int = DEFAULT_RECENCY_WINDOW_DAYS,
    max_bonus: float = DEFAULT_RECENCY_MAX_BONUS,
) -> float | None:
    if track.popularity is None:
        return None
    score = float(track.popularity)
    if not recency_boost:
        return score
    released = parse_release_date(track.release_date)
    if released is None:
        return score
    return score + recency_bonus(
        released,
        as_of=as_of or date.today(),
        window_days=window_days,
        max_bonus=max_bonus,
    )


def classify(
    tracks: Iterable[Track],
    *,
    recency_boost: bool = False,
    as_of: date | None = None,
    window_days: int = DEFAULT_RECENCY_WINDOW_DAYS,
    max_bonus: float = DEFAULT_RECENCY_MAX_BONUS,
) -> dict[str, Quartile]:
    """
    Bucket tracks into quartiles relative to this candidate set.

    Scored tracks are sorted by effective popularity (descending, ties by
    track_id) and split at q = n // 4; the integer-division remainder lands
    in deep_cuts. Unscored tracks map to "none".
    """
    quartile_of: dict[str, Quartile] = {}
    scored: list[tuple[float, str]] = []
    for tr in tracks:
        score = effective_popularity(
            tr,
            recency_boost=recency_boost,
            as_of=as_of,
            window_days=window_days,
            max_bonus=max_bonus,
        )
        if score is None:
            quartile_of[tr.track_id] = "none"
        else:
            scored.append((score, tr.track_id))

    scored.sort(key=lambda item: (-item[0], item[1]))
    q = len(scored) // 4
    for idx, (_score, track_id) in enumerate(scored):
        if idx < q:
            quartile_of[track_id] = "top_hits"
        elif idx < 2 * q:
            quartile_of[track_id] = "popular"
        elif idx < 3 * q:
            quartile_of[track_id] = "moderate"
        else:
            quartile_of[track_id] = "deep_cuts"
    return quartile_of


def ordering_rank(quartile: Quartile) -> int:
    """Rank used for ordering; unscored tracks sit with moderate."""
    return QUARTILE_RANK.get(quartile, QUARTILE_RANK["moderate"])


def popularity_metrics(tracks: list[Track]) -> dict[str, Any]:
    scores = [tr.popularity for tr in tracks if tr.popularity is not None]
    distribution = {q: 0 for q in RANKED_QUARTILES}
    for s in scores:
        if s >= 80:
            distribution["top_hits"] += 1
        elif s >= 60:
            distribution["popular"] += 1
        elif s >= 40:
            distribution["moderate"] += 1
        else:
            distribution["deep_cuts"] += 1

    return {
        "total_tracks": len(tracks),
        "scored_tracks": len(scores),
        "average_popularity": round(sum(scores) / len(scores), 1) if scores else 0.0,
        "popularity_range": {"min": min(scores), "max": max(scores)} if scores else {"min": 0, "max": 0},
        "distribution": distribution,
    }
