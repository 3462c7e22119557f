from __future__ import annotations

import random
from collections import deque
from typing import Iterable, Mapping, Sequence

from ratiomix.mixers.types import Quartile, Track

_ALL_QUARTILES: tuple[Quartile, ...] = ("top_hits", "popular", "moderate", "deep_cuts", "none")


def dedupe_tracks(tracks: Iterable[Track]) -> list[Track]:
    seen: set[str] = set()
    unique: list[Track] = []
    for tr in tracks:
        if tr.track_id in seen:
            continue
        seen.add(tr.track_id)
        unique.append(tr)
    return unique


def shuffle_within_quartiles(
    tracks: Sequence[Track],
    quartile_of: Mapping[str, Quartile],
    rng: random.Random,
) -> list[Track]:
    """Permute tracks among the slots held by their own quartile."""
    out = list(tracks)
    slots: dict[str, list[int]] = {}
    for idx, tr in enumerate(out):
        slots.setdefault(quartile_of.get(tr.track_id, "none"), []).append(idx)
    for q in _ALL_QUARTILES:
        idxs = slots.get(q)
        if not idxs or len(idxs) < 2:
            continue
        members = [out[i] for i in idxs]
        rng.shuffle(members)
        for i, tr in zip(idxs, members):
            out[i] = tr
    return out


class TrackPool:
    """
    Remaining tracks of one source.

    Keeps the pool order plus one queue per quartile. A taken track is
    dropped from the live set and skipped lazily by the other queue, so
    every removal is O(1) amortised. A queue may hold stale copies of a
    track that was put back; only live ids count.
    """

    def __init__(
        self,
        source_id: str,
        tracks: Iterable[Track],
        quartile_of: Mapping[str, Quartile],
        *,
        rng: random.Random | None = None,
        shuffle_within_groups: bool = False,
    ) -> None:
        self.source_id = source_id
        self.quartile_of = quartile_of
        unique = dedupe_tracks(tracks)
        if shuffle_within_groups:
            unique = shuffle_within_quartiles(unique, quartile_of, rng or random.Random())

        self._order: deque[Track] = deque(unique)
        self._buckets: dict[Quartile, deque[Track]] = {q: deque() for q in _ALL_QUARTILES}
        for tr in unique:
            self._buckets[self.quartile(tr)].append(tr)
        self._live: set[str] = {tr.track_id for tr in unique}

    def __len__(self) -> int:
        return len(self._live)

    def quartile(self, track: Track) -> Quartile:
        return self.quartile_of.get(track.track_id, "none")

    def remaining_in(self, quartile: Quartile) -> int:
        return len({tr.track_id for tr in self._buckets[quartile] if tr.track_id in self._live})

    def discard(self, track_id: str) -> bool:
        """Drop a track placed from another pool. Returns True if it was live here."""
        if track_id in self._live:
            self._live.discard(track_id)
            return True
        return False

    def take(self, preference: Sequence[Quartile] | None = None) -> Track | None:
        """
        Remove and return the next track.

        preference=None takes pool order; otherwise the first live track of
        the first non-empty quartile in preference.
        """
        track: Track | None = None
        if preference is None:
            track = self._pop_live(self._order)
        else:
            for q in preference:
                track = self._pop_live(self._buckets[q])
                if track is not None:
                    break
            if track is None:
                # quartiles missing from preference
                track = self._pop_live(self._order)
        if track is not None:
            self._live.discard(track.track_id)
        return track

    def put_back(self, tracks: Sequence[Track]) -> None:
        """Return drawn but unplaced tracks to the front of the pool, in the given order."""
        for tr in reversed(tracks):
            if tr.track_id in self._live:
                continue
            self._live.add(tr.track_id)
            self._order.appendleft(tr)
            self._buckets[self.quartile(tr)].appendleft(tr)

    def _pop_live(self, queue: deque[Track]) -> Track | None:
        while queue:
            tr = queue.popleft()
            if tr.track_id in self._live:
                return tr
        return None
