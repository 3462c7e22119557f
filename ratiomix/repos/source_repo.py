from __future__ import annotations

import uuid
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ratiomix.models import SourcePlaylist, SourceTrack


class SourceRepo:
    def __init__(self, db: AsyncSession):
        self.db = db

    # --- source_playlists ---
    async def create_playlist(self, *, catalog_playlist_id: str, name: str) -> SourcePlaylist:
        playlist = SourcePlaylist(catalog_playlist_id=catalog_playlist_id, name=name, track_count=0)
        self.db.add(playlist)
        await self.db.flush()  # assign playlist.id
        return playlist

    async def get_playlist(self, source_id: uuid.UUID) -> SourcePlaylist | None:
        res = await self.db.execute(select(SourcePlaylist).where(SourcePlaylist.id == source_id))
        return res.scalar_one_or_none()

    async def list_playlists(self) -> list[SourcePlaylist]:
        res = await self.db.execute(select(SourcePlaylist).order_by(SourcePlaylist.imported_at.desc()))
        return list(res.scalars().all())

    # --- source_tracks ---
    async def add_tracks(self, *, source_playlist_id: uuid.UUID, tracks: Iterable[dict]) -> list[SourceTrack]:
        """
        tracks: iterable of dicts like:
          {
            "track_id": "4uLU6hMCjMI75M1A2tKUQC",
            "uri": "spotify:track:4uLU6hMCjMI75M1A2tKUQC",
            "name": "...", "artist_name": "...", "album_name": "...",
            "duration_ms": 213573,
            "popularity": 71,
            "release_date": "2019-06-14"
          }
        Positions follow iteration order.
        """
        rows: list[SourceTrack] = []
        for position, tr in enumerate(tracks):
            row = SourceTrack(
                source_playlist_id=source_playlist_id,
                position=position,
                track_id=str(tr["track_id"]),
                uri=tr.get("uri"),
                name=tr.get("name") or "",
                artist_name=tr.get("artist_name") or "",
                album_name=tr.get("album_name") or "",
                duration_ms=int(tr["duration_ms"]),
                popularity=tr.get("popularity"),
                release_date=tr.get("release_date"),
            )
            self.db.add(row)
            rows.append(row)

        await self.db.flush()
        return rows

    async def set_track_count(self, playlist: SourcePlaylist, track_count: int) -> None:
        playlist.track_count = track_count
        await self.db.flush()

    async def list_tracks(self, source_playlist_id: uuid.UUID) -> list[SourceTrack]:
        res = await self.db.execute(
            select(SourceTrack)
            .where(SourceTrack.source_playlist_id == source_playlist_id)
            .order_by(SourceTrack.position.asc())
        )
        return list(res.scalars().all())
