from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from ratiomix.mixers.types import Track
from ratiomix.models import SourcePlaylist, SourceTrack
from ratiomix.repos.source_repo import SourceRepo
from ratiomix.schemas.source import SourceDetailOut, SourceListOut, SourceOut, SourceTrackOut
from ratiomix.services.catalog_client import CatalogClient


def parse_source_id(raw: str | uuid.UUID) -> uuid.UUID:
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise ValueError(f"invalid source id: {raw!r}")


def _source_out(playlist: SourcePlaylist) -> SourceOut:
    return SourceOut(
        source_id=str(playlist.id),
        catalog_playlist_id=playlist.catalog_playlist_id,
        name=playlist.name,
        track_count=playlist.track_count,
        imported_at=playlist.imported_at,
    )


def _track_out(row: SourceTrack) -> SourceTrackOut:
    return SourceTrackOut(
        track_id=row.track_id,
        uri=row.uri,
        name=row.name,
        artist_name=row.artist_name,
        album_name=row.album_name,
        duration_ms=row.duration_ms,
        popularity=row.popularity,
        release_date=row.release_date,
    )


class SourceService:
    """Imports catalog playlists as snapshots and turns them back into mixer pools."""

    def __init__(self, db: AsyncSession, *, catalog: CatalogClient | None = None):
        self.db = db
        self.sources = SourceRepo(db)
        self.catalog = catalog
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def import_playlist(self, *, catalog_playlist_id: str) -> SourceOut:
        if self.catalog is None:
            raise RuntimeError("catalog client not configured")

        # fetch outside the transaction; the catalog can be slow
        meta = await self.catalog.get_playlist(catalog_playlist_id)
        tracks = await self.catalog.fetch_playlist_tracks(catalog_playlist_id)

        async with self.db.begin():
            playlist = await self.sources.create_playlist(
                catalog_playlist_id=catalog_playlist_id,
                name=meta.get("name") or catalog_playlist_id,
            )
            await self.sources.add_tracks(source_playlist_id=playlist.id, tracks=tracks)
            await self.sources.set_track_count(playlist, len(tracks))

        self.logger.info(
            "Imported playlist %s as source %s (%d tracks)",
            catalog_playlist_id,
            playlist.id,
            len(tracks),
        )
        return _source_out(playlist)

    async def list_sources(self) -> SourceListOut:
        playlists = await self.sources.list_playlists()
        return SourceListOut(sources=[_source_out(p) for p in playlists])

    async def get_source(self, source_id: uuid.UUID) -> SourceDetailOut:
        playlist = await self.sources.get_playlist(source_id)
        if playlist is None:
            raise KeyError("source not found")
        rows = await self.sources.list_tracks(playlist.id)
        return SourceDetailOut(
            **_source_out(playlist).model_dump(),
            tracks=[_track_out(r) for r in rows],
        )

    async def load_tracks(self, source_id: uuid.UUID, *, pool_id: str) -> list[Track]:
        """Snapshot tracks as mixer input, in playlist order, tagged with pool_id."""
        playlist = await self.sources.get_playlist(source_id)
        if playlist is None:
            raise KeyError("source not found")
        rows = await self.sources.list_tracks(playlist.id)
        return [
            Track(
                track_id=r.track_id,
                duration_ms=r.duration_ms,
                popularity=r.popularity,
                source_id=pool_id,
                release_date=r.release_date,
                name=r.name,
                artist_name=r.artist_name,
                album_name=r.album_name,
                uri=r.uri,
            )
            for r in rows
        ]
