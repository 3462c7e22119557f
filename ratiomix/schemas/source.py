from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional


class SourceImportIn(BaseModel):
    catalog_playlist_id: str = Field(min_length=1)


class SourceTrackOut(BaseModel):
    track_id: str
    uri: Optional[str] = None
    name: str = ""
    artist_name: str = ""
    album_name: str = ""
    duration_ms: int
    popularity: Optional[int] = None
    release_date: Optional[str] = None


class SourceOut(BaseModel):
    source_id: str
    catalog_playlist_id: str
    name: str
    track_count: int
    imported_at: datetime


class SourceDetailOut(SourceOut):
    tracks: List[SourceTrackOut]


class SourceListOut(BaseModel):
    sources: List[SourceOut]
