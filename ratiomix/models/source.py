import uuid
from datetime import datetime
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from ratiomix.models.base import Base

class SourcePlaylist(Base):
    """Snapshot of a catalog playlist, kept so it can be remixed without refetching."""
    __tablename__ = "source_playlists"
    __table_args__ = (
        Index("ix_source_playlists_catalog_playlist_id", "catalog_playlist_id"),
        Index("ix_source_playlists_imported_at", "imported_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    catalog_playlist_id: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    track_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    imported_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    tracks: Mapped[list["SourceTrack"]] = relationship(
        back_populates="playlist",
        cascade="all, delete-orphan",
        order_by="SourceTrack.position",
    )


class SourceTrack(Base):
    __tablename__ = "source_tracks"
    __table_args__ = (
        UniqueConstraint("source_playlist_id", "position", name="uq_source_tracks_playlist_pos"),
        CheckConstraint("duration_ms >= 0", name="ck_source_tracks_duration_nonneg"),
        CheckConstraint("position >= 0", name="ck_source_tracks_position_nonneg"),
        Index("ix_source_tracks_playlist_pos", "source_playlist_id", "position"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    source_playlist_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("source_playlists.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    track_id: Mapped[str] = mapped_column(Text, nullable=False)       # catalog id
    uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    artist_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    album_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    popularity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    release_date: Mapped[str | None] = mapped_column(Text, nullable=True)

    playlist: Mapped["SourcePlaylist"] = relationship(back_populates="tracks")
