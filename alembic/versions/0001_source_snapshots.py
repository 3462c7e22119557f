"""source snapshots

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "source_playlists",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("catalog_playlist_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("track_count", sa.Integer(), nullable=False),
        sa.Column("imported_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_source_playlists_catalog_playlist_id", "source_playlists", ["catalog_playlist_id"])
    op.create_index("ix_source_playlists_imported_at", "source_playlists", ["imported_at"])

    op.create_table(
        "source_tracks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "source_playlist_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("source_playlists.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("track_id", sa.Text(), nullable=False),
        sa.Column("uri", sa.Text(), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("artist_name", sa.Text(), nullable=False),
        sa.Column("album_name", sa.Text(), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=False),
        sa.Column("popularity", sa.Integer(), nullable=True),
        sa.Column("release_date", sa.Text(), nullable=True),
        sa.UniqueConstraint("source_playlist_id", "position", name="uq_source_tracks_playlist_pos"),
        sa.CheckConstraint("duration_ms >= 0", name="ck_source_tracks_duration_nonneg"),
        sa.CheckConstraint("position >= 0", name="ck_source_tracks_position_nonneg"),
    )
    op.create_index("ix_source_tracks_playlist_pos", "source_tracks", ["source_playlist_id", "position"])


def downgrade() -> None:
    op.drop_index("ix_source_tracks_playlist_pos", table_name="source_tracks")
    op.drop_table("source_tracks")
    op.drop_index("ix_source_playlists_imported_at", table_name="source_playlists")
    op.drop_index("ix_source_playlists_catalog_playlist_id", table_name="source_playlists")
    op.drop_table("source_playlists")
