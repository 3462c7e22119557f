from ratiomix.models.base import Base
from ratiomix.models.source import SourcePlaylist, SourceTrack

__all__ = [
    "Base",
    "SourcePlaylist",
    "SourceTrack",
]
