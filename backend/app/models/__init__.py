from app.models.album import Album, AlbumMemory
from app.models.media import Media
from app.models.memory import Memory
from app.models.tag import MemoryTag, Tag
from app.models.user import Profile

__all__ = [
    "Profile",
    "Memory",
    "Media",
    "Tag",
    "MemoryTag",
    "Album",
    "AlbumMemory",
]
