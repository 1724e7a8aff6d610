import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base
from app.models.memory import _utcnow


class Album(Base):
    __tablename__ = "albums"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    owner = relationship("Profile", back_populates="albums")
    memory_links = relationship("AlbumMemory", back_populates="album", order_by="AlbumMemory.created_at")


class AlbumMemory(Base):
    __tablename__ = "album_memories"
    album_id = Column(Uuid(as_uuid=True), ForeignKey("albums.id", ondelete="CASCADE"), primary_key=True, nullable=False)
    memory_id = Column(Uuid(as_uuid=True), ForeignKey("memories.id", ondelete="CASCADE"), primary_key=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    album = relationship("Album", back_populates="memory_links")
    memory = relationship("Memory")
