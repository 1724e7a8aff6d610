import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Memory(Base):
    __tablename__ = "memories"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False, default="Untitled Memory")
    description = Column(Text, nullable=False, default="")
    memory_date = Column(Date, nullable=False)
    location = Column(String, nullable=False, default="")
    is_milestone = Column(Boolean, nullable=False, default=False, server_default="false")
    album_id = Column(Uuid(as_uuid=True), ForeignKey("albums.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    owner = relationship("Profile", back_populates="memories")
    media = relationship("Media", back_populates="memory", order_by="Media.created_at")
    memory_tags = relationship("MemoryTag", back_populates="memory")
