import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base
from app.models.memory import _utcnow

MEDIA_IMAGE = "image"
MEDIA_VIDEO = "video"
MEDIA_AUDIO = "audio"
VISUAL_MEDIA_TYPES = (MEDIA_IMAGE, MEDIA_VIDEO)


class Media(Base):
    __tablename__ = "media"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    memory_id = Column(Uuid(as_uuid=True), ForeignKey("memories.id", ondelete="CASCADE"), nullable=False, index=True)
    # Either a storage path ("user/memory/display-x.jpg") or an absolute public URL.
    file_url = Column(Text, nullable=False)
    file_type = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    memory = relationship("Memory", back_populates="media")
