import uuid

from sqlalchemy import Column, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from app.core.database import Base


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False, unique=True)

    memory_tags = relationship("MemoryTag", back_populates="tag")


class MemoryTag(Base):
    __tablename__ = "memory_tags"

    memory_id = Column(Uuid(as_uuid=True), ForeignKey("memories.id", ondelete="CASCADE"), primary_key=True)
    tag_id = Column(Uuid(as_uuid=True), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)

    memory = relationship("Memory", back_populates="memory_tags")
    tag = relationship("Tag", back_populates="memory_tags")
