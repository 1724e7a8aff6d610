from sqlalchemy import Column, DateTime, String, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class Profile(Base):
    """Application profile keyed by the identity service's user id."""

    __tablename__ = "profiles"
    id = Column(Uuid(as_uuid=True), primary_key=True)
    name = Column(String)
    email = Column(String)
    role = Column(String, nullable=False, default=ROLE_USER, server_default=ROLE_USER)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    memories = relationship("Memory", back_populates="owner")
    albums = relationship("Album", back_populates="owner")
