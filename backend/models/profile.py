"""Coach and member profile model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from backend.database import Base
from backend.models.user import User


class CoachProfile(Base):
    """Coach owning availability and bookings."""
    __tablename__ = "coach_profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    display_name = Column(String)
    is_active = Column(Boolean, default=True, nullable=False)

    user = relationship(User)


class MemberProfile(Base):
    """Member booking sessions with pack credits."""
    __tablename__ = "member_profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    full_name = Column(String)
    # Flipped once the first pack is activated; gates dashboard access.
    is_activated = Column(Boolean, default=False, nullable=False)

    user = relationship(User)
