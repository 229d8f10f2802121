"""Account model shared by coaches and members."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from backend.database import Base, utcnow


class User(Base):
    """Login identity; the profile tables hold the coaching data."""
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('coach', 'member')", name='ck_users_role'),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Stored lowercased; bearer token subjects are matched against it.
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String)
    role = Column(String, nullable=False, default='member')
    created_at = Column(DateTime, default=utcnow)
