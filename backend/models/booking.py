"""Booking model definitions."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from backend.database import Base, utcnow
from backend.models.pack import MemberPack
from backend.models.payment import Payment
from backend.models.profile import CoachProfile, MemberProfile

BOOKING_PENDING = 'PENDING'
BOOKING_CONFIRMED = 'CONFIRMED'
BOOKING_REFUSED = 'REFUSED'
BOOKING_STATUSES = (BOOKING_PENDING, BOOKING_CONFIRMED, BOOKING_REFUSED)
# Statuses that hold the coach's time.
BLOCKING_STATUSES = (BOOKING_PENDING, BOOKING_CONFIRMED)


class Booking(Base):
    """Represents a member session request with a coach."""
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint('end_at > start_at', name='ck_bookings_range'),
    )

    id = Column(Integer, primary_key=True)
    coach_id = Column(Integer, ForeignKey("coach_profiles.id"), nullable=False, index=True)
    member_id = Column(Integer, ForeignKey("member_profiles.id"), nullable=False, index=True)
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    status = Column(String, default=BOOKING_PENDING, nullable=False)
    payment_id = Column(Integer, ForeignKey("payments.id"), unique=True, nullable=True)
    pack_id = Column(Integer, ForeignKey("member_packs.id"), nullable=True)
    member_notes = Column(String)
    coach_notes = Column(String)
    confirmed_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)

    coach = relationship(CoachProfile)
    member = relationship(MemberProfile)
    pack = relationship(MemberPack)
    payment = relationship(Payment)
