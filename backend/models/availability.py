"""Availability model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, text
from backend.database import Base, utcnow


class AvailabilityRule(Base):
    """Weekly recurring window, expanded into slots on demand."""
    __tablename__ = "availability_rules"
    __table_args__ = (
        CheckConstraint('weekday BETWEEN 0 AND 6', name='ck_availability_rules_weekday'),
        CheckConstraint('start_minutes >= 0 AND end_minutes <= 1439', name='ck_availability_rules_minutes'),
        CheckConstraint('end_minutes > start_minutes', name='ck_availability_rules_range'),
    )

    id = Column(Integer, primary_key=True)
    coach_id = Column(Integer, ForeignKey("coach_profiles.id"), nullable=False, index=True)
    weekday = Column(Integer, nullable=False)  # 0=Monday .. 6=Sunday
    start_minutes = Column(Integer, nullable=False)
    end_minutes = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class AvailabilitySlot(Base):
    """Represents a concrete bookable window.

    Hand-made slots may overlap or share a start. Slots generated from rules
    are unique per coach and start so concurrent rule runs cannot duplicate.
    """
    __tablename__ = "availability_slots"
    __table_args__ = (
        Index(
            'uq_availability_slots_generated_start',
            'coach_id',
            'start_at',
            unique=True,
            postgresql_where=text('is_generated'),
            sqlite_where=text('is_generated'),
        ),
        CheckConstraint('end_at > start_at', name='ck_availability_slots_range'),
    )

    id = Column(Integer, primary_key=True)
    coach_id = Column(Integer, ForeignKey("coach_profiles.id"), nullable=False, index=True)
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    is_generated = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow)
