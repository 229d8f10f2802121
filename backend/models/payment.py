"""Product and payment model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from backend.database import Base, utcnow
from backend.models.profile import MemberProfile

PAYMENT_PENDING = 'PENDING'
PAYMENT_PAID = 'PAID'
PAYMENT_FAILED = 'FAILED'
PAYMENT_REFUNDED = 'REFUNDED'
PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PAID, PAYMENT_FAILED, PAYMENT_REFUNDED)

METHOD_STRIPE = 'STRIPE'
METHOD_CASH = 'CASH'


class Product(Base):
    """Sellable session pack. A NULL credit_value is an unlimited pack."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    price_cents = Column(Integer, nullable=False, default=0)
    credit_value = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class Payment(Base):
    """Payment record mirrored from checkout or entered by the coach."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    member_id = Column(Integer, ForeignKey("member_profiles.id"), nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    currency = Column(String, default='EUR', nullable=False)
    status = Column(String, default=PAYMENT_PENDING, nullable=False)
    method = Column(String, default=METHOD_CASH, nullable=False)
    provider_ref = Column(String)
    notes = Column(Text)
    metadata_json = Column(Text)
    created_at = Column(DateTime, default=utcnow)

    member = relationship(MemberProfile)
