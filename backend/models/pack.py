"""Member pack model definitions."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from backend.database import Base, utcnow
from backend.models.payment import Product

PACK_ACTIVE = 'ACTIVE'
PACK_USED = 'USED'


class MemberPack(Base):
    """Prepaid session credits owned by a member.

    ``total_credits`` NULL means unlimited. Only the pack ledger writes the
    credit columns.
    """
    __tablename__ = "member_packs"
    __table_args__ = (
        CheckConstraint(
            'total_credits IS NULL OR (credits_remaining >= 0 AND credits_remaining <= total_credits)',
            name='ck_member_packs_credit_bounds',
        ),
    )

    id = Column(Integer, primary_key=True)
    member_id = Column(Integer, ForeignKey("member_profiles.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    payment_id = Column(Integer, ForeignKey("payments.id"), unique=True, nullable=True)
    total_credits = Column(Integer, nullable=True)
    credits_remaining = Column(Integer, nullable=True)
    status = Column(String, default=PACK_ACTIVE, nullable=False)
    metadata_json = Column(Text)
    activated_at = Column(DateTime, default=utcnow, nullable=False)

    product = relationship(Product)
