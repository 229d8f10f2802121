"""Session credit accounting for member packs.

Every function here works inside the caller's transaction and never commits:
the booking ledger and the payment bridge decide when a debit or credit-back
becomes durable.
"""

import json
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from backend.core.exceptions import InsufficientCreditException, NotFoundException
from backend.database import utcnow
from backend.models.pack import PACK_ACTIVE, PACK_USED, MemberPack
from backend.models.payment import Payment, Product
from backend.models.profile import MemberProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unlimited:
    """Subscription-style pack; never debited."""


@dataclass(frozen=True)
class Limited:
    total: int
    remaining: int


CreditBalance = Unlimited | Limited


def pack_balance(pack: MemberPack) -> CreditBalance:
    if pack.total_credits is None:
        return Unlimited()
    remaining = pack.credits_remaining if pack.credits_remaining is not None else pack.total_credits
    return Limited(total=pack.total_credits, remaining=remaining)


def has_credit(pack: MemberPack) -> bool:
    balance = pack_balance(pack)
    if isinstance(balance, Unlimited):
        return True
    return balance.remaining > 0


def _load_pack_for_update(db: Session, pack_id: int) -> MemberPack:
    pack = db.query(MemberPack).filter(MemberPack.id == pack_id).with_for_update().first()
    if pack is None:
        raise NotFoundException('Pack not found.', code='PackUnavailable', details={'pack_id': pack_id})
    return pack


def debit_pack(db: Session, pack_id: int) -> MemberPack:
    """Consume one session credit."""
    pack = _load_pack_for_update(db, pack_id)
    balance = pack_balance(pack)
    if isinstance(balance, Unlimited):
        return pack

    if balance.remaining <= 0:
        raise InsufficientCreditException(
            'No credits left on this pack.',
            code='NoCreditsAvailable',
            details={'pack_id': pack.id},
        )

    remaining = balance.remaining - 1
    pack.credits_remaining = remaining
    if remaining <= 0:
        pack.status = PACK_USED
    db.flush()

    logger.info('Debited pack %s, %s/%s credits left', pack.id, remaining, balance.total)
    return pack


def credit_pack(db: Session, pack_id: int) -> MemberPack:
    """Give one session credit back and reactivate the pack."""
    pack = _load_pack_for_update(db, pack_id)
    balance = pack_balance(pack)
    if isinstance(balance, Unlimited):
        return pack

    remaining = min(balance.total, balance.remaining + 1)
    pack.credits_remaining = remaining
    pack.status = PACK_ACTIVE
    db.flush()

    logger.info('Credited pack %s back, %s/%s credits left', pack.id, remaining, balance.total)
    return pack


def require_pack_for_booking(db: Session, member_id: int, pack_id: int | None = None) -> MemberPack:
    """Pick the pack that will pay for a new booking.

    An explicit ``pack_id`` must be one of the member's active packs with
    credit; otherwise the oldest active pack with credit is used.
    """
    if pack_id is not None:
        pack = db.query(MemberPack).filter(
            MemberPack.id == pack_id,
            MemberPack.member_id == member_id,
            MemberPack.status == PACK_ACTIVE,
        ).first()
        if pack is None:
            raise NotFoundException('Pack unavailable.', code='PackUnavailable', details={'pack_id': pack_id})
        if not has_credit(pack):
            raise InsufficientCreditException(
                'No credits left on this pack.',
                code='NoCreditsAvailable',
                details={'pack_id': pack_id},
            )
        return pack

    packs = db.query(MemberPack).filter(
        MemberPack.member_id == member_id,
        MemberPack.status == PACK_ACTIVE,
    ).order_by(MemberPack.activated_at.asc(), MemberPack.id.asc()).all()

    for pack in packs:
        if has_credit(pack):
            return pack

    raise InsufficientCreditException('No active pack with credits left.', code='NoCreditsAvailable')


def read_payment_metadata(raw: str | None) -> dict:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning('Ignoring malformed payment metadata')
        return {}
    return parsed if isinstance(parsed, dict) else {}


def activate_from_payment(db: Session, payment_id: int) -> MemberPack | None:
    """Create the pack bought by a payment, once.

    Returns None when the payment does not point at a known product.
    """
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if payment is None:
        return None

    existing = db.query(MemberPack).filter(MemberPack.payment_id == payment_id).first()
    if existing is not None:
        return existing

    metadata = read_payment_metadata(payment.metadata_json)
    product_id = metadata.get('productId') or metadata.get('product_id')
    if not product_id or not str(product_id).isdigit():
        return None

    product = db.query(Product).filter(Product.id == int(product_id)).first()
    if product is None:
        logger.warning('Payment %s references unknown product %s', payment_id, product_id)
        return None

    pack = MemberPack(
        member_id=payment.member_id,
        product_id=product.id,
        payment_id=payment.id,
        total_credits=product.credit_value,
        credits_remaining=product.credit_value,
        status=PACK_ACTIVE,
        metadata_json=payment.metadata_json,
        activated_at=utcnow(),
    )
    db.add(pack)

    member = db.query(MemberProfile).filter(MemberProfile.id == payment.member_id).first()
    if member is not None:
        member.is_activated = True

    db.flush()
    logger.info('Activated pack %s for member %s from payment %s', pack.id, payment.member_id, payment_id)
    return pack


def list_packs_for_member(db: Session, member_id: int) -> list[MemberPack]:
    return db.query(MemberPack).filter(
        MemberPack.member_id == member_id,
    ).order_by(MemberPack.activated_at.asc(), MemberPack.id.asc()).all()
