"""Booking admission, coach status transitions and their credit/payment effects.

Admission and transitions lock the coach profile row for the length of their
transaction, so two requests for the same coach run their collision checks
one after the other.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session, joinedload

from backend.core import config
from backend.core.exceptions import ConflictException, NotFoundException, ValidationException
from backend.database import transaction, utcnow
from backend.models.availability import AvailabilitySlot
from backend.models.booking import (
    BLOCKING_STATUSES,
    BOOKING_CONFIRMED,
    BOOKING_PENDING,
    BOOKING_REFUSED,
    BOOKING_STATUSES,
    Booking,
)
from backend.models.pack import MemberPack
from backend.models.payment import Payment
from backend.models.profile import CoachProfile, MemberProfile
from backend.services import pack_ledger
from backend.services.availability_service import validate_range
from backend.services.calendar_events import Perspective, build_event_payload
from backend.services.payment_bridge import DatabasePaymentBridge, PaymentBridge

logger = logging.getLogger(__name__)

PACK_NONE_FILTER = 'none'
PRODUCT_ALL_FILTER = 'all'


@dataclass
class BookingView:
    booking: Booking
    event: dict


def normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    if len(normalized) > config.MAX_BOOKING_NOTES_LENGTH:
        raise ValidationException(f'Notes must be {config.MAX_BOOKING_NOTES_LENGTH} characters or fewer.')
    return normalized


def _lock_coach(db: Session, coach_id: int) -> CoachProfile:
    coach = db.query(CoachProfile).filter(CoachProfile.id == coach_id).with_for_update().first()
    if coach is None:
        raise NotFoundException('Coach profile not found.', details={'coach_id': coach_id})
    return coach


def find_covering_slot(db: Session, coach_id: int, start_at: datetime, end_at: datetime) -> AvailabilitySlot | None:
    return db.query(AvailabilitySlot).filter(
        AvailabilitySlot.coach_id == coach_id,
        AvailabilitySlot.start_at <= start_at,
        AvailabilitySlot.end_at >= end_at,
    ).first()


def find_colliding_booking(
    db: Session,
    coach_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_booking_id: int | None = None,
) -> Booking | None:
    query = db.query(Booking).filter(
        Booking.coach_id == coach_id,
        Booking.status.in_(BLOCKING_STATUSES),
        Booking.start_at < end_at,
        Booking.end_at > start_at,
    )
    if exclude_booking_id is not None:
        query = query.filter(Booking.id != exclude_booking_id)
    return query.first()


def _require_linkable_payment(db: Session, member_id: int, payment_id: int) -> Payment:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if payment is None or payment.member_id != member_id:
        raise NotFoundException('Payment not found for this member.', code='PaymentInvalid', details={'payment_id': payment_id})

    linked = db.query(Booking.id).filter(Booking.payment_id == payment_id).first()
    if linked is not None:
        raise ConflictException(
            'Payment is already linked to a booking.',
            code='PaymentAlreadyLinked',
            details={'payment_id': payment_id, 'booking_id': linked.id},
        )
    return payment


def create_booking(
    db: Session,
    coach_id: int,
    member_id: int,
    start_at: datetime | str | None,
    end_at: datetime | str | None,
    notes: str | None = None,
    payment_id: int | None = None,
    pack_id: int | None = None,
) -> Booking:
    """Admit a member booking as PENDING. Credits are only debited on confirmation."""
    start, end = validate_range(start_at, end_at)
    member_notes = normalize_notes(notes)

    with transaction(db):
        _lock_coach(db, coach_id)
        member = db.query(MemberProfile).filter(MemberProfile.id == member_id).first()
        if member is None:
            raise NotFoundException('Member profile not found.', details={'member_id': member_id})

        if find_covering_slot(db, coach_id, start, end) is None:
            raise ConflictException('Slot not available.', code='SlotNotAvailable')

        colliding = find_colliding_booking(db, coach_id, start, end)
        if colliding is not None:
            raise ConflictException(
                'Slot already booked.',
                code='SlotConflict',
                details={'booking_id': colliding.id},
            )

        if payment_id is not None:
            _require_linkable_payment(db, member.id, payment_id)

        pack = pack_ledger.require_pack_for_booking(db, member.id, pack_id)

        booking = Booking(
            coach_id=coach_id,
            member_id=member.id,
            start_at=start,
            end_at=end,
            status=BOOKING_PENDING,
            payment_id=payment_id,
            pack_id=pack.id,
            member_notes=member_notes,
        )
        db.add(booking)
        db.flush()

    db.refresh(booking)
    logger.info(
        'Member %s booked coach %s from %s to %s (booking %s, pack %s)',
        member_id,
        coach_id,
        start,
        end,
        booking.id,
        booking.pack_id,
    )
    return booking


def update_booking_status(
    db: Session,
    coach_id: int,
    booking_id: int,
    status: str,
    coach_notes: str | None = None,
    bridge: PaymentBridge | None = None,
) -> Booking:
    """Move a booking to ``status`` and apply the pack/payment effects of that edge.

    Debit fires on entering CONFIRMED, credit-back on CONFIRMED -> REFUSED,
    refund on entering REFUSED. Everything is committed together or not at all.
    """
    target = (status or '').strip().upper()
    if target not in BOOKING_STATUSES:
        raise ValidationException('Invalid booking status.', details={'status': status})
    notes = normalize_notes(coach_notes)

    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if booking is None or booking.coach_id != coach_id:
        raise NotFoundException('Booking not found.', details={'booking_id': booking_id})

    if booking.status == target and (notes is None or notes == booking.coach_notes):
        return booking

    bridge = bridge or DatabasePaymentBridge(db)

    with transaction(db):
        _lock_coach(db, coach_id)
        db.refresh(booking)
        previous = booking.status

        if previous == BOOKING_REFUSED and target in BLOCKING_STATUSES:
            colliding = find_colliding_booking(db, coach_id, booking.start_at, booking.end_at, exclude_booking_id=booking.id)
            if colliding is not None:
                raise ConflictException(
                    'Slot was booked while this booking was refused.',
                    code='SlotConflict',
                    details={'booking_id': colliding.id},
                )

        now = utcnow()
        booking.status = target
        if notes is not None:
            booking.coach_notes = notes
        if target == BOOKING_CONFIRMED and previous != BOOKING_CONFIRMED:
            booking.confirmed_at = now
        if target == BOOKING_REFUSED and previous != BOOKING_REFUSED:
            booking.cancelled_at = now
        db.flush()

        if booking.pack_id is not None:
            if target == BOOKING_CONFIRMED and previous != BOOKING_CONFIRMED:
                pack_ledger.debit_pack(db, booking.pack_id)
            elif target == BOOKING_REFUSED and previous == BOOKING_CONFIRMED:
                pack_ledger.credit_pack(db, booking.pack_id)

        # Payment last: a provider refund cannot be rolled back with the rest.
        if booking.payment_id is not None:
            if target == BOOKING_REFUSED and previous != BOOKING_REFUSED:
                bridge.refund(booking.payment_id, config.BOOKING_REFUSED_REFUND_REASON)
            elif target == BOOKING_CONFIRMED and previous != BOOKING_CONFIRMED:
                bridge.mark_paid(booking.payment_id)

    db.refresh(booking)
    logger.info('Coach %s moved booking %s from %s to %s', coach_id, booking.id, previous, target)
    return booking


def _apply_filters(query, status: str | None, product_id: str | None):
    if status and status.upper() in BOOKING_STATUSES:
        query = query.filter(Booking.status == status.upper())

    product_filter = (product_id or '').strip()
    if product_filter and product_filter.lower() != PRODUCT_ALL_FILTER:
        if product_filter.lower() == PACK_NONE_FILTER:
            query = query.filter(Booking.pack_id.is_(None))
        elif product_filter.isdigit():
            query = query.join(MemberPack, Booking.pack_id == MemberPack.id).filter(
                MemberPack.product_id == int(product_filter),
            )
        else:
            raise ValidationException('Invalid product filter.', details={'product_id': product_id})
    return query


def _list(db: Session, query, perspective: Perspective, status: str | None, product_id: str | None) -> list[BookingView]:
    query = _apply_filters(query, status, product_id).options(
        joinedload(Booking.pack).joinedload(MemberPack.product),
        joinedload(Booking.member).joinedload(MemberProfile.user),
        joinedload(Booking.coach),
    )
    bookings = query.order_by(Booking.start_at.asc(), Booking.id.asc()).all()
    return [BookingView(booking=booking, event=build_event_payload(booking, perspective)) for booking in bookings]


def list_bookings_for_member(
    db: Session,
    member_id: int,
    status: str | None = None,
    product_id: str | None = None,
) -> list[BookingView]:
    return _list(db, db.query(Booking).filter(Booking.member_id == member_id), 'MEMBER', status, product_id)


def list_bookings_for_coach(
    db: Session,
    coach_id: int,
    status: str | None = None,
    product_id: str | None = None,
) -> list[BookingView]:
    return _list(db, db.query(Booking).filter(Booking.coach_id == coach_id), 'COACH', status, product_id)
