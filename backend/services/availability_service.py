"""Coach availability: concrete slots and the weekly rules behind them."""

import logging
import re
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core.exceptions import ConflictException, NotFoundException, ValidationException
from backend.database import transaction
from backend.models.availability import AvailabilityRule, AvailabilitySlot

logger = logging.getLogger(__name__)

TIME_OF_DAY_PATTERN = re.compile(r'^\d{2}:\d{2}$')
MINUTES_PER_DAY = 1440


def normalize_timestamp(value: datetime | str | None, field: str) -> datetime:
    """Parse a timestamp and store it as naive UTC."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationException(f'{field} is required.', details={'field': field})

    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith('Z'):
            raw = f'{raw[:-1]}+00:00'
        try:
            value = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise ValidationException(f'{field} is not a valid timestamp.', details={'field': field}) from exc

    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0)


def validate_range(start: datetime | str | None, end: datetime | str | None) -> tuple[datetime, datetime]:
    start_at = normalize_timestamp(start, 'start_at')
    end_at = normalize_timestamp(end, 'end_at')
    if end_at <= start_at:
        raise ValidationException('End must be after start.', details={'start_at': start_at.isoformat()})
    return start_at, end_at


def parse_time_of_day(value: str | None) -> int:
    """``"HH:MM"`` to minutes since midnight."""
    if not value or not TIME_OF_DAY_PATTERN.match(value.strip()):
        raise ValidationException('Invalid time format (HH:MM).', details={'time': value})
    hours, minutes = (int(part) for part in value.strip().split(':'))
    if hours > 23 or minutes > 59:
        raise ValidationException('Invalid time of day.', details={'time': value})
    return hours * 60 + minutes


def format_time_of_day(minutes: int) -> str:
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def validate_weekday(value: int | None) -> int:
    if value is None:
        raise ValidationException('Weekday is required.')
    if not 0 <= int(value) <= 6:
        raise ValidationException('Weekday must be between 0 (Monday) and 6 (Sunday).', details={'weekday': value})
    return int(value)


def _validate_minutes_range(start_minutes: int, end_minutes: int) -> None:
    if not (0 <= start_minutes < MINUTES_PER_DAY and 0 <= end_minutes < MINUTES_PER_DAY):
        raise ValidationException('Times must fall within the day.')
    if end_minutes <= start_minutes:
        raise ValidationException('End must be after start.')


# -- slots -----------------------------------------------------------------

def list_slots(db: Session, coach_id: int) -> list[AvailabilitySlot]:
    return db.query(AvailabilitySlot).filter(
        AvailabilitySlot.coach_id == coach_id,
    ).order_by(AvailabilitySlot.start_at.asc()).all()


def _get_owned_slot(db: Session, coach_id: int, slot_id: int) -> AvailabilitySlot:
    slot = db.query(AvailabilitySlot).filter(AvailabilitySlot.id == slot_id).first()
    if slot is None or slot.coach_id != coach_id:
        raise NotFoundException('Availability not found.', details={'slot_id': slot_id})
    return slot


def _slot_conflict(exc: IntegrityError, coach_id: int, start_at: datetime) -> ConflictException:
    logger.warning('Slot write for coach %s at %s hit a uniqueness constraint: %s', coach_id, start_at, exc.orig)
    return ConflictException(
        'Another slot already starts at this time.',
        code='SlotStartTaken',
        details={'start_at': start_at.isoformat()},
    )


def create_slot(db: Session, coach_id: int, start: datetime | str | None, end: datetime | str | None) -> AvailabilitySlot:
    """Open a hand-made slot. It may overlap other slots."""
    start_at, end_at = validate_range(start, end)
    try:
        with transaction(db):
            slot = AvailabilitySlot(coach_id=coach_id, start_at=start_at, end_at=end_at, is_generated=False)
            db.add(slot)
    except IntegrityError as exc:
        raise _slot_conflict(exc, coach_id, start_at) from exc
    db.refresh(slot)
    logger.info('Coach %s opened slot %s (%s - %s)', coach_id, slot.id, start_at, end_at)
    return slot


def update_slot(
    db: Session,
    coach_id: int,
    slot_id: int,
    start: datetime | str | None = None,
    end: datetime | str | None = None,
) -> AvailabilitySlot:
    """Move a slot. An edited slot no longer belongs to its rule."""
    try:
        with transaction(db):
            slot = _get_owned_slot(db, coach_id, slot_id)
            start_at, end_at = validate_range(
                start if start is not None else slot.start_at,
                end if end is not None else slot.end_at,
            )
            slot.start_at = start_at
            slot.end_at = end_at
            slot.is_generated = False
    except IntegrityError as exc:
        raise _slot_conflict(exc, coach_id, start_at) from exc
    db.refresh(slot)
    return slot


def delete_slot(db: Session, coach_id: int, slot_id: int) -> None:
    """Remove a slot. Bookings made inside it are kept."""
    with transaction(db):
        slot = _get_owned_slot(db, coach_id, slot_id)
        db.delete(slot)
    logger.info('Coach %s removed slot %s', coach_id, slot_id)


# -- rules -----------------------------------------------------------------

def list_rules(db: Session, coach_id: int) -> list[AvailabilityRule]:
    return db.query(AvailabilityRule).filter(
        AvailabilityRule.coach_id == coach_id,
    ).order_by(AvailabilityRule.weekday.asc(), AvailabilityRule.start_minutes.asc()).all()


def _get_owned_rule(db: Session, coach_id: int, rule_id: int) -> AvailabilityRule:
    rule = db.query(AvailabilityRule).filter(AvailabilityRule.id == rule_id).first()
    if rule is None or rule.coach_id != coach_id:
        raise NotFoundException('Rule not found.', details={'rule_id': rule_id})
    return rule


def create_rule(
    db: Session,
    coach_id: int,
    weekday: int | None,
    start_time: str | None,
    end_time: str | None,
) -> AvailabilityRule:
    weekday = validate_weekday(weekday)
    start_minutes = parse_time_of_day(start_time)
    end_minutes = parse_time_of_day(end_time)
    _validate_minutes_range(start_minutes, end_minutes)

    with transaction(db):
        rule = AvailabilityRule(
            coach_id=coach_id,
            weekday=weekday,
            start_minutes=start_minutes,
            end_minutes=end_minutes,
        )
        db.add(rule)
    db.refresh(rule)
    return rule


def update_rule(
    db: Session,
    coach_id: int,
    rule_id: int,
    weekday: int | None = None,
    start_time: str | None = None,
    end_time: str | None = None,
) -> AvailabilityRule:
    with transaction(db):
        rule = _get_owned_rule(db, coach_id, rule_id)
        next_weekday = rule.weekday if weekday is None else validate_weekday(weekday)
        start_minutes = rule.start_minutes if start_time is None else parse_time_of_day(start_time)
        end_minutes = rule.end_minutes if end_time is None else parse_time_of_day(end_time)
        _validate_minutes_range(start_minutes, end_minutes)

        rule.weekday = next_weekday
        rule.start_minutes = start_minutes
        rule.end_minutes = end_minutes
    db.refresh(rule)
    return rule


def delete_rule(db: Session, coach_id: int, rule_id: int) -> None:
    with transaction(db):
        rule = _get_owned_rule(db, coach_id, rule_id)
        db.delete(rule)
