"""Expands weekly availability rules into dated slots."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core import config
from backend.core.exceptions import ConflictException, ValidationException
from backend.database import transaction
from backend.models.availability import AvailabilityRule, AvailabilitySlot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotCandidate:
    start_at: datetime
    end_at: datetime


def normalize_horizon(days: int | None = None, start_date: date | str | None = None) -> tuple[int, date]:
    """Clamp the horizon to [1, MAX_RULE_HORIZON_DAYS] and default to today."""
    if days is None:
        days = config.DEFAULT_RULE_HORIZON_DAYS
    days = max(1, min(int(days), config.MAX_RULE_HORIZON_DAYS))

    if start_date is None:
        return days, date.today()
    if isinstance(start_date, datetime):
        return days, start_date.date()
    if isinstance(start_date, date):
        return days, start_date

    try:
        return days, datetime.fromisoformat(str(start_date).strip()).date()
    except ValueError as exc:
        raise ValidationException('Invalid start date.', details={'start_date': start_date}) from exc


def expand_rules(rules: Iterable[AvailabilityRule], start_date: date, days: int) -> list[SlotCandidate]:
    ordered_rules = sorted(rules, key=lambda rule: (rule.weekday, rule.start_minutes, rule.id or 0))
    candidates: list[SlotCandidate] = []
    seen_starts: set[datetime] = set()

    for offset in range(days):
        current_day = start_date + timedelta(days=offset)
        midnight = datetime.combine(current_day, time(0, 0))
        weekday = current_day.weekday()

        for rule in ordered_rules:
            if rule.weekday != weekday:
                continue

            start_at = midnight + timedelta(minutes=rule.start_minutes)
            end_at = midnight + timedelta(minutes=rule.end_minutes)
            if end_at <= start_at or start_at in seen_starts:
                continue

            seen_starts.add(start_at)
            candidates.append(SlotCandidate(start_at=start_at, end_at=end_at))

    return candidates


def apply_rules(
    db: Session,
    coach_id: int,
    days: int | None = None,
    start_date: date | str | None = None,
) -> int:
    """Create the slots the coach's rules produce over the horizon.

    Returns how many slots were new. Running it twice creates nothing the
    second time.
    """
    horizon_days, first_day = normalize_horizon(days, start_date)

    try:
        with transaction(db):
            rules = db.query(AvailabilityRule).filter(AvailabilityRule.coach_id == coach_id).all()
            if not rules:
                return 0

            candidates = expand_rules(rules, first_day, horizon_days)
            if not candidates:
                return 0

            existing_starts = {
                row.start_at
                for row in db.query(AvailabilitySlot.start_at).filter(
                    AvailabilitySlot.coach_id == coach_id,
                    AvailabilitySlot.start_at.in_([candidate.start_at for candidate in candidates]),
                ).all()
            }
            to_create = [
                AvailabilitySlot(
                    coach_id=coach_id,
                    start_at=candidate.start_at,
                    end_at=candidate.end_at,
                    is_generated=True,
                )
                for candidate in candidates
                if candidate.start_at not in existing_starts
            ]
            if not to_create:
                return 0

            db.add_all(to_create)
            db.flush()
    except IntegrityError as exc:
        raise ConflictException(
            'Slots were generated concurrently, retry the request.',
            code='SlotGenerationConflict',
        ) from exc

    logger.info(
        'Applied availability rules for coach %s: %s new slots over %s days from %s',
        coach_id,
        len(to_create),
        horizon_days,
        first_day.isoformat(),
    )
    return len(to_create)
