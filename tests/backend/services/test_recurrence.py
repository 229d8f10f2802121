from datetime import date, datetime

import pytest

from backend.core.exceptions import ValidationException
from backend.models.availability import AvailabilityRule, AvailabilitySlot
from backend.services.recurrence import SlotCandidate, apply_rules, expand_rules, normalize_horizon


def test_normalize_horizon_defaults_to_fourteen_days_from_today() -> None:
    days, first_day = normalize_horizon()

    assert days == 14
    assert first_day == date.today()


@pytest.mark.parametrize(('requested', 'expected'), [(0, 1), (-3, 1), (7, 7), (60, 60), (365, 60)])
def test_normalize_horizon_clamps_days(requested: int, expected: int) -> None:
    days, _ = normalize_horizon(requested, date(2026, 1, 5))

    assert days == expected


def test_normalize_horizon_accepts_iso_strings_and_datetimes() -> None:
    assert normalize_horizon(3, '2026-01-05')[1] == date(2026, 1, 5)
    assert normalize_horizon(3, datetime(2026, 1, 5, 17, 30))[1] == date(2026, 1, 5)


def test_normalize_horizon_rejects_garbage_start_date() -> None:
    with pytest.raises(ValidationException):
        normalize_horizon(3, 'next monday')


def test_expand_rules_walks_days_in_order() -> None:
    rules = [
        AvailabilityRule(id=2, coach_id=1, weekday=0, start_minutes=840, end_minutes=900),
        AvailabilityRule(id=1, coach_id=1, weekday=0, start_minutes=540, end_minutes=600),
        AvailabilityRule(id=3, coach_id=1, weekday=1, start_minutes=540, end_minutes=600),
    ]

    candidates = expand_rules(rules, date(2026, 1, 5), 2)

    assert candidates == [
        SlotCandidate(datetime(2026, 1, 5, 9, 0), datetime(2026, 1, 5, 10, 0)),
        SlotCandidate(datetime(2026, 1, 5, 14, 0), datetime(2026, 1, 5, 15, 0)),
        SlotCandidate(datetime(2026, 1, 6, 9, 0), datetime(2026, 1, 6, 10, 0)),
    ]


def test_expand_rules_keeps_first_rule_for_duplicate_start() -> None:
    rules = [
        AvailabilityRule(id=1, coach_id=1, weekday=2, start_minutes=540, end_minutes=720),
        AvailabilityRule(id=2, coach_id=1, weekday=2, start_minutes=540, end_minutes=600),
    ]

    candidates = expand_rules(rules, date(2026, 1, 7), 1)

    assert candidates == [SlotCandidate(datetime(2026, 1, 7, 9, 0), datetime(2026, 1, 7, 12, 0))]


def test_expand_rules_skips_degenerate_rules() -> None:
    rules = [AvailabilityRule(id=1, coach_id=1, weekday=2, start_minutes=600, end_minutes=600)]

    assert expand_rules(rules, date(2026, 1, 7), 7) == []


def test_apply_rules_generates_each_wednesday_once(db, make_coach, make_rule) -> None:
    coach = make_coach()
    make_rule(coach, 2, 540, 720)

    created = apply_rules(db, coach.id, days=14, start_date=date(2026, 1, 5))
    again = apply_rules(db, coach.id, days=14, start_date=date(2026, 1, 5))

    slots = db.query(AvailabilitySlot).order_by(AvailabilitySlot.start_at).all()
    assert created == 2
    assert again == 0
    assert [(slot.start_at, slot.end_at) for slot in slots] == [
        (datetime(2026, 1, 7, 9, 0), datetime(2026, 1, 7, 12, 0)),
        (datetime(2026, 1, 14, 9, 0), datetime(2026, 1, 14, 12, 0)),
    ]


def test_apply_rules_skips_slots_opened_by_hand(db, make_coach, make_rule, make_slot) -> None:
    coach = make_coach()
    make_rule(coach, 2, 540, 720)
    make_slot(coach, datetime(2026, 1, 7, 9, 0), datetime(2026, 1, 7, 10, 0))

    created = apply_rules(db, coach.id, days=7, start_date=date(2026, 1, 5))

    assert created == 0
    assert db.query(AvailabilitySlot).count() == 1


def test_apply_rules_only_uses_own_rules(db, make_coach, make_rule) -> None:
    coach = make_coach()
    other = make_coach(email='other@example.com')
    make_rule(other, 2, 540, 720)

    assert apply_rules(db, coach.id, days=7, start_date=date(2026, 1, 5)) == 0
    assert apply_rules(db, other.id, days=7, start_date=date(2026, 1, 5)) == 1


def test_wednesday_rule_from_monday_yields_one_slot(db, make_coach, make_rule) -> None:
    coach = make_coach()
    make_rule(coach, 2, 540, 600)

    assert apply_rules(db, coach.id, days=7, start_date='2026-01-05') == 1

    [slot] = db.query(AvailabilitySlot).all()
    assert (slot.start_at, slot.end_at) == (datetime(2026, 1, 7, 9, 0), datetime(2026, 1, 7, 10, 0))
