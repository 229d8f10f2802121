from datetime import datetime

from backend.models.booking import BOOKING_REFUSED, Booking
from backend.models.pack import MemberPack
from backend.models.payment import Product
from backend.models.profile import CoachProfile, MemberProfile
from backend.models.user import User
from backend.services.calendar_events import DEFAULT_TITLE, build_event_payload


def make_transient_booking(**overrides) -> Booking:
    values = {
        'id': 7,
        'status': 'PENDING',
        'start_at': datetime(2026, 1, 7, 9, 0),
        'end_at': datetime(2026, 1, 7, 10, 0),
        'member': MemberProfile(full_name=None, user=User(email='sam@example.com')),
        'coach': CoachProfile(display_name='Coach Camille'),
        'pack': None,
        'member_notes': 'Shoulder warmup',
        'coach_notes': None,
    }
    values.update(overrides)
    return Booking(**values)


def test_coach_event_falls_back_to_member_email_and_notes() -> None:
    event = build_event_payload(make_transient_booking(), 'COACH')

    assert event['title'] == 'sam@example.com'
    assert event['subtitle'] == 'Shoulder warmup'
    assert event['status_label'] == 'Awaiting coach'
    assert event['color'] == '#f97316'
    assert event['tooltip'] == 'sam@example.com • 2026-01-07 09:00 • Awaiting coach • Note: Shoulder warmup'


def test_member_event_without_pack_uses_default_title() -> None:
    event = build_event_payload(make_transient_booking(status=BOOKING_REFUSED), 'MEMBER')

    assert event['title'] == DEFAULT_TITLE
    assert event['subtitle'] == 'Coach Camille'
    assert event['status_label'] == 'Refused'
    assert event['pack_title'] is None


def test_event_shows_pack_title() -> None:
    pack = MemberPack(product=Product(title='Unlimited month'))
    event = build_event_payload(make_transient_booking(pack=pack, member_notes=None, coach_notes='Room 2'), 'COACH')

    assert event['subtitle'] == 'Unlimited month'
    assert event['pack_title'] == 'Unlimited month'
    assert event['notes'] == 'Room 2'
    assert event['tooltip'].endswith('Pack: Unlimited month')
