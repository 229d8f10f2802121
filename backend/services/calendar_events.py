"""Calendar display payload derived from a booking. Never persisted."""

from typing import Literal

from backend.models.booking import BOOKING_CONFIRMED, BOOKING_PENDING, BOOKING_REFUSED, Booking

Perspective = Literal['MEMBER', 'COACH']

DEFAULT_TITLE = 'Coaching session'
TOOLTIP_SEPARATOR = ' • '

BOOKING_STATUS_META = {
    BOOKING_PENDING: {'label': 'Awaiting coach', 'color': '#f97316', 'background': 'rgba(249,115,22,0.15)'},
    BOOKING_CONFIRMED: {'label': 'Confirmed', 'color': '#16a34a', 'background': 'rgba(22,163,74,0.15)'},
    BOOKING_REFUSED: {'label': 'Refused', 'color': '#dc2626', 'background': 'rgba(220,38,38,0.15)'},
}


def _member_name(booking: Booking) -> str | None:
    member = booking.member
    if member is None:
        return None
    if member.full_name:
        return member.full_name
    return member.user.email if member.user is not None else None


def _pack_title(booking: Booking) -> str | None:
    if booking.pack is None or booking.pack.product is None:
        return None
    return booking.pack.product.title


def _coach_name(booking: Booking) -> str | None:
    return booking.coach.display_name if booking.coach is not None else None


def build_event_payload(booking: Booking, perspective: Perspective) -> dict:
    status_meta = BOOKING_STATUS_META[booking.status]
    pack_title = _pack_title(booking)
    member_name = _member_name(booking)

    if perspective == 'COACH':
        title = member_name or DEFAULT_TITLE
        subtitle = pack_title or booking.member_notes
    else:
        title = pack_title or DEFAULT_TITLE
        subtitle = _coach_name(booking)

    tooltip_parts = [title, booking.start_at.strftime('%Y-%m-%d %H:%M'), status_meta['label']]
    if pack_title:
        tooltip_parts.append(f'Pack: {pack_title}')
    if booking.member_notes:
        tooltip_parts.append(f'Note: {booking.member_notes}')

    return {
        'id': booking.id,
        'title': title,
        'subtitle': subtitle,
        'status': booking.status,
        'status_label': status_meta['label'],
        'color': status_meta['color'],
        'background': status_meta['background'],
        'start_at': booking.start_at,
        'end_at': booking.end_at,
        'member_name': member_name,
        'pack_title': pack_title,
        'notes': booking.member_notes or booking.coach_notes,
        'tooltip': TOOLTIP_SEPARATOR.join(tooltip_parts),
    }
