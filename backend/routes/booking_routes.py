from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_coach, get_current_member
from backend.core import config
from backend.core.exceptions import DomainException
from backend.database import get_db
from backend.models.booking import BOOKING_STATUSES
from backend.models.profile import CoachProfile, MemberProfile
from backend.routes.common import database_unavailable, ensure_database_ready
from backend.services import booking_ledger, identity

coach_router = APIRouter(tags=['bookings'])
member_router = APIRouter(tags=['bookings'])


class CreateBookingRequest(BaseModel):
    start_at: datetime
    end_at: datetime
    notes: str | None = None
    payment_id: int | None = None
    pack_id: int | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > config.MAX_BOOKING_NOTES_LENGTH:
            raise ValueError(f'Notes must be {config.MAX_BOOKING_NOTES_LENGTH} characters or fewer.')

        return normalized


class UpdateBookingStatusRequest(BaseModel):
    status: str
    coach_notes: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in BOOKING_STATUSES:
            raise ValueError('Invalid booking status.')
        return normalized


class CalendarEventResponse(BaseModel):
    id: int
    title: str
    subtitle: str | None = None
    status: str
    status_label: str
    color: str
    background: str
    start_at: datetime
    end_at: datetime
    member_name: str | None = None
    pack_title: str | None = None
    notes: str | None = None
    tooltip: str


class BookingResponse(BaseModel):
    id: int
    coach_id: int
    member_id: int
    start_at: datetime
    end_at: datetime
    status: str
    payment_id: int | None = None
    pack_id: int | None = None
    member_notes: str | None = None
    coach_notes: str | None = None
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    event: CalendarEventResponse | None = None

    class Config:
        from_attributes = True


def to_booking_responses(views: list[booking_ledger.BookingView]) -> list[BookingResponse]:
    return [
        BookingResponse.model_validate(view.booking).model_copy(
            update={'event': CalendarEventResponse(**view.event)},
        )
        for view in views
    ]


@coach_router.get('', response_model=list[BookingResponse])
def list_coach_bookings(
    status_filter: str | None = Query(default=None, alias='status'),
    product_id: str | None = Query(default=None),
    coach: CoachProfile = Depends(get_current_coach),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        views = booking_ledger.list_bookings_for_coach(db, coach.id, status=status_filter, product_id=product_id)
        return to_booking_responses(views)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@coach_router.patch('/{booking_id}', response_model=BookingResponse)
def update_booking_status(
    booking_id: int,
    data: UpdateBookingStatusRequest,
    coach: CoachProfile = Depends(get_current_coach),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return booking_ledger.update_booking_status(db, coach.id, booking_id, data.status, data.coach_notes)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@member_router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    member: MemberProfile = Depends(get_current_member),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        coach_id = identity.get_active_coach_id(db)
        return booking_ledger.create_booking(
            db,
            coach_id,
            member.id,
            data.start_at,
            data.end_at,
            notes=data.notes,
            payment_id=data.payment_id,
            pack_id=data.pack_id,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@member_router.get('', response_model=list[BookingResponse])
def list_member_bookings(
    status_filter: str | None = Query(default=None, alias='status'),
    product_id: str | None = Query(default=None),
    member: MemberProfile = Depends(get_current_member),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        views = booking_ledger.list_bookings_for_member(db, member.id, status=status_filter, product_id=product_id)
        return to_booking_responses(views)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
