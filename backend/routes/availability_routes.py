from datetime import date, datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, computed_field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_coach
from backend.core.exceptions import DomainException
from backend.database import get_db
from backend.models.profile import CoachProfile
from backend.routes.common import database_unavailable, ensure_database_ready
from backend.services import availability_service, recurrence

router = APIRouter(tags=['availability'])


class SlotRequest(BaseModel):
    start_at: datetime | None = None
    end_at: datetime | None = None


class SlotResponse(BaseModel):
    id: int
    coach_id: int
    start_at: datetime
    end_at: datetime
    is_generated: bool = False

    class Config:
        from_attributes = True


class RuleRequest(BaseModel):
    weekday: int | None = None
    start_time: str | None = None
    end_time: str | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def strip_time(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip()


class RuleResponse(BaseModel):
    id: int
    coach_id: int
    weekday: int
    start_minutes: int
    end_minutes: int

    class Config:
        from_attributes = True

    @computed_field
    @property
    def start_time(self) -> str:
        return availability_service.format_time_of_day(self.start_minutes)

    @computed_field
    @property
    def end_time(self) -> str:
        return availability_service.format_time_of_day(self.end_minutes)


class ApplyRulesRequest(BaseModel):
    days: int | None = None
    start_date: date | None = None


class ApplyRulesResponse(BaseModel):
    created_count: int


@router.get('', response_model=list[SlotResponse])
def list_slots(coach: CoachProfile = Depends(get_current_coach), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return availability_service.list_slots(db, coach.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
def create_slot(
    data: SlotRequest,
    coach: CoachProfile = Depends(get_current_coach),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return availability_service.create_slot(db, coach.id, data.start_at, data.end_at)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/rules/all', response_model=list[RuleResponse])
def list_rules(coach: CoachProfile = Depends(get_current_coach), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return availability_service.list_rules(db, coach.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/rules', response_model=RuleResponse, status_code=status.HTTP_201_CREATED)
def create_rule(
    data: RuleRequest,
    coach: CoachProfile = Depends(get_current_coach),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return availability_service.create_rule(db, coach.id, data.weekday, data.start_time, data.end_time)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/rules/apply', response_model=ApplyRulesResponse)
def apply_rules(
    data: ApplyRulesRequest,
    coach: CoachProfile = Depends(get_current_coach),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        created_count = recurrence.apply_rules(db, coach.id, days=data.days, start_date=data.start_date)
        return ApplyRulesResponse(created_count=created_count)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/rules/{rule_id}', response_model=RuleResponse)
def update_rule(
    rule_id: int,
    data: RuleRequest,
    coach: CoachProfile = Depends(get_current_coach),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return availability_service.update_rule(
            db,
            coach.id,
            rule_id,
            weekday=data.weekday,
            start_time=data.start_time,
            end_time=data.end_time,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.delete('/rules/{rule_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(
    rule_id: int,
    coach: CoachProfile = Depends(get_current_coach),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        availability_service.delete_rule(db, coach.id, rule_id)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{slot_id}', response_model=SlotResponse)
def update_slot(
    slot_id: int,
    data: SlotRequest,
    coach: CoachProfile = Depends(get_current_coach),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return availability_service.update_slot(db, coach.id, slot_id, data.start_at, data.end_at)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.delete('/{slot_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_slot(
    slot_id: int,
    coach: CoachProfile = Depends(get_current_coach),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        availability_service.delete_slot(db, coach.id, slot_id)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
