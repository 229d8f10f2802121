from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_coach, get_current_member
from backend.core.exceptions import DomainException
from backend.database import get_db
from backend.models.profile import CoachProfile, MemberProfile
from backend.routes.common import database_unavailable, ensure_database_ready
from backend.services import pack_ledger, payment_bridge

member_router = APIRouter(tags=['packs'])
coach_payments_router = APIRouter(tags=['payments'])


class PackResponse(BaseModel):
    id: int
    member_id: int
    product_id: int
    payment_id: int | None = None
    total_credits: int | None = None
    credits_remaining: int | None = None
    status: str
    activated_at: datetime
    unlimited: bool

    class Config:
        from_attributes = True


class UpdatePaymentStatusRequest(BaseModel):
    status: str
    notes: str | None = None


class PaymentResponse(BaseModel):
    id: int
    member_id: int
    amount_cents: int
    currency: str
    status: str
    method: str
    notes: str | None = None

    class Config:
        from_attributes = True


def to_pack_response(pack) -> PackResponse:
    balance = pack_ledger.pack_balance(pack)
    return PackResponse(
        id=pack.id,
        member_id=pack.member_id,
        product_id=pack.product_id,
        payment_id=pack.payment_id,
        total_credits=pack.total_credits,
        credits_remaining=None if isinstance(balance, pack_ledger.Unlimited) else balance.remaining,
        status=pack.status,
        activated_at=pack.activated_at,
        unlimited=isinstance(balance, pack_ledger.Unlimited),
    )


@member_router.get('', response_model=list[PackResponse])
def list_my_packs(member: MemberProfile = Depends(get_current_member), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return [to_pack_response(pack) for pack in pack_ledger.list_packs_for_member(db, member.id)]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@coach_payments_router.patch('/{payment_id}', response_model=PaymentResponse)
def update_payment_status(
    payment_id: int,
    data: UpdatePaymentStatusRequest,
    coach: CoachProfile = Depends(get_current_coach),
    db: Session = Depends(get_db),
):
    del coach
    ensure_database_ready()

    try:
        return payment_bridge.update_payment_status(db, payment_id, data.status, data.notes)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
