import json
import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.database import Base  # noqa: E402
from backend.models.availability import AvailabilityRule, AvailabilitySlot  # noqa: E402
from backend.models.booking import Booking  # noqa: E402
from backend.models.pack import PACK_ACTIVE, MemberPack  # noqa: E402
from backend.models.payment import METHOD_CASH, PAYMENT_PENDING, Payment, Product  # noqa: E402
from backend.models.profile import CoachProfile, MemberProfile  # noqa: E402
from backend.models.user import User  # noqa: E402


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_coach(db):
    def factory(email: str = 'coach@example.com', display_name: str = 'Coach Camille', is_active: bool = True):
        user = User(email=email, hashed_password='', role='coach')
        db.add(user)
        db.flush()
        coach = CoachProfile(user_id=user.id, display_name=display_name, is_active=is_active)
        db.add(coach)
        db.commit()
        db.refresh(coach)
        return coach

    return factory


@pytest.fixture
def make_member(db):
    def factory(email: str = 'member@example.com', full_name: str | None = 'Alex Martin'):
        user = User(email=email, hashed_password='', role='member')
        db.add(user)
        db.flush()
        member = MemberProfile(user_id=user.id, full_name=full_name)
        db.add(member)
        db.commit()
        db.refresh(member)
        return member

    return factory


@pytest.fixture
def make_product(db):
    def factory(title: str = '3 session pack', credit_value: int | None = 3, price_cents: int = 15000):
        product = Product(title=title, credit_value=credit_value, price_cents=price_cents)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return factory


@pytest.fixture
def make_pack(db, make_product):
    def factory(
        member,
        total_credits: int | None = 3,
        credits_remaining: int | None = None,
        status: str = PACK_ACTIVE,
        activated_at: datetime | None = None,
        product=None,
    ):
        product = product or make_product(credit_value=total_credits)
        pack = MemberPack(
            member_id=member.id,
            product_id=product.id,
            total_credits=total_credits,
            credits_remaining=total_credits if credits_remaining is None else credits_remaining,
            status=status,
            activated_at=activated_at or datetime(2026, 1, 1, 8, 0),
        )
        db.add(pack)
        db.commit()
        db.refresh(pack)
        return pack

    return factory


@pytest.fixture
def make_payment(db):
    def factory(
        member,
        status: str = PAYMENT_PENDING,
        method: str = METHOD_CASH,
        amount_cents: int = 5000,
        product_id: int | None = None,
        provider_ref: str | None = None,
    ):
        metadata = {'description': 'Coaching session'}
        if product_id is not None:
            metadata['productId'] = product_id
        payment = Payment(
            member_id=member.id,
            amount_cents=amount_cents,
            status=status,
            method=method,
            provider_ref=provider_ref,
            metadata_json=json.dumps(metadata),
        )
        db.add(payment)
        db.commit()
        db.refresh(payment)
        return payment

    return factory


@pytest.fixture
def make_slot(db):
    def factory(coach, start_at: datetime, end_at: datetime):
        slot = AvailabilitySlot(coach_id=coach.id, start_at=start_at, end_at=end_at)
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot

    return factory


@pytest.fixture
def make_rule(db):
    def factory(coach, weekday: int, start_minutes: int, end_minutes: int):
        rule = AvailabilityRule(
            coach_id=coach.id,
            weekday=weekday,
            start_minutes=start_minutes,
            end_minutes=end_minutes,
        )
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule

    return factory


@pytest.fixture
def make_booking(db):
    def factory(coach, member, start_at: datetime, end_at: datetime, status: str = 'PENDING', pack=None, payment=None):
        booking = Booking(
            coach_id=coach.id,
            member_id=member.id,
            start_at=start_at,
            end_at=end_at,
            status=status,
            pack_id=pack.id if pack is not None else None,
            payment_id=payment.id if payment is not None else None,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return factory
