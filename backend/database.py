import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from threading import Lock
from typing import Iterator

from dotenv import load_dotenv
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend.core import config


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL")

engine = create_engine(DATABASE_URL, echo=config.SQL_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

logger = logging.getLogger(__name__)

_schema_lock = Lock()
_availability_schema_checked = False
_booking_schema_checked = False


def utcnow() -> datetime:
    """Current time as naive UTC, the convention for every stored timestamp."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit everything done in the block, or nothing."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(engine)

        if 'availability_slots' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('availability_slots')}

        with engine.begin() as connection:
            if 'is_generated' not in existing_columns:
                logger.info('Adding availability_slots.is_generated column')
                connection.execute(
                    text('ALTER TABLE availability_slots ADD COLUMN is_generated BOOLEAN NOT NULL DEFAULT FALSE')
                )
            if engine.dialect.name == 'postgresql':
                # Older databases carry a table-wide unique start per coach.
                connection.execute(
                    text('ALTER TABLE availability_slots DROP CONSTRAINT IF EXISTS uq_availability_slots_coach_start')
                )
            connection.execute(
                text('CREATE UNIQUE INDEX IF NOT EXISTS uq_availability_slots_generated_start '
                     'ON availability_slots(coach_id, start_at) WHERE is_generated')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_availability_slots_coach_range '
                     'ON availability_slots(coach_id, start_at, end_at)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_availability_rules_coach_weekday '
                     'ON availability_rules(coach_id, weekday, start_minutes)')
            )

        _availability_schema_checked = True


def ensure_booking_schema() -> None:
    global _booking_schema_checked

    if _booking_schema_checked:
        return

    with _schema_lock:
        if _booking_schema_checked:
            return

        inspector = inspect(engine)

        if 'bookings' not in inspector.get_table_names():
            _booking_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('bookings')}
        migration_steps = [
            ('member_notes', 'ALTER TABLE bookings ADD COLUMN member_notes VARCHAR'),
            ('coach_notes', 'ALTER TABLE bookings ADD COLUMN coach_notes VARCHAR'),
            ('confirmed_at', 'ALTER TABLE bookings ADD COLUMN confirmed_at TIMESTAMP'),
            ('cancelled_at', 'ALTER TABLE bookings ADD COLUMN cancelled_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    logger.info('Adding bookings.%s column', column_name)
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_bookings_coach_status_start '
                     'ON bookings(coach_id, status, start_at)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_bookings_member_start ON bookings(member_id, start_at)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_member_packs_member_status '
                     'ON member_packs(member_id, status, activated_at)')
            )

        _booking_schema_checked = True


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
