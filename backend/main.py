import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.core.exceptions import DomainException
from backend.database import Base, engine, ensure_availability_schema, ensure_booking_schema
from backend.models import availability, booking, pack, payment, profile, user  # noqa: F401
from backend.routes import availability_routes, booking_routes, pack_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='Coaching Booking Ledger')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    http_exc = exc.to_http_exception()
    return JSONResponse(status_code=http_exc.status_code, content={'detail': http_exc.detail})


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_booking_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.get('/')
def root():
    return {'status': 'Coaching Booking API Running'}


app.include_router(availability_routes.router, prefix='/coach/availability')
app.include_router(booking_routes.coach_router, prefix='/coach/bookings')
app.include_router(pack_routes.coach_payments_router, prefix='/coach/payments')
app.include_router(booking_routes.member_router, prefix='/member/bookings')
app.include_router(pack_routes.member_router, prefix='/member/packs')
