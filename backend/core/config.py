import os



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:5173"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))
JWT_LEEWAY_SECONDS = int(os.getenv("JWT_LEEWAY_SECONDS", "30"))

# Coach that member bookings are routed to. Falls back to the first active
# coach profile when unset.
ACTIVE_COACH_ID = _get_int(os.getenv("ACTIVE_COACH_ID"), 0) or None

DEFAULT_RULE_HORIZON_DAYS = _get_int(os.getenv("DEFAULT_RULE_HORIZON_DAYS"), 14)
MAX_RULE_HORIZON_DAYS = _get_int(os.getenv("MAX_RULE_HORIZON_DAYS"), 60)
MAX_BOOKING_NOTES_LENGTH = _get_int(os.getenv("MAX_BOOKING_NOTES_LENGTH"), 600)

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
BOOKING_REFUSED_REFUND_REASON = os.getenv("BOOKING_REFUSED_REFUND_REASON", "Session refused by coach")

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if not 1 <= DEFAULT_RULE_HORIZON_DAYS <= MAX_RULE_HORIZON_DAYS:
        raise RuntimeError("DEFAULT_RULE_HORIZON_DAYS must be between 1 and MAX_RULE_HORIZON_DAYS.")
