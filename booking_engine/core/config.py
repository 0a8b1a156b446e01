import os

from dotenv import load_dotenv


load_dotenv()


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

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./booking.db")

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), default=["http://localhost:5173"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = _get_int(os.getenv("JWT_EXPIRES_MINUTES"), 60)

# Scheduling rules
CANCELLATION_CUTOFF_HOURS = _get_int(os.getenv("CANCELLATION_CUTOFF_HOURS"), 2)
REMINDER_HOURS_BEFORE = _get_int(os.getenv("REMINDER_HOURS_BEFORE"), 24)
DEFAULT_SLOT_MINUTES = _get_int(os.getenv("DEFAULT_SLOT_MINUTES"), 30)
DEFAULT_DURATION_MINUTES = _get_int(os.getenv("DEFAULT_DURATION_MINUTES"), 30)
MIN_DURATION_MINUTES = _get_int(os.getenv("MIN_DURATION_MINUTES"), 15)
MAX_DURATION_MINUTES = _get_int(os.getenv("MAX_DURATION_MINUTES"), 180)

MAX_REASON_LENGTH = 500
MAX_NOTES_LENGTH = 1000
MAX_VET_NOTES_LENGTH = 2000


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if not MIN_DURATION_MINUTES <= DEFAULT_DURATION_MINUTES <= MAX_DURATION_MINUTES:
        raise RuntimeError("DEFAULT_DURATION_MINUTES must lie between the minimum and maximum durations.")
    if DEFAULT_SLOT_MINUTES <= 0:
        raise RuntimeError("DEFAULT_SLOT_MINUTES must be positive.")
