import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
APP_VERSION = os.getenv("APP_VERSION", "0.2.0")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

BOOKING_STORE = os.getenv("BOOKING_STORE", "csv")
BOOKINGS_CSV_PATH = os.getenv("BOOKINGS_CSV_PATH", "bookings.csv")
SETTINGS_PATH = os.getenv("SETTINGS_PATH", "settings.json")

BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "America/New_York")
BUSINESS_OPEN_HOUR = int(os.getenv("BUSINESS_OPEN_HOUR", "9"))
BUSINESS_CLOSE_HOUR = int(os.getenv("BUSINESS_CLOSE_HOUR", "17"))
LUNCH_BREAK_START_HOUR = int(os.getenv("LUNCH_BREAK_START_HOUR", "12"))
LUNCH_BREAK_END_HOUR = int(os.getenv("LUNCH_BREAK_END_HOUR", "13"))
SLOT_INTERVAL_MINUTES = int(os.getenv("SLOT_INTERVAL_MINUTES", "30"))
FILTER_PAST_TIME_SLOTS = _get_bool(os.getenv("FILTER_PAST_TIME_SLOTS"), default=True)

EMAIL_USER = os.getenv("EMAIL_USER", "")
EMAIL_PASSWORD = os.getenv("EMAIL_PASSWORD", "")
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000")

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:3000"])

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "change-me")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))
ADMIN_COOKIE_NAME = os.getenv("ADMIN_COOKIE_NAME", "admin_token")
ADMIN_COOKIE_SECURE = _get_bool(os.getenv("ADMIN_COOKIE_SECURE"), default=APP_ENV.lower() == "production")


def validate_runtime_config() -> None:
    if APP_ENV.lower() != "production":
        return
    if JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if ADMIN_PASSWORD == "change-me":
        raise RuntimeError("ADMIN_PASSWORD must be set in production.")
