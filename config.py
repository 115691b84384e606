import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _int_or_none(value):
    return int(value) if value not in (None, "") else None


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as mentormatch.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "mentormatch.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "mentormatch_session"
    CSRF_COOKIE_NAME = "csrf_token"
    CSRF_HEADER_NAME = "X-CSRF-Token"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # Booking: how long a pending reservation holds its seat while unpaid
    BOOKING_TTL_SECONDS = int(os.getenv("BOOKING_TTL_SECONDS", str(24 * 60 * 60)))
    # None = keep drawing codes until a free one turns up
    BOOKING_CODE_MAX_ATTEMPTS = _int_or_none(os.getenv("BOOKING_CODE_MAX_ATTEMPTS"))
    BOOKING_INTEGRITY_RETRIES = int(os.getenv("BOOKING_INTEGRITY_RETRIES", "3"))

    # Background jobs
    SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
    EXPIRY_SWEEP_INTERVAL_SECONDS = int(os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "60"))
    STATUS_RECONCILE_INTERVAL_SECONDS = int(os.getenv("STATUS_RECONCILE_INTERVAL_SECONDS", "5"))

    # create_all at startup instead of running migrations (tests, local demos)
    CREATE_TABLES = os.getenv("CREATE_TABLES", "false").lower() == "true"

    # Basic app settings
    DEBUG = False
