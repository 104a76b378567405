import os

from dotenv import load_dotenv

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(BASE_DIR, ".env"))


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored beside the code as chargehive_bookings.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "chargehive_bookings.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sibling services
    AUTH_SERVICE_URL = os.getenv("AUTH_SERVICE_URL", "http://localhost:8081")
    STATION_SERVICE_URL = os.getenv("STATION_SERVICE_URL", "http://localhost:8082")
    EXTERNAL_TIMEOUT_SECONDS = float(os.getenv("EXTERNAL_TIMEOUT_SECONDS", "5"))

    # Pricing
    BASE_RATE_PER_HOUR = float(os.getenv("BASE_RATE_PER_HOUR", "2.50"))
    POWER_MULTIPLIER = float(os.getenv("POWER_MULTIPLIER", "0.10"))  # per kW per hour

    # Booking window policy (minutes)
    MIN_BOOKING_MINUTES = int(os.getenv("MIN_BOOKING_MINUTES", "30"))
    MAX_BOOKING_MINUTES = int(os.getenv("MAX_BOOKING_MINUTES", "1440"))

    # Expired-booking sweep
    RECONCILER_ENABLED = _env_bool("RECONCILER_ENABLED", "true")
    RECONCILE_INTERVAL_SECONDS = int(os.getenv("RECONCILE_INTERVAL_SECONDS", "60"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False
