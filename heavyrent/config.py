import os
from decimal import Decimal


def _flag(name: str, default: str = "false") -> bool:
    return (os.getenv(name) or default).strip().lower() in {"1", "true", "yes"}


SERVICE_NAME = "heavyrent-api"

DATABASE_URL = os.getenv("DATABASE_URL") or "sqlite+aiosqlite:///./heavyrent.db"
DB_ECHO = _flag("DB_ECHO")
AUTO_CREATE_TABLES = _flag("AUTO_CREATE_TABLES")

JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM") or "HS256"
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES") or "720")

if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is not set")

# Gateway credentials are checked per request, a missing secret only fails payment calls.
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")
RAZORPAY_API_URL = os.getenv("RAZORPAY_API_URL") or "https://api.razorpay.com/v1"
GATEWAY_TIMEOUT_SECONDS = float(os.getenv("GATEWAY_TIMEOUT_SECONDS") or "10")

GST_RATE = Decimal(os.getenv("GST_RATE") or "0.18")
ADVANCE_RATE = Decimal(os.getenv("ADVANCE_RATE") or "0.30")
MAX_PAYMENT_AMOUNT = Decimal(os.getenv("MAX_PAYMENT_AMOUNT") or "10000000")
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY") or "INR"

PHONE_LOCALE = (os.getenv("PHONE_LOCALE") or "IN").upper()
DEFAULT_SEARCH_RADIUS_KM = float(os.getenv("DEFAULT_SEARCH_RADIUS_KM") or "50")

REDIS_URL = os.getenv("REDIS_URL")
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE") or "120")

RABBIT_URL = os.getenv("RABBIT_URL")

CORS_ORIGINS = [o.strip() for o in (os.getenv("CORS_ORIGINS") or "*").split(",") if o.strip()]

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()
