import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from . import config
from .clients import cb_razorpay
from .db import create_tables, get_db
from .errors import register_error_handlers
from .logging_config import setup_logging
from .middleware import RateLimitMiddleware, RequestLoggingMiddleware
from .models import Role
from .rabbitmq import publisher
from .rbac import require_profile_role
from .redis_client import redis_client
from .routes import auth, bookings, equipment, notifications, payments, quotes, reviews
from .security import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "System", "description": "Health and operational endpoints."},
    {"name": "Auth", "description": "Accounts, sessions and profiles."},
    {"name": "Equipment", "description": "Equipment catalog and availability."},
    {"name": "Bookings", "description": "Booking lifecycle."},
    {"name": "Payments", "description": "Razorpay orders and verification."},
    {"name": "Notifications", "description": "In-app notification inbox."},
    {"name": "Reviews", "description": "Operator reviews for completed bookings."},
    {"name": "Quotes", "description": "Custom quote requests."},
]

CORS_HEADERS = ["authorization", "x-client-info", "apikey", "content-type", "x-request-id"]

app = FastAPI(title="HeavyRent API", openapi_tags=OPENAPI_TAGS)

app.add_middleware(RateLimitMiddleware, redis_client=redis_client, max_per_minute=config.RATE_LIMIT_PER_MINUTE)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=CORS_HEADERS,
    expose_headers=["X-Request-Id"],
)

register_error_handlers(app)

app.include_router(auth.router, tags=["Auth"])
app.include_router(equipment.router, tags=["Equipment"])
app.include_router(bookings.router, tags=["Bookings"])
app.include_router(payments.router, tags=["Payments"])
app.include_router(notifications.router, tags=["Notifications"])
app.include_router(reviews.router, tags=["Reviews"])
app.include_router(quotes.router, tags=["Quotes"])


@app.on_event("startup")
async def startup():
    setup_logging(config.LOG_LEVEL)

    if config.AUTO_CREATE_TABLES:
        await create_tables()

    try:
        await publisher.connect()
    except Exception:
        logger.warning("event publishing unavailable at startup, will retry on publish")

    logger.info(
        "%s started (events=%s, redis=%s)",
        config.SERVICE_NAME, publisher.enabled, redis_client is not None,
    )


@app.on_event("shutdown")
async def shutdown():
    await publisher.close()
    if redis_client is not None:
        await redis_client.aclose()


@app.get("/health", tags=["System"])
async def health():
    return {"status": "ok", "service": config.SERVICE_NAME, "events_enabled": publisher.enabled}


@app.get("/system/breakers", tags=["System"])
async def breakers_status(user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await require_profile_role(db, user.profile_id, [Role.ADMIN])
    return {"success": True, "breakers": [await cb_razorpay.status()]}
