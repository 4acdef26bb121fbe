import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
)

from .db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that is always stored and returned in UTC.

    SQLite drops tzinfo on the way in, so naive values read back are
    re-labelled as UTC. Every value is normalised before binding, which keeps
    the interval comparisons in SQL consistent on both backends.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


Money = Numeric(12, 2)


class Role(str, enum.Enum):
    CLIENT = "client"
    OPERATOR = "operator"
    ADMIN = "admin"


class EquipmentStatus(str, enum.Enum):
    AVAILABLE = "available"
    RENTED = "rented"
    MAINTENANCE = "maintenance"
    UNAVAILABLE = "unavailable"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class NotificationType(str, enum.Enum):
    BOOKING_REQUEST = "booking_request"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_ACTIVE = "booking_active"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_CANCELLED = "booking_cancelled"
    PAYMENT_SUCCESS = "payment_success"


class AuthUser(Base):
    __tablename__ = "auth_users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String, unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class AuthSession(Base):
    __tablename__ = "auth_sessions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("auth_users.id"), nullable=False, index=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    expires_at = Column(UTCDateTime, nullable=False)
    revoked_at = Column(UTCDateTime, nullable=True)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("auth_users.id"), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String(20), nullable=True)
    role = Column(String(20), nullable=False, default=Role.CLIENT.value, index=True)
    bio = Column(Text, nullable=True)
    location = Column(String(200), nullable=True)
    rating = Column(Numeric(3, 2), nullable=False, default=0)
    total_reviews = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Equipment(Base):
    __tablename__ = "equipment"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    type = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    daily_rate = Column(Money, nullable=False)
    city = Column(String(100), nullable=False, index=True)
    address = Column(String(500), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    status = Column(String(20), nullable=False, default=EquipmentStatus.AVAILABLE.value, index=True)
    specifications = Column(JSON, nullable=False, default=dict)
    images = Column(JSON, nullable=False, default=list)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_uuid)
    equipment_id = Column(String(36), ForeignKey("equipment.id"), nullable=False)
    client_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    operator_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)

    # half-open [start_time, end_time)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    duration_hours = Column(Integer, nullable=False)

    base_price = Column(Money, nullable=False)
    gst_amount = Column(Money, nullable=False)
    total_price = Column(Money, nullable=False)
    advance_amount = Column(Money, nullable=False)
    balance_amount = Column(Money, nullable=False)

    # snapshot at booking time, not joined from the profile
    client_name = Column(String(100), nullable=False)
    client_phone = Column(String(20), nullable=False)
    pickup_address = Column(String(500), nullable=False)
    delivery_address = Column(String(500), nullable=False)
    special_requirements = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_bookings_equipment_window", "equipment_id", "start_time", "end_time"),
        CheckConstraint("end_time > start_time", name="ck_bookings_window"),
    )


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    razorpay_order_id = Column(String(100), unique=True, nullable=False)
    razorpay_payment_id = Column(String(100), nullable=True)
    amount = Column(Money, nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    payment_date = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    recipient_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(40), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class Review(Base):
    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True, default=_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id"), unique=True, nullable=False)
    equipment_id = Column(String(36), ForeignKey("equipment.id"), nullable=False, index=True)
    reviewer_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    operator_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),)


class CustomQuote(Base):
    __tablename__ = "custom_quotes"

    id = Column(String(36), primary_key=True, default=_uuid)
    client_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False)
    email = Column(String, nullable=True)
    equipment_type = Column(String(100), nullable=False)
    project_description = Column(Text, nullable=False)
    location = Column(String(200), nullable=False)
    duration = Column(String(100), nullable=False)
    budget_range = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
