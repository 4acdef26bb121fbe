from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .models import BookingStatus, EquipmentStatus, Role
from .validators import as_utc, bounded_text, normalize_phone, person_name

_SELF_REGISTER_ROLES = {Role.CLIENT.value, Role.OPERATOR.value}

# closed set of scalar types for the equipment specification bag
SpecValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr]


class CamelModel(BaseModel):
    """Accepts both snake_case and the camelCase keys the web client sends."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---- Auth / profiles ----

class Register(BaseModel):
    email: str
    password: str = Field(min_length=8, max_length=72)
    name: str
    phone: Optional[str] = None
    role: str = Role.CLIENT.value

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Invalid email address")
        return v

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return person_name(v)

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v) if v else None

    @field_validator("role")
    @classmethod
    def _role(cls, v: str) -> str:
        rr = (v or "").strip().lower()
        if rr not in _SELF_REGISTER_ROLES:
            raise ValueError(f"Invalid role: {v}. Allowed: {sorted(_SELF_REGISTER_ROLES)}")
        return rr


class Login(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return (v or "").strip().lower()


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=2000)
    location: Optional[str] = Field(default=None, max_length=200)

    @field_validator("name")
    @classmethod
    def _name(cls, v: Optional[str]) -> Optional[str]:
        return person_name(v) if v is not None else None

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v) if v else None


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: str
    bio: Optional[str] = None
    location: Optional[str] = None
    rating: float
    total_reviews: int


class PublicProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    role: str
    rating: float
    total_reviews: int


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    profile: ProfileOut


# ---- Equipment ----

class EquipmentCreate(CamelModel):
    name: str = Field(min_length=2, max_length=200)
    category: str = Field(min_length=2, max_length=100)
    type: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=5000)
    daily_rate: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    city: str = Field(min_length=2, max_length=100)
    address: str = Field(min_length=5, max_length=500)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    specifications: Dict[str, SpecValue] = Field(default_factory=dict)
    images: List[str] = Field(default_factory=list, max_length=20)

    @model_validator(mode="after")
    def _coordinates_pair(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be provided together")
        return self


class EquipmentUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    category: Optional[str] = Field(default=None, min_length=2, max_length=100)
    type: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=5000)
    daily_rate: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    city: Optional[str] = Field(default=None, min_length=2, max_length=100)
    address: Optional[str] = Field(default=None, min_length=5, max_length=500)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    status: Optional[EquipmentStatus] = None
    specifications: Optional[Dict[str, SpecValue]] = None
    images: Optional[List[str]] = Field(default=None, max_length=20)


class OwnerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    rating: float
    total_reviews: int


class EquipmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    name: str
    category: str
    type: str
    description: Optional[str] = None
    daily_rate: float
    city: str
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: str
    specifications: Dict[str, SpecValue] = Field(default_factory=dict)
    images: List[str] = Field(default_factory=list)
    owner: Optional[OwnerOut] = None
    distance_km: Optional[float] = None


class CatalogFilters(BaseModel):
    category: Optional[str] = None
    city: Optional[str] = None
    min_price: Optional[Decimal] = Field(default=None, ge=0)
    max_price: Optional[Decimal] = Field(default=None, ge=0)
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    radius: Optional[float] = Field(default=None, gt=0, le=20000)
    available: Optional[bool] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)

    @model_validator(mode="after")
    def _consistent(self):
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("min_price cannot be greater than max_price")
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be provided together")
        return self

    @property
    def geo(self) -> bool:
        return self.lat is not None and self.lng is not None


# ---- Bookings ----

class CreateBookingRequest(CamelModel):
    equipment_id: str
    start_time: datetime
    end_time: datetime
    duration_hours: int = Field(ge=1, le=720)
    client_name: str
    client_phone: str
    pickup_address: str
    delivery_address: str
    special_requirements: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator("client_name")
    @classmethod
    def _name(cls, v: str) -> str:
        return person_name(v)

    @field_validator("client_phone")
    @classmethod
    def _phone(cls, v: str) -> str:
        return normalize_phone(v)

    @field_validator("pickup_address", "delivery_address")
    @classmethod
    def _address(cls, v: str) -> str:
        return bounded_text(v, 10, 500, "Address")

    @field_validator("special_requirements")
    @classmethod
    def _requirements(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if len(v) > 2000:
            raise ValueError("Special requirements must be at most 2000 characters")
        return v or None

    @model_validator(mode="after")
    def _window(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class UpdateBookingStatusRequest(CamelModel):
    status: str
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("status")
    @classmethod
    def _status(cls, v: str) -> str:
        vv = (v or "").strip().lower()
        allowed = [s.value for s in BookingStatus]
        if vv not in allowed:
            raise ValueError(f"Invalid booking status: {v}. Allowed: {allowed}")
        return vv


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_id: str
    razorpay_order_id: str
    razorpay_payment_id: Optional[str] = None
    amount: float
    currency: str
    status: str
    payment_date: Optional[datetime] = None
    created_at: datetime


class EquipmentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: str
    category: str
    images: List[str] = Field(default_factory=list)
    daily_rate: float


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    equipment_id: str
    client_id: str
    operator_id: str
    start_time: datetime
    end_time: datetime
    duration_hours: int
    base_price: float
    gst_amount: float
    total_price: float
    advance_amount: float
    balance_amount: float
    client_name: str
    client_phone: str
    pickup_address: str
    delivery_address: str
    special_requirements: Optional[str] = None
    notes: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime


class BookingDetailOut(BookingOut):
    equipment: Optional[EquipmentSummary] = None
    payments: List[PaymentOut] = Field(default_factory=list)


# ---- Payments ----

class CreatePaymentOrderRequest(CamelModel):
    booking_id: str
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def _currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else None


class VerifyPaymentRequest(BaseModel):
    razorpay_payment_id: str = Field(min_length=1, max_length=100)
    razorpay_order_id: str = Field(min_length=1, max_length=100)
    razorpay_signature: str = Field(min_length=1, max_length=200)
    booking_id: str = Field(min_length=1)


# ---- Notifications ----

class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    message: str
    type: str
    data: dict
    is_read: bool
    created_at: datetime


# ---- Reviews ----

class CreateReviewRequest(CamelModel):
    booking_id: str
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=2000)


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_id: str
    equipment_id: str
    operator_id: str
    rating: int
    comment: Optional[str] = None
    reviewer_name: Optional[str] = None
    created_at: datetime


# ---- Custom quotes ----

class CreateQuoteRequest(CamelModel):
    name: str
    phone: str
    email: Optional[str] = None
    equipment_type: str = Field(min_length=2, max_length=100)
    project_description: str = Field(min_length=10, max_length=5000)
    location: str = Field(min_length=2, max_length=200)
    duration: str = Field(min_length=1, max_length=100)
    budget_range: Optional[str] = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return person_name(v)

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str) -> str:
        return normalize_phone(v)


class QuoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: Optional[str] = None
    name: str
    phone: str
    email: Optional[str] = None
    equipment_type: str
    project_description: str
    location: str
    duration: str
    budget_range: Optional[str] = None
    status: str
    created_at: datetime
