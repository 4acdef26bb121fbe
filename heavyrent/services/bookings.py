import logging
import math
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..models import (
    Booking,
    BookingStatus,
    Equipment,
    EquipmentStatus,
    NotificationType,
    Payment,
    Role,
    utcnow,
)
from ..notifications import Outgoing, notify
from ..pricing import compute_price
from ..rabbitmq import publisher
from ..rbac import require_role, resolve_role
from ..schemas import CreateBookingRequest
from ..security import CurrentUser

logger = logging.getLogger(__name__)

OVERLAP_MESSAGE = "Equipment is already booked for the selected time period"
OVERLAP_CONSTRAINT = "ex_bookings_no_overlap"
EXCLUSION_VIOLATION = "23P01"

# operator-driven forward moves
FORWARD_TRANSITIONS = {
    BookingStatus.PENDING: BookingStatus.CONFIRMED,
    BookingStatus.CONFIRMED: BookingStatus.ACTIVE,
    BookingStatus.ACTIVE: BookingStatus.COMPLETED,
}
CANCELLABLE = {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.ACTIVE}
TERMINAL = {BookingStatus.COMPLETED, BookingStatus.CANCELLED}
BLOCKED_EQUIPMENT = {EquipmentStatus.MAINTENANCE.value, EquipmentStatus.UNAVAILABLE.value}


@dataclass
class BookingDetail:
    booking: Booking
    equipment: Equipment | None = None
    payments: list[Payment] = field(default_factory=list)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


async def find_conflicts(
    db: AsyncSession,
    equipment_id: str,
    start_time: datetime,
    end_time: datetime,
    exclude_booking_id: str | None = None,
) -> list[Booking]:
    """Live bookings whose [start, end) window intersects the requested one."""
    stmt = select(Booking).where(
        Booking.equipment_id == equipment_id,
        Booking.status != BookingStatus.CANCELLED.value,
        Booking.start_time < end_time,
        Booking.end_time > start_time,
    )
    if exclude_booking_id:
        stmt = stmt.where(Booking.id != exclude_booking_id)
    res = await db.execute(stmt.order_by(Booking.start_time))
    return list(res.scalars().all())


def is_overlap_violation(exc: IntegrityError) -> bool:
    """True when the PostgreSQL exclusion constraint rejected a concurrent overlapping booking."""
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    return code == EXCLUSION_VIOLATION or OVERLAP_CONSTRAINT in str(orig)


def _field_error(field_name: str, message: str) -> ValidationError:
    return ValidationError(message, details=[{"field": field_name, "message": message}])


async def create_booking(
    db: AsyncSession,
    caller: CurrentUser,
    data: CreateBookingRequest,
    now: datetime | None = None,
) -> Booking:
    now = now or utcnow()

    if data.start_time <= now:
        raise _field_error("start_time", "Start time must be in the future")

    window_hours = math.ceil((data.end_time - data.start_time).total_seconds() / 3600)
    if data.duration_hours > window_hours:
        raise _field_error("duration_hours", "Duration cannot exceed the selected time window")

    role = await resolve_role(db, caller.profile_id)
    require_role(role, [Role.CLIENT, Role.ADMIN])

    # row lock serialises concurrent bookers of the same equipment (no-op on SQLite)
    res = await db.execute(
        select(Equipment).where(Equipment.id == data.equipment_id).with_for_update()
    )
    equipment = res.scalar_one_or_none()
    if not equipment:
        raise NotFoundError("Equipment not found")

    if equipment.owner_id == caller.profile_id:
        await db.rollback()
        raise ForbiddenError("You cannot book your own equipment")

    if equipment.status in BLOCKED_EQUIPMENT:
        await db.rollback()
        raise ConflictError("Equipment is not available for booking")

    conflicts = await find_conflicts(db, equipment.id, data.start_time, data.end_time)
    if conflicts:
        await db.rollback()
        logger.info("booking rejected for equipment %s: overlaps %s", equipment.id, conflicts[0].id)
        raise ConflictError(OVERLAP_MESSAGE)

    price = compute_price(equipment.daily_rate, data.duration_hours)

    booking = Booking(
        equipment_id=equipment.id,
        client_id=caller.profile_id,
        operator_id=equipment.owner_id,
        start_time=data.start_time,
        end_time=data.end_time,
        duration_hours=data.duration_hours,
        base_price=price.base_price,
        gst_amount=price.gst_amount,
        total_price=price.total_price,
        advance_amount=price.advance_amount,
        balance_amount=price.balance_amount,
        client_name=data.client_name,
        client_phone=data.client_phone,
        pickup_address=data.pickup_address,
        delivery_address=data.delivery_address,
        special_requirements=data.special_requirements,
        status=BookingStatus.PENDING.value,
    )
    db.add(booking)

    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if is_overlap_violation(e):
            raise ConflictError(OVERLAP_MESSAGE)
        raise

    logger.info("booking %s created for equipment %s", booking.id, equipment.id)

    await publisher.publish_event(
        "booking.created",
        {
            "booking_id": booking.id,
            "equipment_id": equipment.id,
            "client_id": booking.client_id,
            "operator_id": booking.operator_id,
            "start_time": booking.start_time.isoformat(),
            "end_time": booking.end_time.isoformat(),
        },
    )
    await notify(
        db,
        Outgoing(
            recipient_id=equipment.owner_id,
            title="New Booking Request",
            message=f"New booking request for {equipment.name} from {booking.client_name}",
            type=NotificationType.BOOKING_REQUEST,
            data={"booking_id": booking.id},
        ),
    )
    return booking


def check_transition(
    current: BookingStatus, target: BookingStatus, is_operator: bool, is_client: bool
) -> None:
    """Raise ForbiddenError unless the caller may move a booking from current to target."""
    if not is_operator and not is_client:
        raise ForbiddenError("Unauthorized to update this booking")

    if current in TERMINAL:
        raise ForbiddenError(f"Booking is already {current.value} and cannot be changed")

    if target == BookingStatus.CANCELLED:
        if current in CANCELLABLE:
            return
        raise ForbiddenError(f"Booking cannot be cancelled from {current.value}")

    if not is_operator:
        raise ForbiddenError("Clients can only cancel bookings")

    if FORWARD_TRANSITIONS.get(current) != target:
        raise ForbiddenError(f"Cannot move booking from {current.value} to {target.value}")


def _status_notification(
    booking: Booking, equipment_name: str, target: BookingStatus, by_client: bool
) -> Outgoing | None:
    data = {"booking_id": booking.id}

    if target == BookingStatus.CONFIRMED:
        return Outgoing(
            booking.client_id,
            "Booking Confirmed",
            f"Your booking for {equipment_name} has been confirmed by the operator.",
            NotificationType.BOOKING_CONFIRMED,
            data,
        )
    if target == BookingStatus.ACTIVE:
        return Outgoing(
            booking.client_id,
            "Equipment Active",
            f"Your booking for {equipment_name} is now active.",
            NotificationType.BOOKING_ACTIVE,
            data,
        )
    if target == BookingStatus.COMPLETED:
        return Outgoing(
            booking.client_id,
            "Booking Completed",
            f"Your booking for {equipment_name} has been completed. Please rate your experience.",
            NotificationType.BOOKING_COMPLETED,
            data,
        )
    if target == BookingStatus.CANCELLED:
        if by_client:
            return Outgoing(
                booking.operator_id,
                "Booking Cancelled",
                f"Booking for {equipment_name} has been cancelled by the client.",
                NotificationType.BOOKING_CANCELLED,
                data,
            )
        return Outgoing(
            booking.client_id,
            "Booking Cancelled",
            f"Your booking for {equipment_name} has been cancelled by the operator.",
            NotificationType.BOOKING_CANCELLED,
            data,
        )
    return None


async def update_booking_status(
    db: AsyncSession,
    caller: CurrentUser,
    booking_id: str,
    status: str,
    notes: str | None = None,
) -> Booking:
    try:
        target = BookingStatus(status)
    except ValueError:
        raise _field_error("status", f"Invalid booking status: {status}")

    res = await db.execute(
        select(Booking, Equipment.name)
        .join(Equipment, Equipment.id == Booking.equipment_id)
        .where(Booking.id == booking_id)
        .with_for_update(of=Booking)
    )
    row = res.one_or_none()
    if not row:
        raise NotFoundError("Booking not found")
    booking, equipment_name = row

    is_operator = booking.operator_id == caller.profile_id
    is_client = booking.client_id == caller.profile_id
    current = BookingStatus(booking.status)

    check_transition(current, target, is_operator, is_client)

    booking.status = target.value
    if notes and notes.strip():
        booking.notes = f"{booking.notes}\n{notes.strip()}" if booking.notes else notes.strip()
    await db.commit()

    logger.info("booking %s moved %s -> %s", booking.id, current.value, target.value)

    await publisher.publish_event(
        "booking.status_changed",
        {"booking_id": booking.id, "from": current.value, "to": target.value},
    )
    outgoing = _status_notification(booking, equipment_name, target, by_client=is_client and not is_operator)
    if outgoing:
        await notify(db, outgoing)
    return booking


async def get_booking_detail(db: AsyncSession, caller: CurrentUser, booking_id: str) -> BookingDetail:
    res = await db.execute(
        select(Booking, Equipment)
        .join(Equipment, Equipment.id == Booking.equipment_id)
        .where(Booking.id == booking_id)
    )
    row = res.one_or_none()
    if not row:
        raise NotFoundError("Booking not found")
    booking, equipment = row

    if caller.profile_id not in (booking.client_id, booking.operator_id):
        role = await resolve_role(db, caller.profile_id)
        if role != Role.ADMIN:
            raise ForbiddenError("Unauthorized to view this booking")

    payments = await db.execute(
        select(Payment).where(Payment.booking_id == booking.id).order_by(Payment.created_at)
    )
    return BookingDetail(booking=booking, equipment=equipment, payments=list(payments.scalars().all()))


async def list_user_bookings(
    db: AsyncSession,
    caller: CurrentUser,
    view: str = "client",
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[BookingDetail], int]:
    if view not in ("client", "operator"):
        raise _field_error("role", "role must be client or operator")
    if status is not None and status not in {s.value for s in BookingStatus}:
        raise _field_error("status", f"Invalid booking status: {status}")

    party = Booking.client_id if view == "client" else Booking.operator_id
    stmt = (
        select(Booking, Equipment)
        .join(Equipment, Equipment.id == Booking.equipment_id)
        .where(party == caller.profile_id)
    )
    if status:
        stmt = stmt.where(Booking.status == status)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    res = await db.execute(
        stmt.order_by(Booking.created_at.desc(), Booking.id).offset((page - 1) * limit).limit(limit)
    )
    rows = res.all()

    by_booking: dict[str, list[Payment]] = {}
    ids = [b.id for b, _ in rows]
    if ids:
        pres = await db.execute(
            select(Payment).where(Payment.booking_id.in_(ids)).order_by(Payment.created_at)
        )
        for p in pres.scalars().all():
            by_booking.setdefault(p.booking_id, []).append(p)

    details = [
        BookingDetail(booking=b, equipment=eq, payments=by_booking.get(b.id, []))
        for b, eq in rows
    ]
    return details, total
