from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..schemas import (
    BookingDetailOut,
    BookingOut,
    CreateBookingRequest,
    EquipmentSummary,
    PaymentOut,
    UpdateBookingStatusRequest,
)
from ..security import CurrentUser, get_current_user
from ..services import bookings
from ..services.bookings import BookingDetail

router = APIRouter()


def booking_detail_out(detail: BookingDetail) -> BookingDetailOut:
    out = BookingDetailOut.model_validate(detail.booking)
    if detail.equipment is not None:
        out.equipment = EquipmentSummary.model_validate(detail.equipment)
    out.payments = [PaymentOut.model_validate(p) for p in detail.payments]
    return out


@router.post("/bookings")
async def create_booking(
    data: CreateBookingRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await bookings.create_booking(db, user, data)
    return {
        "success": True,
        "booking": BookingOut.model_validate(booking),
        "message": "Booking created successfully",
    }


@router.get("/bookings")
async def list_bookings(
    role: str = Query("client"),
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    details, total = await bookings.list_user_bookings(db, user, view=role, status=status, page=page, limit=limit)
    return {
        "success": True,
        "bookings": [booking_detail_out(d) for d in details],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "hasMore": total > page * limit,
        },
    }


@router.get("/bookings/{booking_id}")
async def get_booking(
    booking_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    detail = await bookings.get_booking_detail(db, user, booking_id)
    return {"success": True, "booking": booking_detail_out(detail)}


@router.patch("/bookings/{booking_id}/status")
async def update_booking_status(
    booking_id: str,
    data: UpdateBookingStatusRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await bookings.update_booking_status(db, user, booking_id, data.status, data.notes)
    return {
        "success": True,
        "booking": BookingOut.model_validate(booking),
        "message": f"Booking status updated to {booking.status}",
    }
