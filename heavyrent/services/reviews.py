import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..models import Booking, BookingStatus, Profile, Review
from ..schemas import CreateReviewRequest
from ..security import CurrentUser

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def running_mean(current: Decimal, count: int, new_rating: int) -> Decimal:
    total = Decimal(current) * count + new_rating
    return (total / (count + 1)).quantize(CENTS, rounding=ROUND_HALF_UP)


async def create_review(db: AsyncSession, caller: CurrentUser, data: CreateReviewRequest) -> Review:
    res = await db.execute(select(Booking).where(Booking.id == data.booking_id))
    booking = res.scalar_one_or_none()
    if not booking:
        raise NotFoundError("Booking not found")

    if booking.client_id != caller.profile_id:
        raise ForbiddenError("Only the client of this booking can review it")

    if booking.status != BookingStatus.COMPLETED.value:
        raise ConflictError("Only completed bookings can be reviewed")

    existing = await db.execute(select(Review.id).where(Review.booking_id == booking.id))
    if existing.first():
        raise ConflictError("This booking has already been reviewed")

    res = await db.execute(
        select(Profile).where(Profile.id == booking.operator_id).with_for_update()
    )
    operator = res.scalar_one()

    review = Review(
        booking_id=booking.id,
        equipment_id=booking.equipment_id,
        reviewer_id=caller.profile_id,
        operator_id=booking.operator_id,
        rating=data.rating,
        comment=(data.comment or "").strip() or None,
    )
    db.add(review)

    operator.rating = running_mean(operator.rating or 0, operator.total_reviews or 0, data.rating)
    operator.total_reviews = (operator.total_reviews or 0) + 1

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("This booking has already been reviewed")

    logger.info("review %s stored for operator %s", review.id, operator.id)
    return review


async def list_reviews(
    db: AsyncSession, equipment_id: str | None = None, operator_id: str | None = None
) -> list[tuple[Review, str]]:
    if not equipment_id and not operator_id:
        raise ValidationError(
            "equipment_id or operator_id is required",
            details=[{"field": "equipment_id", "message": "equipment_id or operator_id is required"}],
        )

    stmt = select(Review, Profile.name).join(Profile, Profile.id == Review.reviewer_id)
    if equipment_id:
        stmt = stmt.where(Review.equipment_id == equipment_id)
    elif operator_id:
        stmt = stmt.where(Review.operator_id == operator_id)

    res = await db.execute(stmt.order_by(Review.created_at.desc()))
    return [(review, name) for review, name in res.all()]
