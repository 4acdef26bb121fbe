"""
Payment order creation and gateway signature verification.

The verification path is the only writer of a payment's terminal state and
the only place a booking is confirmed because money actually moved.
"""
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import config
from ..clients import RazorpayClient
from ..errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    SignatureMismatchError,
    ValidationError,
)
from ..models import (
    Booking,
    BookingStatus,
    Equipment,
    NotificationType,
    Payment,
    PaymentStatus,
    utcnow,
)
from ..notifications import Outgoing, notify
from ..pricing import to_minor_units
from ..rabbitmq import publisher
from ..schemas import CreatePaymentOrderRequest, VerifyPaymentRequest
from ..security import CurrentUser

logger = logging.getLogger(__name__)

UNPAYABLE = {BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value}


@dataclass
class PaymentOrder:
    order: dict
    payment: Payment
    key: str


@dataclass
class VerificationResult:
    payment: Payment
    booking: Booking
    already_verified: bool = False


def _receipt(booking_id: str) -> str:
    # Razorpay caps receipts at 40 characters
    return f"booking_{booking_id.replace('-', '')}"[:40]


def _payment_notifications(
    booking: Booking, payment: Payment, equipment_name: str, confirmed_now: bool
) -> list[Outgoing]:
    data = {"booking_id": booking.id, "payment_id": payment.id}
    if confirmed_now:
        return [
            Outgoing(
                booking.client_id,
                "Payment Successful",
                f"Payment confirmed for {equipment_name}. Your booking is now confirmed.",
                NotificationType.PAYMENT_SUCCESS,
                data,
            ),
            Outgoing(
                booking.operator_id,
                "Booking Confirmed",
                f"Payment received for {equipment_name}. Booking is now confirmed.",
                NotificationType.BOOKING_CONFIRMED,
                data,
            ),
        ]

    # operator had already moved the booking on; only the money is news
    return [
        Outgoing(
            booking.client_id,
            "Payment Successful",
            f"Payment of {payment.amount} {payment.currency} received for {equipment_name}.",
            NotificationType.PAYMENT_SUCCESS,
            data,
        ),
        Outgoing(
            booking.operator_id,
            "Payment Received",
            f"The client paid {payment.amount} {payment.currency} for {equipment_name}.",
            NotificationType.PAYMENT_SUCCESS,
            data,
        ),
    ]


async def create_payment_order(
    db: AsyncSession,
    caller: CurrentUser,
    data: CreatePaymentOrderRequest,
    gateway: RazorpayClient,
) -> PaymentOrder:
    if data.amount > config.MAX_PAYMENT_AMOUNT:
        raise ValidationError(
            "Amount exceeds the maximum allowed for a single payment",
            details=[{"field": "amount", "message": f"Must be at most {config.MAX_PAYMENT_AMOUNT}"}],
        )

    res = await db.execute(
        select(Booking, Equipment.name)
        .join(Equipment, Equipment.id == Booking.equipment_id)
        .where(Booking.id == data.booking_id)
    )
    row = res.one_or_none()
    if not row:
        raise NotFoundError("Booking not found")
    booking, equipment_name = row

    if booking.client_id != caller.profile_id:
        raise ForbiddenError("Unauthorized to pay for this booking")

    if booking.status in UNPAYABLE:
        raise ConflictError(f"Booking is {booking.status} and cannot be paid")

    if data.amount > booking.total_price:
        raise ValidationError(
            "Amount exceeds the booking total",
            details=[{"field": "amount", "message": f"Must be at most {booking.total_price}"}],
        )

    paid = await db.execute(
        select(Payment.id).where(
            Payment.booking_id == booking.id, Payment.status == PaymentStatus.PAID.value
        )
    )
    if paid.first():
        raise ConflictError("Booking has already been paid")

    currency = data.currency or config.DEFAULT_CURRENCY

    order = await gateway.create_order(
        amount_minor=to_minor_units(data.amount),
        currency=currency,
        receipt=_receipt(booking.id),
        notes={
            "booking_id": booking.id,
            "equipment_name": equipment_name,
            "client_name": booking.client_name,
        },
    )

    payment = Payment(
        booking_id=booking.id,
        razorpay_order_id=order["id"],
        amount=data.amount,
        currency=currency,
        status=PaymentStatus.PENDING.value,
    )
    db.add(payment)
    await db.commit()

    logger.info("payment order %s created for booking %s", payment.razorpay_order_id, booking.id)
    await publisher.publish_event(
        "payment.order_created",
        {"booking_id": booking.id, "payment_id": payment.id, "order_id": payment.razorpay_order_id},
    )
    return PaymentOrder(order=order, payment=payment, key=gateway.key_id)


async def verify_payment(
    db: AsyncSession,
    caller: CurrentUser,
    data: VerifyPaymentRequest,
    gateway: RazorpayClient,
) -> VerificationResult:
    """Check the checkout callback signature, then mark the payment paid and confirm the booking.

    Repeating a successful verification returns the stored state with
    ``already_verified`` set and emits nothing.
    """
    res = await db.execute(
        select(Payment)
        .where(Payment.razorpay_order_id == data.razorpay_order_id)
        .with_for_update()
    )
    payment = res.scalar_one_or_none()
    if not payment:
        raise NotFoundError("Payment record not found")

    if payment.booking_id != data.booking_id:
        raise ValidationError(
            "Order does not belong to this booking",
            details=[{"field": "booking_id", "message": "Order does not belong to this booking"}],
        )

    res = await db.execute(
        select(Booking, Equipment.name)
        .join(Equipment, Equipment.id == Booking.equipment_id)
        .where(Booking.id == data.booking_id)
        .with_for_update(of=Booking)
    )
    row = res.one_or_none()
    if not row:
        raise NotFoundError("Booking not found")
    booking, equipment_name = row

    if booking.client_id != caller.profile_id:
        raise ForbiddenError("Unauthorized to verify payment for this booking")

    if not gateway.verify_signature(
        data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature
    ):
        await db.rollback()
        logger.warning("signature mismatch for order %s booking %s", data.razorpay_order_id, booking.id)
        raise SignatureMismatchError("Payment verification failed")

    if payment.status == PaymentStatus.PAID.value:
        if payment.razorpay_payment_id == data.razorpay_payment_id:
            return VerificationResult(payment=payment, booking=booking, already_verified=True)
        raise ConflictError("Order has already been paid with a different payment")

    if payment.status != PaymentStatus.PENDING.value:
        raise ConflictError(f"Payment is {payment.status} and cannot be verified")

    if booking.status in UNPAYABLE:
        raise ConflictError(f"Booking is {booking.status} and cannot be confirmed")

    payment.status = PaymentStatus.PAID.value
    payment.razorpay_payment_id = data.razorpay_payment_id
    payment.payment_date = utcnow()
    confirmed_now = booking.status == BookingStatus.PENDING.value
    if confirmed_now:
        booking.status = BookingStatus.CONFIRMED.value
    await db.commit()

    logger.info("payment %s verified, booking %s is %s", payment.id, booking.id, booking.status)

    await publisher.publish_event(
        "payment.verified",
        {"booking_id": booking.id, "payment_id": payment.id, "order_id": payment.razorpay_order_id},
    )
    await notify(db, *_payment_notifications(booking, payment, equipment_name, confirmed_now))
    return VerificationResult(payment=payment, booking=booking)
