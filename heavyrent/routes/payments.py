from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..clients import RazorpayClient, get_gateway
from ..db import get_db
from ..schemas import BookingOut, CreatePaymentOrderRequest, PaymentOut, VerifyPaymentRequest
from ..security import CurrentUser, get_current_user
from ..services import payments

router = APIRouter()


@router.post("/payments/orders")
async def create_payment_order(
    data: CreatePaymentOrderRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: RazorpayClient = Depends(get_gateway),
):
    result = await payments.create_payment_order(db, user, data, gateway)
    return {
        "success": True,
        "order": result.order,
        "payment": PaymentOut.model_validate(result.payment),
        "key": result.key,
    }


@router.post("/payments/verify")
async def verify_payment(
    data: VerifyPaymentRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: RazorpayClient = Depends(get_gateway),
):
    result = await payments.verify_payment(db, user, data, gateway)
    return {
        "success": True,
        "message": "Payment already verified" if result.already_verified else "Payment verified successfully",
        "already_verified": result.already_verified,
        "payment": PaymentOut.model_validate(result.payment),
        "booking": BookingOut.model_validate(result.booking),
    }
