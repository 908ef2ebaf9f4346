"""Payment endpoints."""

from typing import Annotated

from fastapi import APIRouter, Header, Request, status

from app.dependencies import CurrentPatient, DatabaseSession, PaymentGateway
from app.schemas.payments import (
    PaymentConfirmRequest,
    PaymentOrderCreate,
    PaymentOrderResponse,
    PaymentResponse,
    WebhookAck,
)
from app.services.payment_service import PaymentService

router = APIRouter()


@router.post(
    "/orders",
    response_model=PaymentOrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open payment order",
)
async def create_order(
    data: PaymentOrderCreate,
    patient: CurrentPatient,
    db: DatabaseSession,
    gateway: PaymentGateway,
) -> PaymentOrderResponse:
    """
    Open the payment order for an appointment awaiting payment.

    Calling again while the order is pending returns the same order.
    """
    service = PaymentService(db, gateway)
    return await service.open_order(data.appointment_id, patient, data.amount)


@router.post(
    "/confirm",
    response_model=PaymentResponse,
    status_code=status.HTTP_200_OK,
    summary="Confirm checkout",
)
async def confirm_payment(
    data: PaymentConfirmRequest,
    patient: CurrentPatient,
    db: DatabaseSession,
    gateway: PaymentGateway,
) -> PaymentResponse:
    """
    Verify the checkout signature and confirm the appointment.

    Args:
        data: Order id, payment id and processor signature

    Returns:
        Completed payment

    Raises:
        HTTPException: 400 on a bad signature, 403 for another patient's
            order, 409 if the appointment is no longer awaiting payment
    """
    service = PaymentService(db, gateway)
    return await service.confirm(data.order_id, data.payment_id, data.signature, patient)


@router.post(
    "/webhook",
    response_model=WebhookAck,
    status_code=status.HTTP_200_OK,
    summary="Payment processor webhook",
)
async def payment_webhook(
    request: Request,
    db: DatabaseSession,
    gateway: PaymentGateway,
    x_razorpay_signature: Annotated[str | None, Header()] = None,
) -> WebhookAck:
    """Signed event feed from the payment processor."""
    raw_body = await request.body()
    service = PaymentService(db, gateway)
    return await service.handle_webhook(raw_body, x_razorpay_signature)
