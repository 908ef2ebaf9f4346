"""Payment confirmation: ties processor orders to appointment confirmation."""

import json
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    AmountMismatchException,
    BadRequestException,
    ConflictException,
    ForbiddenException,
    InvalidSignatureException,
    InvalidTransitionException,
    NotFoundException,
)
from app.core.payment_gateway import RazorpayClient
from app.core.security import verify_payment_signature, verify_webhook_signature
from app.models.payments import payments
from app.schemas.appointments import AppointmentStatus, TransitionActor
from app.schemas.auth import Actor
from app.schemas.payments import (
    PaymentOrderResponse,
    PaymentResponse,
    PaymentStatus,
    WebhookAck,
)
from app.services.appointment_service import AppointmentService
from app.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")

CAPTURE_EVENTS = frozenset({"payment.captured", "order.paid"})
FAILURE_EVENTS = frozenset({"payment.failed"})
REFUND_EVENTS = frozenset({"refund.processed", "payment.refunded"})


def amounts_match(amount: Decimal, fee: Decimal) -> bool:
    """Compare a caller amount with the fee to the nearest minor unit."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP) == Decimal(fee).quantize(CENT)


def _entity(event: dict, name: str) -> dict:
    """Pull ``payload.<name>.entity`` out of a webhook event; absent parts are empty."""
    node: Any = event
    for key in ("payload", name, "entity"):
        node = node.get(key, {})
        if not isinstance(node, dict):
            raise BadRequestException(f"Webhook field '{key}' must be an object")
    return node


class PaymentService:
    """
    Opens payment orders and turns verified captures into confirmations.

    A captured payment and the appointment's move to ``confirmed`` are
    written in one transaction: either both land or neither does. A capture
    for an appointment that stopped awaiting payment is still recorded, on
    its own, and flagged for refund.
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: RazorpayClient,
        notifier: NotificationService | None = None,
    ):
        """Initialize service with database session and payment gateway."""
        self.db = db
        self.gateway = gateway
        self.notifier = notifier or NotificationService(db)
        self.appointments = AppointmentService(db, self.notifier)

    async def _payment_for_appointment(self, appointment_id: UUID) -> Row | None:
        result = await self.db.execute(
            select(payments).where(payments.c.appointment_id == appointment_id)
        )
        return result.fetchone()

    async def _payment_for_order(self, order_id: str) -> Row | None:
        result = await self.db.execute(
            select(payments).where(payments.c.processor_order_id == order_id)
        )
        return result.fetchone()

    def _order_response(self, payment: Row) -> PaymentOrderResponse:
        return PaymentOrderResponse(
            order_id=payment.processor_order_id,
            payment_id=payment.id,
            appointment_id=payment.appointment_id,
            amount=payment.amount,
            currency=payment.currency,
            key_id=self.gateway.key_id,
        )

    async def open_order(
        self,
        appointment_id: UUID,
        actor: Actor,
        amount: Decimal | None = None,
    ) -> PaymentOrderResponse:
        """
        Open (or reuse) the payment order for an appointment.

        Args:
            appointment_id: Appointment awaiting payment
            actor: Must be the appointment's patient
            amount: Optional client-side amount; must equal the fee

        Returns:
            Order details for the checkout widget

        Raises:
            NotFoundException: Appointment not found
            ForbiddenException: Actor is not the patient
            ConflictException: Appointment not awaiting payment, or already paid
            AmountMismatchException: Amount differs from the fee
            PaymentGatewayError: Processor refused or unreachable
        """
        appointment = await self.appointments._fetch(appointment_id)
        if not actor.is_patient or appointment.patient_id != actor.id:
            raise ForbiddenException("Only the patient can pay for this appointment")

        if appointment.status != AppointmentStatus.AWAITING_PAYMENT.value:
            raise ConflictException(
                f"Appointment is '{appointment.status}', payment is not expected"
            )

        fee = Decimal(appointment.consultation_fee)
        if amount is not None and not amounts_match(amount, fee):
            logger.warning(
                "payment_amount_mismatch",
                appointment_id=str(appointment_id),
                expected=str(fee),
                received=str(amount),
            )
            raise AmountMismatchException(
                f"Payment amount {amount} does not match consultation fee {fee:.2f}"
            )

        existing = await self._payment_for_appointment(appointment_id)
        if existing and existing.status == PaymentStatus.PENDING.value:
            return self._order_response(existing)
        if existing and existing.status in (
            PaymentStatus.COMPLETED.value,
            PaymentStatus.REFUNDED.value,
        ):
            raise ConflictException("Appointment has already been paid")

        order = await self.gateway.create_order(
            amount=fee,
            currency=settings.payment_currency,
            receipt=f"appt_{appointment_id.hex[:20]}",
            notes={
                "appointment_id": str(appointment_id),
                "patient_id": str(appointment.patient_id),
                "doctor_id": str(appointment.doctor_id),
            },
        )

        if existing:
            # Re-arm a failed payment with a fresh order
            stmt = (
                update(payments)
                .where(
                    payments.c.id == existing.id,
                    payments.c.status == PaymentStatus.FAILED.value,
                )
                .values(
                    processor_order_id=order["id"],
                    processor_payment_id=None,
                    failure_reason=None,
                    amount=fee,
                    status=PaymentStatus.PENDING.value,
                    updated_at=datetime.now(UTC),
                )
                .returning(payments)
            )
        else:
            stmt = (
                insert(payments)
                .values(
                    appointment_id=appointment_id,
                    patient_id=appointment.patient_id,
                    doctor_id=appointment.doctor_id,
                    amount=fee,
                    currency=settings.payment_currency,
                    status=PaymentStatus.PENDING.value,
                    processor_order_id=order["id"],
                )
                .returning(payments)
            )
        try:
            payment = (await self.db.execute(stmt)).fetchone()
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            payment = None
        except Exception:
            await self.db.rollback()
            raise

        if payment is None:
            # Another request opened the order first
            payment = await self._payment_for_appointment(appointment_id)
            logger.warning(
                "payment_order_superseded",
                appointment_id=str(appointment_id),
                discarded_order_id=order["id"],
                order_id=payment.processor_order_id if payment else None,
            )
            if payment is None or payment.status != PaymentStatus.PENDING.value:
                raise ConflictException("Payment order changed concurrently, retry")
            return self._order_response(payment)

        logger.info(
            "payment_order_opened",
            appointment_id=str(appointment_id),
            order_id=order["id"],
            amount=str(fee),
        )
        return self._order_response(payment)

    async def confirm(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        actor: Actor,
    ) -> PaymentResponse:
        """
        Confirm a checkout reported by the client.

        Args:
            order_id: Processor order identifier
            payment_id: Processor payment identifier
            signature: HMAC of ``order_id|payment_id`` issued by the processor
            actor: Must be the patient the order was opened for

        Returns:
            Completed payment

        Raises:
            InvalidSignatureException: Signature does not verify
            NotFoundException: No payment for the order
            ForbiddenException: Order belongs to another patient
            InvalidTransitionException: Appointment left ``awaiting_payment``
        """
        if not verify_payment_signature(
            order_id, payment_id, signature, settings.razorpay_key_secret
        ):
            logger.warning(
                "payment_signature_invalid",
                order_id=order_id,
                payment_id=payment_id,
                potential_tampering=True,
            )
            raise InvalidSignatureException()

        return await self._capture(order_id, payment_id, source="checkout", payer=actor)

    async def _capture(
        self,
        order_id: str,
        payment_id: str,
        source: str,
        payer: Actor | None = None,
    ) -> PaymentResponse:
        """Record a verified capture and confirm its appointment."""
        payment = await self._payment_for_order(order_id)
        if not payment:
            raise NotFoundException("Payment not found")
        if payer is not None and payment.patient_id != payer.id:
            raise ForbiddenException("Payment belongs to another patient")

        if payment.status == PaymentStatus.COMPLETED.value:
            await self._converge_confirmed(payment)
            logger.info("payment_already_captured", order_id=order_id, source=source)
            return PaymentResponse.model_validate(dict(payment._mapping))

        if payment.status != PaymentStatus.PENDING.value:
            raise ConflictException(f"Payment is '{payment.status}' and cannot be captured")

        appointment = await self.appointments._fetch(payment.appointment_id)
        try:
            captured = await self._mark_captured(payment, payment_id)
            confirmed = await self.appointments.apply_transition(
                appointment,
                AppointmentStatus.CONFIRMED,
                TransitionActor.PAYMENT_SERVICE,
            )
            await self.db.commit()
        except InvalidTransitionException:
            await self.db.rollback()
            await self._record_orphaned_capture(payment, payment_id, appointment.status, source)
            raise
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "payment_captured",
            order_id=order_id,
            appointment_id=str(payment.appointment_id),
            source=source,
        )
        await self.notifier.notify_transition(
            dict(confirmed._mapping),
            appointment.status,
            TransitionActor.PAYMENT_SERVICE,
        )
        return PaymentResponse.model_validate(dict(captured._mapping))

    async def _record_orphaned_capture(
        self,
        payment: Row,
        processor_payment_id: str,
        appointment_status: str,
        source: str,
    ) -> None:
        """
        Keep the record of money received for an appointment that no longer
        expects it. The appointment is left as it is; the payment is flagged
        so the refund can be issued and later reconciled by webhook.
        """
        try:
            await self._mark_captured(payment, processor_payment_id, refund_required=True)
            await self.db.commit()
        except ConflictException:
            # A concurrent capture already recorded it
            await self.db.rollback()
        except Exception:
            await self.db.rollback()
            raise

        logger.error(
            "payment captured for inactive appointment",
            order_id=payment.processor_order_id,
            payment_id=processor_payment_id,
            appointment_id=str(payment.appointment_id),
            appointment_status=appointment_status,
            source=source,
            action="manual_refund_required",
        )

    async def _mark_captured(
        self,
        payment: Row,
        processor_payment_id: str,
        refund_required: bool = False,
    ) -> Row:
        stmt = (
            update(payments)
            .where(
                payments.c.id == payment.id,
                payments.c.status == PaymentStatus.PENDING.value,
            )
            .values(
                status=PaymentStatus.COMPLETED.value,
                processor_payment_id=processor_payment_id,
                refund_required=refund_required,
                updated_at=datetime.now(UTC),
            )
            .returning(payments)
        )
        captured = (await self.db.execute(stmt)).fetchone()
        if captured is None:
            raise ConflictException("Payment was updated concurrently")
        return captured

    async def _converge_confirmed(self, payment: Row) -> None:
        """Repeat confirmations finish a confirmation that did not land."""
        appointment = await self.appointments._fetch(payment.appointment_id)
        if appointment.status != AppointmentStatus.AWAITING_PAYMENT.value:
            return
        confirmed = await self.appointments.apply_transition(
            appointment,
            AppointmentStatus.CONFIRMED,
            TransitionActor.PAYMENT_SERVICE,
        )
        await self.db.commit()
        await self.notifier.notify_transition(
            dict(confirmed._mapping),
            appointment.status,
            TransitionActor.PAYMENT_SERVICE,
        )

    async def _set_status(
        self,
        payment: Row,
        expected: PaymentStatus,
        target: PaymentStatus,
        failure_reason: str | None = None,
    ) -> bool:
        values: dict[str, Any] = {"status": target.value, "updated_at": datetime.now(UTC)}
        if failure_reason:
            values["failure_reason"] = failure_reason
        if target == PaymentStatus.REFUNDED:
            values["refund_required"] = False
        result = await self.db.execute(
            update(payments)
            .where(payments.c.id == payment.id, payments.c.status == expected.value)
            .values(**values)
        )
        await self.db.commit()
        return result.rowcount > 0

    async def handle_webhook(self, raw_body: bytes, signature: str | None) -> WebhookAck:
        """
        Process a processor webhook.

        Captures follow the same path as checkout confirmation. Failures and
        refunds only change the payment; the appointment is left alone.

        Raises:
            InvalidSignatureException: Signature missing or wrong
            BadRequestException: Body is not a JSON event object
        """
        if not signature or not verify_webhook_signature(
            raw_body, signature, settings.razorpay_webhook_secret
        ):
            logger.warning("webhook_signature_invalid", potential_tampering=True)
            raise InvalidSignatureException("Invalid webhook signature")

        try:
            event = json.loads(raw_body)
        except ValueError as e:
            raise BadRequestException("Webhook body is not valid JSON") from e

        if not isinstance(event, dict):
            raise BadRequestException("Webhook body must be a JSON object")

        event_type = event.get("event")
        if event_type is not None and not isinstance(event_type, str):
            raise BadRequestException("Webhook event type must be a string")
        entity = _entity(event, "payment")
        order_id = entity.get("order_id")
        processor_payment_id = entity.get("id")
        logger.info("webhook_received", event_type=event_type, order_id=order_id)

        if event_type in CAPTURE_EVENTS and order_id and processor_payment_id:
            try:
                captured = await self._capture(order_id, processor_payment_id, source="webhook")
            except InvalidTransitionException:
                # Capture is recorded and flagged for refund; redelivery would not help
                return WebhookAck(event=event_type, processed=False)
            return WebhookAck(event=event_type, processed=not captured.refund_required)

        if event_type in FAILURE_EVENTS and order_id:
            payment = await self._payment_for_order(order_id)
            processed = bool(payment) and await self._set_status(
                payment,
                PaymentStatus.PENDING,
                PaymentStatus.FAILED,
                failure_reason=entity.get("error_description"),
            )
            logger.info("webhook_payment_failed", order_id=order_id, processed=processed)
            return WebhookAck(event=event_type, processed=processed)

        if event_type in REFUND_EVENTS:
            refund = _entity(event, "refund")
            processed = False
            payment = await self._payment_for_order(order_id) if order_id else None
            if payment is None and refund.get("payment_id"):
                result = await self.db.execute(
                    select(payments).where(
                        payments.c.processor_payment_id == refund["payment_id"]
                    )
                )
                payment = result.fetchone()
            if payment:
                processed = await self._set_status(
                    payment, PaymentStatus.COMPLETED, PaymentStatus.REFUNDED
                )
            logger.info("webhook_payment_refunded", order_id=order_id, processed=processed)
            return WebhookAck(event=event_type, processed=processed)

        logger.info("webhook_event_ignored", event_type=event_type)
        return WebhookAck(event=event_type, processed=False)
