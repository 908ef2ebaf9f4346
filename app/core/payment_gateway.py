"""Razorpay order client."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx
import structlog

from app.config import Settings
from app.core.exceptions import PaymentGatewayError

logger = structlog.get_logger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to integer minor units (e.g. paise)."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class RazorpayClient:
    """
    Thin async client for the Razorpay Orders API.

    Only opens orders. Signature computation stays with the processor; the
    platform verifies signatures in ``app.core.security``.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize client with API credentials."""
        self.key_id = key_id
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayClient":
        """Build a client from application settings."""
        return cls(
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            base_url=settings.razorpay_api_base_url,
            timeout=settings.razorpay_timeout_seconds,
        )

    async def create_order(
        self,
        amount: Decimal,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Open a payment order.

        Args:
            amount: Amount in major currency units
            currency: ISO currency code
            receipt: Merchant receipt reference
            notes: Free-form key/value notes stored with the order

        Returns:
            Order payload; ``id`` is the processor order identifier

        Raises:
            PaymentGatewayError: If the processor rejects or cannot be reached
        """
        body = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        try:
            response = await self._client.post("/orders", json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            description = e.response.text
            logger.error(
                "razorpay_order_rejected",
                status_code=e.response.status_code,
                error=description,
                receipt=receipt,
            )
            raise PaymentGatewayError(f"Payment processor rejected order: {description}") from e
        except httpx.HTTPError as e:
            logger.error("razorpay_order_failed", error=str(e), receipt=receipt)
            raise PaymentGatewayError("Payment processor unavailable") from e

        order = response.json()
        logger.info("razorpay_order_created", order_id=order.get("id"), receipt=receipt)
        return order

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()
