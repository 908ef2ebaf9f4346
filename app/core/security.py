"""Security utilities for JWT handling and payment signature verification."""

import hashlib
import hmac
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from app.config import settings


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Tokens are normally minted by the auth service; this mirrors its format.

    Args:
        data: Payload data to encode (``sub`` and ``role`` expected)
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update(
        {
            "exp": expire,
            "iat": datetime.now(UTC),
            "type": "access",
        }
    )

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        # Verify token type
        if payload.get("type") != "access":
            return None

        return payload
    except JWTError:
        return None


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute hex HMAC-SHA256 signature of payload."""
    return hmac.new(secret.strip().encode("utf-8"), payload, hashlib.sha256).hexdigest()


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two signatures without leaking timing information."""
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def compute_payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    """Signature the processor attaches to a checkout: HMAC of ``order_id|payment_id``."""
    return compute_hmac_sha256(secret, f"{order_id}|{payment_id}".encode())


def verify_payment_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """Check a client-submitted checkout signature."""
    if not secret:
        return False
    expected = compute_payment_signature(order_id, payment_id, secret)
    return constant_time_compare(expected, signature)


def verify_webhook_signature(raw_body: bytes, signature: str, secret: str) -> bool:
    """Check a webhook signature computed over the raw request body."""
    if not secret:
        return False
    return constant_time_compare(compute_hmac_sha256(secret, raw_body), signature)
