"""Tests for token handling and payment signature verification."""

import hashlib
import hmac
from datetime import timedelta
from uuid import uuid4

from app.core.security import (
    compute_payment_signature,
    create_access_token,
    decode_access_token,
    verify_payment_signature,
    verify_webhook_signature,
)

SECRET = "checkout-secret"


def test_payment_signature_is_hmac_of_order_and_payment():
    expected = hmac.new(SECRET.encode(), b"order_1|pay_1", hashlib.sha256).hexdigest()
    assert compute_payment_signature("order_1", "pay_1", SECRET) == expected


def test_verify_payment_signature_accepts_valid():
    signature = compute_payment_signature("order_1", "pay_1", SECRET)
    assert verify_payment_signature("order_1", "pay_1", signature, SECRET) is True


def test_verify_payment_signature_rejects_forged():
    signature = compute_payment_signature("order_1", "pay_1", SECRET)
    assert verify_payment_signature("order_1", "pay_2", signature, SECRET) is False
    assert verify_payment_signature("order_1", "pay_1", "0" * 64, SECRET) is False
    assert verify_payment_signature("order_1", "pay_1", "", SECRET) is False


def test_verify_payment_signature_without_secret_fails_closed():
    signature = compute_payment_signature("order_1", "pay_1", "")
    assert verify_payment_signature("order_1", "pay_1", signature, "") is False


def test_verify_webhook_signature():
    body = b'{"event":"payment.captured"}'
    signature = hmac.new(b"hook-secret", body, hashlib.sha256).hexdigest()

    assert verify_webhook_signature(body, signature, "hook-secret") is True
    assert verify_webhook_signature(body + b" ", signature, "hook-secret") is False
    assert verify_webhook_signature(body, signature, "") is False


def test_access_token_round_trip_keeps_role():
    user_id = str(uuid4())
    token = create_access_token({"sub": user_id, "role": "doctor"}, timedelta(minutes=5))

    payload = decode_access_token(token)

    assert payload is not None
    assert payload["sub"] == user_id
    assert payload["role"] == "doctor"
    assert payload["type"] == "access"


def test_decode_rejects_garbage_and_expired_tokens():
    assert decode_access_token("not-a-token") is None

    expired = create_access_token({"sub": str(uuid4()), "role": "patient"}, timedelta(minutes=-1))
    assert decode_access_token(expired) is None
