"""Stripe webhook signature verification using HMAC-SHA256."""

import hashlib
import hmac
import time

from billing_gateway.core.exceptions import (
    SignatureExpiredError,
    SignatureVerificationError,
    WebhookSecretNotConfiguredError,
)

SIGNATURE_SCHEME = "v1"


def _compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    signed_payload = f"{timestamp}.".encode() + payload
    return hmac.new(
        secret.encode("utf-8"),
        signed_payload,
        hashlib.sha256,
    ).hexdigest()


def _parse_signature_header(signature_header: str) -> tuple[int, list[str]]:
    """Split a Stripe-Signature header into its timestamp and v1 signatures."""
    timestamp_str: str | None = None
    signatures: list[str] = []

    try:
        for item in signature_header.split(","):
            key, value = item.strip().split("=", 1)
            if key == "t":
                timestamp_str = value
            elif key == SIGNATURE_SCHEME:
                signatures.append(value)
    except ValueError as e:
        raise SignatureVerificationError(f"Invalid signature header format: {e}") from e

    if not timestamp_str:
        raise SignatureVerificationError("Missing timestamp in signature header")

    try:
        timestamp = int(timestamp_str)
    except ValueError as e:
        raise SignatureVerificationError(f"Invalid timestamp format: {e}") from e

    if not signatures:
        raise SignatureVerificationError("No v1 signature found in header")

    return timestamp, signatures


def verify_stripe_signature(
    payload: bytes,
    signature_header: str,
    secret: str,
    tolerance: int = 300,
) -> bool:
    """
    Verify Stripe webhook signature using HMAC-SHA256.

    Stripe-Signature header format: t=timestamp,v1=signature,v1=signature2,...

    The signed payload is constructed as: "{timestamp}.{payload}"
    The expected signature is HMAC-SHA256(secret, signed_payload)

    Args:
        payload: Raw request body bytes, exactly as received
        signature_header: Value of Stripe-Signature header
        secret: Webhook signing secret (starts with whsec_)
        tolerance: Maximum age of signature in seconds (default 300 = 5 minutes)

    Returns:
        True if signature is valid

    Raises:
        WebhookSecretNotConfiguredError: If no secret is configured
        SignatureVerificationError: If signature is invalid
        SignatureExpiredError: If signature timestamp is too old
    """
    if not secret:
        raise WebhookSecretNotConfiguredError()

    if not signature_header:
        raise SignatureVerificationError("Missing Stripe-Signature header")

    timestamp, signatures = _parse_signature_header(signature_header)

    current_time = int(time.time())
    if abs(current_time - timestamp) > tolerance:
        raise SignatureExpiredError(
            f"Signature timestamp ({timestamp}) is outside tolerance window "
            f"({tolerance} seconds). Current time: {current_time}"
        )

    expected_signature = _compute_signature(payload, secret, timestamp)

    # Constant-time comparison against every v1 entry (secret rotation)
    for signature in signatures:
        if hmac.compare_digest(signature, expected_signature):
            return True

    raise SignatureVerificationError("No signatures found matching the expected signature")


def generate_stripe_signature(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """
    Generate a valid Stripe webhook signature for testing.

    Args:
        payload: Request body bytes
        secret: Webhook signing secret
        timestamp: Unix timestamp (defaults to current time)

    Returns:
        Stripe-Signature header value
    """
    if timestamp is None:
        timestamp = int(time.time())

    signature = _compute_signature(payload, secret, timestamp)
    return f"t={timestamp},{SIGNATURE_SCHEME}={signature}"
