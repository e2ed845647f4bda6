"""Stripe webhook router for FastAPI."""

import logging

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from billing_gateway.core.exceptions import (
    PayloadValidationError,
    SignatureVerificationError,
    WebhookSecretNotConfiguredError,
)
from billing_gateway.providers.stripe.processor import WebhookProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook")
async def receive_stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
) -> Response:
    """
    Receive and process Stripe webhook events.

    This endpoint:
    1. Verifies the webhook signature (HMAC-SHA256) over the raw body
    2. Parses the event envelope and classifies the event type
    3. Claims the event id so redeliveries are applied only once
    4. Hands the side effect to the sink dispatcher

    Returns 200 once the signature is verified, whatever the sink does, so
    Stripe does not keep redelivering. Verification failures return 400.
    """
    # Read raw body (needed for signature verification)
    raw_body = await request.body()

    processor: WebhookProcessor = request.app.state.webhook_processor

    try:
        result = await processor.handle(raw_body, stripe_signature)
    except WebhookSecretNotConfiguredError as e:
        logger.error("Missing webhook secret in environment variables")
        return PlainTextResponse(e.message, status_code=400)
    except SignatureVerificationError as e:
        logger.warning("Webhook signature verification failed: %s", e.message)
        return PlainTextResponse(e.message, status_code=400)
    except PayloadValidationError as e:
        logger.warning("Verified webhook payload rejected: %s", e.message)
        return PlainTextResponse(f"Webhook Error: {e.message}", status_code=400)
    except Exception as e:
        logger.error("Webhook processing error: %s", str(e), exc_info=True)
        return PlainTextResponse("Webhook processing failed", status_code=500)

    logger.info("Acknowledged event %s (%s)", result.event_id, result.status.value)
    return JSONResponse(status_code=200, content=result.model_dump(mode="json"))
