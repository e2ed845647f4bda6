"""Framework-independent Stripe webhook ingestion."""

import json
import logging

from pydantic import ValidationError

from billing_gateway.core.base_models import DeadLetterRecord, WebhookResult, WebhookStatus
from billing_gateway.core.dispatcher import SinkDispatcher
from billing_gateway.core.exceptions import (
    PayloadValidationError,
    SignatureVerificationError,
    WebhookSecretNotConfiguredError,
)
from billing_gateway.providers.stripe.handlers import build_subscription_event
from billing_gateway.providers.stripe.models import StripeEvent
from billing_gateway.providers.stripe.validator import verify_stripe_signature
from billing_gateway.sinks.base import ProcessedEventStore

logger = logging.getLogger(__name__)


def parse_event(raw_body: bytes) -> StripeEvent:
    """Parse a verified raw body into a Stripe event envelope."""
    try:
        payload = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise PayloadValidationError(f"Invalid JSON: {e}") from e

    try:
        return StripeEvent.model_validate(payload)
    except ValidationError as e:
        error_details = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise PayloadValidationError(
            f"Validation error: {error_details}", errors=e.errors()
        ) from e


class WebhookProcessor:
    """
    Verifies, classifies and dispatches Stripe webhook deliveries.

    Signature and payload problems raise; everything after verification ends
    in an acknowledgement, whatever happens in the sink. An event that cannot
    be summarised is dead-lettered and acknowledged as failed.
    """

    def __init__(
        self,
        secret: str,
        store: ProcessedEventStore,
        dispatcher: SinkDispatcher,
        tolerance: int = 300,
    ):
        self._secret = secret
        self._tolerance = tolerance
        self.store = store
        self.dispatcher = dispatcher

    async def handle(self, raw_body: bytes, signature_header: str | None) -> WebhookResult:
        """
        Process one webhook delivery.

        Args:
            raw_body: Request body exactly as received
            signature_header: Value of the Stripe-Signature header

        Returns:
            WebhookResult acknowledging the delivery

        Raises:
            SignatureVerificationError: Missing/invalid signature or no secret
            PayloadValidationError: Verified body is not a Stripe event
        """
        if not signature_header:
            raise SignatureVerificationError("Missing Stripe signature")

        try:
            verify_stripe_signature(
                payload=raw_body,
                signature_header=signature_header,
                secret=self._secret,
                tolerance=self._tolerance,
            )
        except WebhookSecretNotConfiguredError:
            raise
        except SignatureVerificationError as e:
            raise type(e)(f"Webhook Error: {e.message}") from e

        event = parse_event(raw_body)
        logger.info("Webhook signature verified for event %s (type=%s)", event.id, event.type)

        try:
            subscription_event = build_subscription_event(event)
        except Exception as e:
            logger.error(
                "Could not extract %s event %s: %s", event.type, event.id, str(e), exc_info=True
            )
            await self._dead_letter(event, e)
            return WebhookResult(
                status=WebhookStatus.FAILED, event_id=event.id, event_type=event.type
            )

        if subscription_event is None:
            return WebhookResult(
                status=WebhookStatus.IGNORED, event_id=event.id, event_type=event.type
            )

        if not await self.store.claim(event.id, event.type):
            logger.info("Duplicate delivery of event %s ignored", event.id)
            return WebhookResult(
                status=WebhookStatus.DUPLICATE, event_id=event.id, event_type=event.type
            )

        try:
            await self.dispatcher.submit(subscription_event)
        except Exception as e:
            logger.error(
                "Side effect for event %s failed after acknowledgement: %s",
                event.id,
                str(e),
                exc_info=True,
            )

        return WebhookResult(
            status=WebhookStatus.ACCEPTED, event_id=event.id, event_type=event.type
        )

    async def _dead_letter(self, event: StripeEvent, error: Exception) -> None:
        record = DeadLetterRecord(
            event_id=event.id,
            event_type=event.type,
            payload=event.data_object,
            error_type="extraction_failed",
            error_message=str(error) or type(error).__name__,
        )
        try:
            await self.store.dead_letter(record)
        except Exception as e:
            logger.error("Failed to dead-letter event %s: %s", event.id, str(e), exc_info=True)
