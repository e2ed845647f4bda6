"""Per-type extraction of subscription events from verified Stripe events."""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from billing_gateway.core.base_models import SubscriptionEvent
from billing_gateway.providers.stripe.models import StripeEvent, SubscriptionEventType

logger = logging.getLogger(__name__)

DEFAULT_PLAN_TYPE = "monthly"
DEFAULT_CUSTOMER_NAME = "IELTS Student"
DEFAULT_USER_COUNTRY = "Unknown"


def _iso_timestamp(value: Any) -> str | None:
    """Convert a Unix timestamp to an ISO 8601 UTC string, or None if it is not one."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def _ref(value: Any) -> str | None:
    """Return an object id whether the field is expanded or not."""
    if isinstance(value, dict):
        value = value.get("id")
    return value if isinstance(value, str) else None


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _customer_id(obj: dict[str, Any]) -> str | None:
    return _ref(obj.get("customer"))


def summarize_payment_succeeded(obj: dict[str, Any]) -> dict[str, Any]:
    metadata = _mapping(obj.get("metadata"))
    return {
        "payment_intent_id": obj.get("id"),
        "customer_id": _customer_id(obj),
        "amount": obj.get("amount"),
        "currency": obj.get("currency"),
        "plan_type": metadata.get("plan_type") or DEFAULT_PLAN_TYPE,
        "customer_name": metadata.get("customer_name") or DEFAULT_CUSTOMER_NAME,
        "user_country": metadata.get("user_country") or DEFAULT_USER_COUNTRY,
    }


def summarize_payment_failed(obj: dict[str, Any]) -> dict[str, Any]:
    error = _mapping(obj.get("last_payment_error"))
    return {
        "payment_intent_id": obj.get("id"),
        "customer_id": _customer_id(obj),
        "error": error.get("message"),
        "code": error.get("code"),
    }


def summarize_subscription_created(obj: dict[str, Any]) -> dict[str, Any]:
    return {
        "subscription_id": obj.get("id"),
        "customer_id": _customer_id(obj),
        "status": obj.get("status"),
        "current_period_start": _iso_timestamp(obj.get("current_period_start")),
        "current_period_end": _iso_timestamp(obj.get("current_period_end")),
    }


def summarize_subscription_updated(obj: dict[str, Any]) -> dict[str, Any]:
    return {
        "subscription_id": obj.get("id"),
        "customer_id": _customer_id(obj),
        "status": obj.get("status"),
        "cancel_at_period_end": obj.get("cancel_at_period_end"),
    }


def summarize_subscription_cancelled(obj: dict[str, Any]) -> dict[str, Any]:
    return {
        "subscription_id": obj.get("id"),
        "customer_id": _customer_id(obj),
        "canceled_at": _iso_timestamp(obj.get("canceled_at")),
        "ended_at": _iso_timestamp(obj.get("ended_at")),
    }


def summarize_invoice_paid(obj: dict[str, Any]) -> dict[str, Any]:
    return {
        "invoice_id": obj.get("id"),
        "customer_id": _customer_id(obj),
        "subscription_id": _ref(obj.get("subscription")),
        "amount_paid": obj.get("amount_paid"),
        "currency": obj.get("currency"),
    }


def summarize_invoice_payment_failed(obj: dict[str, Any]) -> dict[str, Any]:
    return {
        "invoice_id": obj.get("id"),
        "customer_id": _customer_id(obj),
        "subscription_id": _ref(obj.get("subscription")),
        "attempt_count": obj.get("attempt_count"),
    }


SUMMARIZERS: dict[SubscriptionEventType, Callable[[dict[str, Any]], dict[str, Any]]] = {
    SubscriptionEventType.PAYMENT_SUCCEEDED: summarize_payment_succeeded,
    SubscriptionEventType.PAYMENT_FAILED: summarize_payment_failed,
    SubscriptionEventType.SUBSCRIPTION_CREATED: summarize_subscription_created,
    SubscriptionEventType.SUBSCRIPTION_UPDATED: summarize_subscription_updated,
    SubscriptionEventType.SUBSCRIPTION_CANCELLED: summarize_subscription_cancelled,
    SubscriptionEventType.INVOICE_PAID: summarize_invoice_paid,
    SubscriptionEventType.INVOICE_PAYMENT_FAILED: summarize_invoice_payment_failed,
}


def build_subscription_event(event: StripeEvent) -> SubscriptionEvent | None:
    """
    Map a verified Stripe event onto the sink's subscription event.

    Returns None for event types with no subscription side effect; those are
    acknowledged and ignored so new Stripe event types never fail delivery.
    """
    event_type = SubscriptionEventType.from_event_type(event.type)
    if event_type is None:
        logger.info("Unhandled event type: %s (%s)", event.type, event.id)
        return None

    summary = SUMMARIZERS[event_type](event.data_object)
    logger.info(
        "Processing %s event %s for customer %s",
        event_type.value,
        event.id,
        summary.get("customer_id"),
    )

    return SubscriptionEvent(
        event_id=event.id,
        event_type=event_type.value,
        customer_ref=summary.get("customer_id"),
        payload=summary,
    )
