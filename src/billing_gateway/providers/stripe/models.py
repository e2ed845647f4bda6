"""Stripe request and webhook models."""

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Webhook Envelope
# =============================================================================


class SubscriptionEventType(str, Enum):
    """Stripe event types that carry a subscription side effect."""

    PAYMENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_FAILED = "payment_intent.payment_failed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_CANCELLED = "customer.subscription.deleted"
    INVOICE_PAID = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"

    @classmethod
    def from_event_type(cls, event_type: str) -> "SubscriptionEventType | None":
        """Return the matching member, or None for types we do not handle."""
        try:
            return cls(event_type)
        except ValueError:
            return None


class StripeEventData(BaseModel):
    """The data wrapper of a Stripe event."""

    model_config = ConfigDict(extra="ignore")

    object: dict[str, Any]
    previous_attributes: dict[str, Any] | None = None


class StripeEvent(BaseModel):
    """
    Verified Stripe event envelope.

    The data object is kept as a plain dict: its shape depends on the event
    type and newer API versions add fields we must not reject.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="Event ID")
    object: str = "event"
    type: str = Field(..., min_length=1)
    api_version: str | None = None
    created: int | None = Field(default=None, description="Unix timestamp")
    livemode: bool = False
    data: StripeEventData

    @property
    def data_object(self) -> dict[str, Any]:
        return self.data.object


# =============================================================================
# Proxy Requests
# =============================================================================


class CreatePaymentIntentRequest(BaseModel):
    """Body of POST /api/stripe/create-payment-intent."""

    model_config = ConfigDict(extra="ignore")

    amount: int | None = None
    currency: str | None = None
    payment_method_id: str | None = None
    customer_email: str | None = None
    customer_name: str | None = None
    plan_type: str | None = None
    user_country: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        # Frontends send the amount as a number or a numeric string
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            v = float(v)
        if isinstance(v, float):
            if not math.isfinite(v):
                raise ValueError("amount must be a finite number")
            return int(v)
        return v

    def missing_fields(self) -> list[str]:
        required = {
            "amount": self.amount,
            "currency": self.currency,
            "payment_method_id": self.payment_method_id,
            "customer_email": self.customer_email,
        }
        return [name for name, value in required.items() if not value]


class CustomerPortalRequest(BaseModel):
    """Body of POST /api/stripe/customer-portal."""

    model_config = ConfigDict(extra="ignore")

    customer_id: str | None = None
    customer_email: str | None = None
    return_url: str | None = None
