"""Stripe provider implementation."""

from billing_gateway.providers.stripe.client import StripePaymentClient
from billing_gateway.providers.stripe.models import StripeEvent, SubscriptionEventType
from billing_gateway.providers.stripe.payments import router as payments_router
from billing_gateway.providers.stripe.processor import WebhookProcessor
from billing_gateway.providers.stripe.router import router
from billing_gateway.providers.stripe.validator import verify_stripe_signature

__all__ = [
    "router",
    "payments_router",
    "StripeEvent",
    "StripePaymentClient",
    "SubscriptionEventType",
    "WebhookProcessor",
    "verify_stripe_signature",
]
