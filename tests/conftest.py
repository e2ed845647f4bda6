"""Pytest fixtures for billing gateway tests."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from billing_gateway.config import Settings
from billing_gateway.core.dispatcher import SinkDispatcher
from billing_gateway.main import create_app
from billing_gateway.providers.stripe.client import StripePaymentClient
from billing_gateway.providers.stripe.processor import WebhookProcessor
from billing_gateway.providers.stripe.validator import generate_stripe_signature
from billing_gateway.sinks.memory import InMemoryEventSink, InMemoryProcessedEventStore


@pytest.fixture
def stripe_webhook_secret() -> str:
    """Test webhook signing secret."""
    return "whsec_test_secret_12345"


@pytest.fixture
def settings(stripe_webhook_secret) -> Settings:
    """Settings with inline dispatch so sink effects are visible on return."""
    return Settings(
        _env_file=None,
        stripe_secret_key="sk_test_12345",
        stripe_webhook_secret=stripe_webhook_secret,
        sink_backend="memory",
        dispatch_mode="inline",
        sink_max_attempts=2,
        sink_retry_delay=0.0,
        sink_timeout_seconds=1.0,
    )


@pytest.fixture
def event_sink() -> InMemoryEventSink:
    return InMemoryEventSink()


@pytest.fixture
def event_store() -> InMemoryProcessedEventStore:
    return InMemoryProcessedEventStore()


@pytest.fixture
def dispatcher(event_sink, event_store) -> SinkDispatcher:
    return SinkDispatcher(
        sink=event_sink,
        store=event_store,
        mode="inline",
        max_attempts=2,
        retry_delay=0.0,
        timeout=1.0,
    )


@pytest.fixture
def processor(stripe_webhook_secret, event_store, dispatcher) -> WebhookProcessor:
    return WebhookProcessor(
        secret=stripe_webhook_secret,
        store=event_store,
        dispatcher=dispatcher,
    )


@pytest.fixture
def stripe_client() -> MagicMock:
    """Stand-in for the Stripe SDK wrapper; tests set return values."""
    client = MagicMock(spec=StripePaymentClient)
    client.find_customer_by_email.return_value = SimpleNamespace(
        id="cus_existing123", email="student@example.com", name="Test Student"
    )
    client.retrieve_customer.return_value = SimpleNamespace(
        id="cus_existing123", email="student@example.com", name="Test Student"
    )
    return client


@pytest.fixture
def app(settings, stripe_client, event_sink, event_store):
    return create_app(
        settings=settings,
        stripe_client=stripe_client,
        event_sink=event_sink,
        event_store=event_store,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sign(stripe_webhook_secret):
    """Return a helper producing a Stripe-Signature header for a body."""

    def _sign(body: bytes, secret: str | None = None, timestamp: int | None = None) -> str:
        return generate_stripe_signature(body, secret or stripe_webhook_secret, timestamp)

    return _sign


def encode_event(event: dict) -> bytes:
    return json.dumps(event).encode("utf-8")


def make_event(event_type: str, data_object: dict, event_id: str = "evt_1") -> dict:
    return {
        "id": event_id,
        "object": "event",
        "api_version": "2024-09-30.acacia",
        "created": 1700000000,
        "type": event_type,
        "data": {"object": data_object, "previous_attributes": None},
        "livemode": False,
        "pending_webhooks": 1,
        "request": {"id": "req_1234567890ab", "idempotency_key": None},
    }


@pytest.fixture
def stripe_event():
    """Factory for Stripe event envelopes."""
    return make_event


@pytest.fixture
def signed_body(sign):
    """Encode an event and sign it, returning (body, headers)."""

    def _signed(event: dict, secret: str | None = None) -> tuple[bytes, dict[str, str]]:
        body = encode_event(event)
        return body, {"Stripe-Signature": sign(body, secret)}

    return _signed


@pytest.fixture
def payment_intent_object() -> dict:
    return {
        "id": "pi_1234567890abcdef",
        "object": "payment_intent",
        "amount": 2000,
        "currency": "usd",
        "status": "succeeded",
        "customer": "cus_1234567890ab",
        "metadata": {
            "plan_type": "quarterly",
            "customer_name": "Asha Rao",
            "user_country": "IN",
        },
        "created": 1700000000,
        "livemode": False,
        "last_payment_error": None,
    }


@pytest.fixture
def payment_succeeded_event(payment_intent_object) -> dict:
    """A valid payment_intent.succeeded event payload."""
    return make_event("payment_intent.succeeded", payment_intent_object)


@pytest.fixture
def subscription_object() -> dict:
    return {
        "id": "sub_1234567890",
        "object": "subscription",
        "customer": "cus_1234567890ab",
        "status": "active",
        "current_period_start": 1700000000,
        "current_period_end": 1702592000,
        "cancel_at_period_end": False,
        "canceled_at": None,
        "ended_at": None,
    }


@pytest.fixture
def invoice_object() -> dict:
    return {
        "id": "in_1234567890",
        "object": "invoice",
        "customer": "cus_1234567890ab",
        "subscription": "sub_1234567890",
        "amount_paid": 999,
        "currency": "usd",
        "attempt_count": 2,
    }
