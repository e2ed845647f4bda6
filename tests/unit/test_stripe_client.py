"""Unit tests for the Stripe SDK wrapper."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from billing_gateway.providers.stripe.client import StripePaymentClient


@pytest.fixture
def sdk() -> MagicMock:
    return MagicMock()


class TestStripePaymentClient:
    def test_find_customer_by_email(self, sdk):
        customer = SimpleNamespace(id="cus_1")
        sdk.v1.customers.list.return_value = SimpleNamespace(data=[customer])

        result = StripePaymentClient(sdk).find_customer_by_email("student@example.com")

        assert result is customer
        sdk.v1.customers.list.assert_called_once_with(
            params={"email": "student@example.com", "limit": 1}
        )

    def test_find_customer_none(self, sdk):
        sdk.v1.customers.list.return_value = SimpleNamespace(data=[])

        assert StripePaymentClient(sdk).find_customer_by_email("x@example.com") is None

    def test_create_payment_intent_confirms_manually(self, sdk):
        StripePaymentClient(sdk).create_payment_intent(
            amount=999,
            currency="usd",
            customer_id="cus_1",
            payment_method_id="pm_card_visa",
            return_url="https://www.gammapace.com",
            metadata={"plan_type": "monthly"},
        )

        params = sdk.v1.payment_intents.create.call_args.kwargs["params"]
        assert params["confirmation_method"] == "manual"
        assert params["confirm"] is True
        assert params["customer"] == "cus_1"
        assert params["payment_method"] == "pm_card_visa"

    def test_create_portal_session(self, sdk):
        StripePaymentClient(sdk).create_portal_session("cus_1", "https://example.com")

        sdk.v1.billing_portal.sessions.create.assert_called_once_with(
            params={"customer": "cus_1", "return_url": "https://example.com"}
        )

    def test_from_api_key_builds_sdk_client(self):
        client = StripePaymentClient.from_api_key("sk_test_12345")

        assert isinstance(client, StripePaymentClient)
