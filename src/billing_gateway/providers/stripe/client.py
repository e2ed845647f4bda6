"""Thin wrapper around the Stripe SDK client used by the proxy endpoints."""

import logging
from typing import Any

import stripe

logger = logging.getLogger(__name__)


class StripePaymentClient:
    """
    Narrow view of the Stripe API the gateway calls.

    Built once from settings and injected through app.state; route handlers
    never touch the global stripe module configuration.
    """

    def __init__(self, client: stripe.StripeClient):
        self._client = client

    @classmethod
    def from_api_key(cls, api_key: str) -> "StripePaymentClient":
        return cls(stripe.StripeClient(api_key))

    def find_customer_by_email(self, email: str) -> Any | None:
        customers = self._client.v1.customers.list(params={"email": email, "limit": 1})
        if not customers.data:
            return None
        return customers.data[0]

    def create_customer(
        self, email: str, name: str, metadata: dict[str, str]
    ) -> Any:
        return self._client.v1.customers.create(
            params={"email": email, "name": name, "metadata": metadata}
        )

    def retrieve_customer(self, customer_id: str) -> Any:
        return self._client.v1.customers.retrieve(customer_id)

    def create_payment_intent(
        self,
        amount: int,
        currency: str,
        customer_id: str,
        payment_method_id: str,
        return_url: str,
        metadata: dict[str, str],
    ) -> Any:
        return self._client.v1.payment_intents.create(
            params={
                "amount": amount,
                "currency": currency,
                "customer": customer_id,
                "payment_method": payment_method_id,
                "confirmation_method": "manual",
                "confirm": True,
                "return_url": return_url,
                "metadata": metadata,
            }
        )

    def create_portal_session(self, customer_id: str, return_url: str) -> Any:
        return self._client.v1.billing_portal.sessions.create(
            params={"customer": customer_id, "return_url": return_url}
        )
