"""Payment-intent and customer-portal proxy endpoints."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import stripe
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from billing_gateway.config import Settings
from billing_gateway.core.exceptions import RequestValidationFailure
from billing_gateway.providers.stripe.client import StripePaymentClient
from billing_gateway.providers.stripe.handlers import (
    DEFAULT_CUSTOMER_NAME,
    DEFAULT_PLAN_TYPE,
    DEFAULT_USER_COUNTRY,
)
from billing_gateway.providers.stripe.models import (
    CreatePaymentIntentRequest,
    CustomerPortalRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PLAN_DURATIONS: dict[str, timedelta] = {
    "weekly": timedelta(days=7),
    "monthly": timedelta(days=30),
    "quarterly": timedelta(days=90),
}

ACTION_REQUIRED_STATUSES = {"requires_action", "requires_source_action"}

REQUIRED_PAYMENT_FIELDS = "amount, currency, payment_method_id, customer_email"


def calculate_end_date(start_date: datetime, plan_type: str) -> datetime:
    """Return the subscription end date; unknown plans get the monthly term."""
    return start_date + PLAN_DURATIONS.get(plan_type, PLAN_DURATIONS[DEFAULT_PLAN_TYPE])


def _error(status_code: int, message: str, error_type: str | None = None) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "error": message}
    if error_type:
        body["type"] = error_type
    return JSONResponse(status_code=status_code, content=body)


def _get_client(request: Request) -> StripePaymentClient | None:
    return getattr(request.app.state, "stripe_client", None)


def _plain(value: Any) -> dict[str, Any] | None:
    if value is None:
        return None
    return dict(value)


def validate_payment_request(body: CreatePaymentIntentRequest) -> None:
    missing = body.missing_fields()
    if missing:
        raise RequestValidationFailure(
            f"Missing required fields: {REQUIRED_PAYMENT_FIELDS}", missing=missing
        )


@router.post("/create-payment-intent")
def create_payment_intent(body: CreatePaymentIntentRequest, request: Request) -> JSONResponse:
    """
    Find or create the customer, then create and confirm a payment intent.

    Stripe errors keep their classification: card errors and invalid requests
    are the caller's problem (400), everything else is ours (500).
    """
    settings: Settings = request.app.state.settings

    try:
        validate_payment_request(body)
    except RequestValidationFailure as e:
        logger.info("Payment intent request rejected, missing %s", ", ".join(e.missing))
        return _error(400, e.message)

    client = _get_client(request)
    if client is None:
        logger.error("Payment intent requested but Stripe secret key is not configured")
        return _error(500, "Payment processing failed", "server_error")

    plan_type = body.plan_type or DEFAULT_PLAN_TYPE
    user_country = body.user_country or DEFAULT_USER_COUNTRY
    customer_name = body.customer_name or DEFAULT_CUSTOMER_NAME

    try:
        customer = client.find_customer_by_email(body.customer_email)
        if customer is not None:
            logger.info("Found existing customer %s", customer.id)
        else:
            customer = client.create_customer(
                email=body.customer_email,
                name=customer_name,
                metadata={
                    "user_country": user_country,
                    "plan_type": plan_type,
                    "source": "IELTS_Practice_App",
                },
            )
            logger.info("Created new customer %s", customer.id)

        intent = client.create_payment_intent(
            amount=body.amount,
            currency=body.currency.lower(),
            customer_id=customer.id,
            payment_method_id=body.payment_method_id,
            return_url=settings.default_return_url,
            metadata={
                "plan_type": plan_type,
                "user_country": user_country,
                "customer_name": customer_name,
                "app_source": "IELTS_Practice",
            },
        )
    except stripe.CardError as e:
        logger.warning("Card declined: %s", e.user_message or str(e))
        return _error(400, e.user_message or str(e), "card_error")
    except stripe.InvalidRequestError as e:
        logger.warning("Invalid payment request: %s", str(e))
        return _error(400, "Invalid payment request", "invalid_request")
    except stripe.StripeError as e:
        logger.error("Payment processing error: %s", str(e), exc_info=True)
        return _error(500, "Payment processing failed", "server_error")

    logger.info(
        "Payment intent %s created (status=%s, amount=%s %s)",
        intent.id,
        intent.status,
        intent.amount,
        intent.currency,
    )

    if intent.status in ACTION_REQUIRED_STATUSES:
        return JSONResponse(
            status_code=200,
            content={
                "success": False,
                "requires_action": True,
                "payment_intent": {
                    "id": intent.id,
                    "client_secret": intent.client_secret,
                    "status": intent.status,
                },
                "message": "3D Secure authentication required",
            },
        )

    if intent.status == "succeeded":
        start_date = datetime.now(timezone.utc)
        return JSONResponse(
            status_code=200,
            content={
                "success": True,
                "payment_intent": {
                    "id": intent.id,
                    "amount": intent.amount,
                    "currency": intent.currency,
                    "status": intent.status,
                },
                "customer": {
                    "id": customer.id,
                    "email": customer.email,
                    "name": customer.name,
                },
                "subscription_data": {
                    "plan_type": plan_type,
                    "start_date": start_date.isoformat(),
                    "end_date": calculate_end_date(start_date, plan_type).isoformat(),
                },
            },
        )

    logger.warning("Payment %s not completed: %s", intent.id, intent.status)
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Payment failed",
            "payment_intent": {
                "id": intent.id,
                "status": intent.status,
                "last_payment_error": _plain(intent.last_payment_error),
            },
        },
    )


@router.post("/customer-portal")
def create_customer_portal_session(body: CustomerPortalRequest, request: Request) -> JSONResponse:
    """Resolve the customer by id or email and open a billing-portal session."""
    settings: Settings = request.app.state.settings

    if not body.customer_id and not body.customer_email:
        return _error(400, "Either customer_id or customer_email is required")

    client = _get_client(request)
    if client is None:
        logger.error("Customer portal requested but Stripe secret key is not configured")
        return _error(500, "Unable to create customer portal session", "server_error")

    try:
        customer_id = body.customer_id
        if not customer_id:
            customer = client.find_customer_by_email(body.customer_email)
            if customer is None:
                logger.info("No customer found for portal request")
                return _error(
                    404, "Customer not found. Please ensure you have an active subscription."
                )
            customer_id = customer.id

        try:
            client.retrieve_customer(customer_id)
        except stripe.StripeError:
            logger.info("Invalid customer id %s", customer_id)
            return _error(404, "Customer not found. Please contact support.")

        session = client.create_portal_session(
            customer_id=customer_id,
            return_url=body.return_url or settings.default_return_url,
        )
    except stripe.StripeError as e:
        # Stripe raises this as an InvalidRequestError, so check the code first
        if getattr(e, "code", None) == "customer_portal_inactive":
            logger.error("Customer portal is not activated in the Stripe dashboard")
            return _error(
                400,
                "Customer portal is not activated. Please contact support.",
                "portal_inactive",
            )
        if isinstance(e, stripe.InvalidRequestError):
            logger.warning("Invalid customer portal request: %s", str(e))
            return _error(400, "Invalid customer information", "invalid_request")
        logger.error("Customer portal error: %s", str(e), exc_info=True)
        return _error(500, "Unable to create customer portal session", "server_error")

    logger.info("Customer portal session %s created for %s", session.id, customer_id)
    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "url": session.url,
            "customer_id": customer_id,
            "session_id": session.id,
        },
    )
