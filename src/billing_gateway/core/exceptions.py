"""Custom exceptions for the billing gateway."""


class PaymentGatewayError(Exception):
    """Base exception for billing gateway errors."""

    pass


class SignatureVerificationError(PaymentGatewayError):
    """Raised when webhook signature verification fails."""

    def __init__(self, message: str = "Signature verification failed"):
        self.message = message
        super().__init__(self.message)


class SignatureExpiredError(SignatureVerificationError):
    """Raised when webhook signature timestamp is expired."""

    def __init__(self, message: str = "Signature timestamp expired"):
        super().__init__(message)


class WebhookSecretNotConfiguredError(SignatureVerificationError):
    """Raised when no webhook signing secret is available to verify against."""

    def __init__(self, message: str = "Webhook secret not configured"):
        super().__init__(message)


class PayloadValidationError(PaymentGatewayError):
    """Raised when a verified webhook payload cannot be parsed."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)


class RequestValidationFailure(PaymentGatewayError):
    """Raised when a proxy request is missing required fields."""

    def __init__(self, message: str, missing: list[str] | None = None):
        self.message = message
        self.missing = missing or []
        super().__init__(self.message)


class SinkDeliveryError(PaymentGatewayError):
    """Raised when the event sink rejects or fails to record an event."""

    def __init__(self, message: str, event_id: str | None = None):
        self.message = message
        self.event_id = event_id
        super().__init__(self.message)
