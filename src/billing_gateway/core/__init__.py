"""Core shared functionality for the billing gateway."""

from billing_gateway.core.base_models import (
    DeadLetterRecord,
    ProcessedEventRecord,
    SubscriptionEvent,
    WebhookResult,
    WebhookStatus,
)

__all__ = [
    "DeadLetterRecord",
    "ProcessedEventRecord",
    "SubscriptionEvent",
    "WebhookResult",
    "WebhookStatus",
]
