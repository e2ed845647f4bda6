"""Base models shared across the gateway."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class WebhookStatus(str, Enum):
    """Outcome of an acknowledged webhook delivery."""

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    FAILED = "failed"


class WebhookResult(BaseModel):
    """Acknowledgement body returned once a webhook has been verified."""

    received: bool = True
    status: WebhookStatus
    event_id: str | None = None
    event_type: str | None = None


class SubscriptionEvent(BaseModel):
    """A verified, recognised event on its way to the event sink."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    event_type: str
    customer_ref: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class ProcessedEventRecord(BaseModel):
    """Durable marker that an event id's side effect has been applied."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    event_type: str
    processed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("processed_at")
    def serialize_datetime(self, value: datetime) -> str:
        return value.isoformat()


class DeadLetterRecord(BaseModel):
    """A verified event whose side effect could not be applied."""

    model_config = ConfigDict(frozen=True)

    provider: str = Field(default="stripe", description="Payment provider name")
    event_id: str
    event_type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    error_type: str = Field(..., description="extraction_failed, queue_full, sink_delivery_failed")
    error_message: str
    retry_count: int = Field(default=0, description="Delivery attempts made before giving up")
    failed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("failed_at")
    def serialize_datetime(self, value: datetime) -> str:
        return value.isoformat()
