"""Abstract interfaces for event persistence."""

from abc import ABC, abstractmethod
from typing import Any

from billing_gateway.core.base_models import DeadLetterRecord


class EventSink(ABC):
    """Receives each newly seen subscription event exactly once."""

    name: str = "abstract"

    @abstractmethod
    async def record_subscription_event(
        self,
        event_id: str,
        event_type: str,
        customer_ref: str | None,
        payload: dict[str, Any],
    ) -> bool:
        """
        Persist or forward a subscription event.

        Returns:
            True on success, False if the event could not be recorded.
            Implementations may also raise; callers treat both as failure.
        """

    async def start(self) -> None:
        """Prepare the sink for use (connect, create schema)."""

    async def stop(self) -> None:
        """Release any resources held by the sink."""


class ProcessedEventStore(ABC):
    """
    Tracks which event ids have had their side effect applied.

    An id moves through two states: claimed while its side effect is in
    flight, then processed once the sink succeeds. A failed delivery releases
    the claim so a later redelivery can try again, and leaves a dead-letter
    record behind for out-of-band replay.
    """

    @abstractmethod
    async def claim(self, event_id: str, event_type: str) -> bool:
        """
        Atomically reserve an event id.

        Returns:
            True if the caller now owns the event, False if it is already
            processed or claimed by another delivery.
        """

    @abstractmethod
    async def complete(self, event_id: str, event_type: str) -> None:
        """Record the event as processed and drop its claim."""

    @abstractmethod
    async def release(self, event_id: str) -> None:
        """Drop a claim without recording the event as processed."""

    @abstractmethod
    async def dead_letter(self, record: DeadLetterRecord) -> None:
        """Keep an event whose side effect could not be applied."""

    @abstractmethod
    async def is_processed(self, event_id: str) -> bool:
        """Return True if the event's side effect has been applied."""

    async def start(self) -> None:
        """Prepare the store for use."""

    async def stop(self) -> None:
        """Release any resources held by the store."""
