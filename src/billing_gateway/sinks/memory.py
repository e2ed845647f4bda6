"""In-process implementations of the sink and processed-event store."""

import asyncio
import logging
import time
from typing import Any

from billing_gateway.core.base_models import (
    DeadLetterRecord,
    ProcessedEventRecord,
    SubscriptionEvent,
)
from billing_gateway.sinks.base import EventSink, ProcessedEventStore

logger = logging.getLogger(__name__)


class InMemoryEventSink(EventSink):
    """Keeps recorded events in a list. Used for tests and local runs."""

    name = "memory"

    def __init__(self) -> None:
        self.records: list[SubscriptionEvent] = []

    async def record_subscription_event(
        self,
        event_id: str,
        event_type: str,
        customer_ref: str | None,
        payload: dict[str, Any],
    ) -> bool:
        self.records.append(
            SubscriptionEvent(
                event_id=event_id,
                event_type=event_type,
                customer_ref=customer_ref,
                payload=payload,
            )
        )
        logger.debug("Recorded %s event %s in memory", event_type, event_id)
        return True

    def records_for(self, event_id: str) -> list[SubscriptionEvent]:
        return [r for r in self.records if r.event_id == event_id]


class InMemoryProcessedEventStore(ProcessedEventStore):
    """Processed-event store guarded by an asyncio lock."""

    def __init__(self, claim_ttl_seconds: float = 600.0) -> None:
        self._claim_ttl = claim_ttl_seconds
        self._claims: dict[str, float] = {}
        self._processed: dict[str, ProcessedEventRecord] = {}
        self.dead_letters: list[DeadLetterRecord] = []
        self._lock = asyncio.Lock()

    async def claim(self, event_id: str, event_type: str) -> bool:
        async with self._lock:
            if event_id in self._processed:
                return False

            claimed_at = self._claims.get(event_id)
            now = time.monotonic()
            if claimed_at is not None and now - claimed_at < self._claim_ttl:
                return False

            if claimed_at is not None:
                logger.warning("Reclaiming abandoned claim for event %s", event_id)
            self._claims[event_id] = now
            return True

    async def complete(self, event_id: str, event_type: str) -> None:
        async with self._lock:
            self._claims.pop(event_id, None)
            # Records are immutable once written
            if event_id not in self._processed:
                self._processed[event_id] = ProcessedEventRecord(
                    event_id=event_id, event_type=event_type
                )

    async def release(self, event_id: str) -> None:
        async with self._lock:
            self._claims.pop(event_id, None)

    async def dead_letter(self, record: DeadLetterRecord) -> None:
        async with self._lock:
            self.dead_letters.append(record)

    async def is_processed(self, event_id: str) -> bool:
        async with self._lock:
            return event_id in self._processed

    def get_record(self, event_id: str) -> ProcessedEventRecord | None:
        return self._processed.get(event_id)
