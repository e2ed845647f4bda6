"""Delivery of subscription events to the event sink."""

import asyncio
import logging
from typing import Literal

from billing_gateway.config import Settings
from billing_gateway.core.base_models import DeadLetterRecord, SubscriptionEvent
from billing_gateway.core.exceptions import SinkDeliveryError
from billing_gateway.sinks.base import EventSink, ProcessedEventStore

logger = logging.getLogger(__name__)


class SinkDispatcher:
    """
    Hands claimed events to the sink with a bounded timeout and retries.

    In "inline" mode the delivery is awaited by the caller. In "queue" mode
    jobs go onto a bounded asyncio queue drained by worker tasks, so the
    webhook acknowledgement never waits on the sink.

    Delivery failures never propagate: after the last attempt the event is
    written to the store's dead-letter records for out-of-band replay and
    the claim is released so a redelivery from Stripe can also retry it.
    """

    def __init__(
        self,
        sink: EventSink,
        store: ProcessedEventStore,
        mode: Literal["inline", "queue"] = "queue",
        queue_size: int = 1000,
        workers: int = 4,
        timeout: float = 5.0,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
        retry_max_delay: float = 8.0,
        drain_timeout: float = 10.0,
    ):
        self.sink = sink
        self.store = store
        self.mode = mode
        self._queue_size = queue_size
        self._worker_count = max(1, workers)
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay
        self._retry_max_delay = retry_max_delay
        self._drain_timeout = drain_timeout
        self._queue: asyncio.Queue[SubscriptionEvent] | None = None
        self._workers: list[asyncio.Task] = []

    @classmethod
    def from_settings(
        cls, settings: Settings, sink: EventSink, store: ProcessedEventStore
    ) -> "SinkDispatcher":
        return cls(
            sink=sink,
            store=store,
            mode=settings.dispatch_mode,
            queue_size=settings.dispatch_queue_size,
            workers=settings.dispatch_workers,
            timeout=settings.sink_timeout_seconds,
            max_attempts=settings.sink_max_attempts,
            retry_delay=settings.sink_retry_delay,
            retry_max_delay=settings.sink_retry_max_delay,
            drain_timeout=settings.dispatch_drain_timeout,
        )

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        """Start worker tasks (queue mode only)."""
        if self.mode != "queue" or self._workers:
            return

        self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"sink-dispatch-{i}")
            for i in range(self._worker_count)
        ]
        logger.info(
            "Sink dispatcher started (%d workers, queue size %d)",
            self._worker_count,
            self._queue_size,
        )

    async def stop(self) -> None:
        """Drain outstanding jobs for up to the drain timeout, then stop workers."""
        if not self._workers:
            return

        assert self._queue is not None
        try:
            await asyncio.wait_for(self._queue.join(), timeout=self._drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Sink dispatcher stopped with %d undelivered events", self._queue.qsize()
            )

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        logger.info("Sink dispatcher stopped")

    async def join(self) -> None:
        """Wait until every queued job has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def submit(self, event: SubscriptionEvent) -> None:
        """Deliver a claimed event, inline or via the queue."""
        if self.mode == "inline" or self._queue is None:
            await self.deliver(event)
            return

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error("Sink dispatch queue full, dead-lettering event %s", event.event_id)
            await self._dead_letter(event, "queue_full", "Sink dispatch queue full", 0)
            await self._release(event)

    async def deliver(self, event: SubscriptionEvent) -> bool:
        """
        Deliver one event with retries.

        Returns:
            True if the sink recorded the event, False after the last failure.
        """
        delay = self._retry_delay

        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._attempt(event)
            except Exception as e:
                if attempt < self._max_attempts:
                    logger.warning(
                        "Sink delivery attempt %d/%d for event %s failed: %s. Retrying in %.1fs...",
                        attempt,
                        self._max_attempts,
                        event.event_id,
                        str(e),
                        delay,
                    )
                    await asyncio.sleep(delay)
                    delay = min(delay * 2, self._retry_max_delay)
                    continue

                logger.error(
                    "Failed to deliver event %s to %s sink after %d attempts: %s",
                    event.event_id,
                    self.sink.name,
                    self._max_attempts,
                    str(e),
                    exc_info=True,
                )
                await self._dead_letter(
                    event, "sink_delivery_failed", str(e) or type(e).__name__, attempt
                )
                await self._release(event)
                return False

            await self.store.complete(event.event_id, event.event_type)
            logger.info("Delivered event %s to %s sink", event.event_id, self.sink.name)
            return True

        return False

    async def _attempt(self, event: SubscriptionEvent) -> None:
        try:
            ok = await asyncio.wait_for(
                self.sink.record_subscription_event(
                    event.event_id,
                    event.event_type,
                    event.customer_ref,
                    dict(event.payload),
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise SinkDeliveryError(
                f"Sink timed out after {self._timeout}s", event_id=event.event_id
            ) from e

        if not ok:
            raise SinkDeliveryError("Sink rejected event", event_id=event.event_id)

    async def _dead_letter(
        self, event: SubscriptionEvent, error_type: str, error_message: str, retry_count: int
    ) -> None:
        record = DeadLetterRecord(
            event_id=event.event_id,
            event_type=event.event_type,
            payload=dict(event.payload),
            error_type=error_type,
            error_message=error_message,
            retry_count=retry_count,
        )
        try:
            await self.store.dead_letter(record)
        except Exception as e:
            logger.error(
                "Failed to dead-letter event %s: %s", event.event_id, str(e), exc_info=True
            )

    async def _release(self, event: SubscriptionEvent) -> None:
        try:
            await self.store.release(event.event_id)
        except Exception as e:
            logger.error("Failed to release claim for event %s: %s", event.event_id, str(e))

    async def _worker(self, index: int) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            event = await queue.get()
            try:
                await self.deliver(event)
            except Exception as e:
                # complete() itself failed; the claim stays until its TTL lapses
                logger.error(
                    "Dispatch worker %d failed on event %s: %s",
                    index,
                    event.event_id,
                    str(e),
                    exc_info=True,
                )
            finally:
                queue.task_done()
