"""Event sink and processed-event store implementations."""

from billing_gateway.config import Settings
from billing_gateway.sinks.base import EventSink, ProcessedEventStore
from billing_gateway.sinks.memory import InMemoryEventSink, InMemoryProcessedEventStore
from billing_gateway.sinks.postgres import PostgresEventSink, PostgresProcessedEventStore


def build_event_sink(settings: Settings) -> EventSink:
    """Select the sink implementation named by configuration."""
    if settings.sink_backend == "postgres":
        return PostgresEventSink(settings.postgres_dsn)
    return InMemoryEventSink()


def build_processed_event_store(settings: Settings) -> ProcessedEventStore:
    """Select the processed-event store matching the configured backend."""
    if settings.sink_backend == "postgres":
        return PostgresProcessedEventStore(
            settings.postgres_dsn, claim_ttl_seconds=settings.claim_ttl_seconds
        )
    return InMemoryProcessedEventStore(claim_ttl_seconds=settings.claim_ttl_seconds)


__all__ = [
    "EventSink",
    "InMemoryEventSink",
    "InMemoryProcessedEventStore",
    "PostgresEventSink",
    "PostgresProcessedEventStore",
    "ProcessedEventStore",
    "build_event_sink",
    "build_processed_event_store",
]
