"""Postgres-backed event sink and processed-event store (psycopg 3, async)."""

import json
import logging
from typing import Any

import psycopg

from billing_gateway.core.base_models import DeadLetterRecord
from billing_gateway.sinks.base import EventSink, ProcessedEventStore

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS subscription_events (
        event_id TEXT PRIMARY KEY,
        event_type TEXT NOT NULL,
        customer_ref TEXT,
        payload JSONB NOT NULL DEFAULT '{}'::jsonb,
        recorded_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS processed_webhook_events (
        event_id TEXT PRIMARY KEY,
        event_type TEXT NOT NULL,
        state TEXT NOT NULL DEFAULT 'claimed' CHECK (state IN ('claimed', 'processed')),
        claimed_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        processed_at TIMESTAMPTZ
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS failed_webhook_events (
        id BIGSERIAL PRIMARY KEY,
        provider TEXT NOT NULL,
        event_id TEXT NOT NULL,
        event_type TEXT NOT NULL,
        payload JSONB NOT NULL DEFAULT '{}'::jsonb,
        error_type TEXT NOT NULL,
        error_message TEXT NOT NULL,
        retry_count INTEGER NOT NULL DEFAULT 0,
        failed_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS failed_webhook_events_event_id ON failed_webhook_events (event_id)",
)

# One row per event id. The conflict branch locks the existing row and
# re-checks it, so a processed row or a live claim is never taken over.
CLAIM_SQL = """
    INSERT INTO processed_webhook_events AS t (event_id, event_type, state, claimed_at)
    VALUES (%(event_id)s, %(event_type)s, 'claimed', now())
    ON CONFLICT (event_id) DO UPDATE SET claimed_at = now()
    WHERE t.state = 'claimed'
      AND t.claimed_at < now() - make_interval(secs => %(ttl)s)
    RETURNING event_id
"""

COMPLETE_SQL = """
    INSERT INTO processed_webhook_events AS t (event_id, event_type, state, processed_at)
    VALUES (%(event_id)s, %(event_type)s, 'processed', now())
    ON CONFLICT (event_id) DO UPDATE SET state = 'processed', processed_at = now()
    WHERE t.state = 'claimed'
"""

RELEASE_SQL = """
    DELETE FROM processed_webhook_events
    WHERE event_id = %(event_id)s AND state = 'claimed'
"""

DEAD_LETTER_SQL = """
    INSERT INTO failed_webhook_events (
        provider, event_id, event_type, payload, error_type, error_message, retry_count, failed_at
    ) VALUES (
        %(provider)s, %(event_id)s, %(event_type)s, %(payload)s::jsonb,
        %(error_type)s, %(error_message)s, %(retry_count)s, %(failed_at)s
    )
"""

async def ensure_schema(dsn: str) -> None:
    """Create the gateway tables if they do not exist."""
    async with await psycopg.AsyncConnection.connect(dsn) as conn:
        async with conn.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                await cur.execute(statement)
        await conn.commit()
    logger.info("Postgres schema ready")


class PostgresEventSink(EventSink):
    """Writes subscription events to the subscription_events table."""

    name = "postgres"

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn

    async def start(self) -> None:
        await ensure_schema(self._dsn)

    async def record_subscription_event(
        self,
        event_id: str,
        event_type: str,
        customer_ref: str | None,
        payload: dict[str, Any],
    ) -> bool:
        record = {
            "event_id": event_id,
            "event_type": event_type,
            "customer_ref": customer_ref,
            "payload": json.dumps(payload),
        }

        async with await psycopg.AsyncConnection.connect(self._dsn) as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO subscription_events (
                        event_id, event_type, customer_ref, payload
                    ) VALUES (
                        %(event_id)s, %(event_type)s, %(customer_ref)s, %(payload)s::jsonb
                    )
                    ON CONFLICT (event_id) DO NOTHING
                    """,
                    record,
                )
            await conn.commit()

        logger.info("Persisted %s event %s to Postgres", event_type, event_id)
        return True


class PostgresProcessedEventStore(ProcessedEventStore):
    """
    Processed-event store keeping one row per event id.

    A row is inserted in state 'claimed' and moves to 'processed' once the
    sink succeeds. Every transition is a single statement on that row, so
    a delivery racing a completion always sees the finished state.
    """

    def __init__(self, dsn: str, claim_ttl_seconds: float = 600.0) -> None:
        self._dsn = dsn
        self._claim_ttl = claim_ttl_seconds

    async def start(self) -> None:
        await ensure_schema(self._dsn)

    async def claim(self, event_id: str, event_type: str) -> bool:
        async with await psycopg.AsyncConnection.connect(self._dsn) as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    CLAIM_SQL,
                    {"event_id": event_id, "event_type": event_type, "ttl": self._claim_ttl},
                )
                row = await cur.fetchone()
            await conn.commit()
        return row is not None

    async def complete(self, event_id: str, event_type: str) -> None:
        async with await psycopg.AsyncConnection.connect(self._dsn) as conn:
            async with conn.cursor() as cur:
                await cur.execute(COMPLETE_SQL, {"event_id": event_id, "event_type": event_type})
            await conn.commit()

    async def release(self, event_id: str) -> None:
        async with await psycopg.AsyncConnection.connect(self._dsn) as conn:
            async with conn.cursor() as cur:
                await cur.execute(RELEASE_SQL, {"event_id": event_id})
            await conn.commit()

    async def dead_letter(self, record: DeadLetterRecord) -> None:
        params = record.model_dump(exclude={"payload", "failed_at"})
        params["payload"] = json.dumps(record.payload)
        params["failed_at"] = record.failed_at

        async with await psycopg.AsyncConnection.connect(self._dsn) as conn:
            async with conn.cursor() as cur:
                await cur.execute(DEAD_LETTER_SQL, params)
            await conn.commit()

        logger.info(
            "Dead-lettered %s event %s (%s)", record.event_type, record.event_id, record.error_type
        )

    async def is_processed(self, event_id: str) -> bool:
        async with await psycopg.AsyncConnection.connect(self._dsn) as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "SELECT 1 FROM processed_webhook_events "
                    "WHERE event_id = %(event_id)s AND state = 'processed'",
                    {"event_id": event_id},
                )
                row = await cur.fetchone()
        return row is not None
