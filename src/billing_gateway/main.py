"""FastAPI application entry point for the Billing Gateway."""

import logging
import platform
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from billing_gateway.config import Settings, get_settings
from billing_gateway.core.dispatcher import SinkDispatcher
from billing_gateway.providers.stripe.client import StripePaymentClient
from billing_gateway.providers.stripe.payments import router as payments_router
from billing_gateway.providers.stripe.processor import WebhookProcessor
from billing_gateway.providers.stripe.router import router as webhook_router
from billing_gateway.sinks import (
    EventSink,
    ProcessedEventStore,
    build_event_sink,
    build_processed_event_store,
)

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle.

    - Prepare the event sink and processed-event store on startup
    - Start the sink dispatcher on startup
    - Drain and stop the dispatcher on shutdown
    """
    sink: EventSink = app.state.event_sink
    store: ProcessedEventStore = app.state.event_store
    dispatcher: SinkDispatcher = app.state.dispatcher

    # Startup
    logger.info("Starting Billing Gateway...")
    await store.start()
    await sink.start()
    await dispatcher.start()
    logger.info(
        "Billing Gateway started (sink=%s, dispatch=%s)", sink.name, dispatcher.mode
    )

    yield

    # Shutdown
    logger.info("Shutting down Billing Gateway...")
    await dispatcher.stop()
    await sink.stop()
    await store.stop()
    logger.info("Billing Gateway shutdown complete")


def create_app(
    settings: Settings | None = None,
    stripe_client: StripePaymentClient | None = None,
    event_sink: EventSink | None = None,
    event_store: ProcessedEventStore | None = None,
) -> FastAPI:
    """
    Build the application with its collaborators attached to app.state.

    Anything not passed in is built from settings, which are read once here.
    """
    settings = settings or get_settings()

    if stripe_client is None and settings.stripe_configured:
        stripe_client = StripePaymentClient.from_api_key(settings.stripe_secret_key)

    sink = event_sink or build_event_sink(settings)
    store = event_store or build_processed_event_store(settings)
    dispatcher = SinkDispatcher.from_settings(settings, sink, store)

    app = FastAPI(
        title="Billing Gateway",
        description="Stripe payment proxy and webhook ingestion",
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.stripe_client = stripe_client
    app.state.event_sink = sink
    app.state.event_store = store
    app.state.dispatcher = dispatcher
    app.state.webhook_processor = WebhookProcessor(
        secret=settings.stripe_webhook_secret,
        store=store,
        dispatcher=dispatcher,
        tolerance=settings.stripe_signature_tolerance,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else settings.allowed_origins,
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(webhook_router, prefix="/api/stripe", tags=["stripe"])
    app.include_router(payments_router, prefix="/api/stripe", tags=["stripe"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint for container orchestration."""
        return {
            "status": "healthy",
            "service": "billing-gateway",
            "sink": sink.name,
            "dispatch_mode": dispatcher.mode,
        }

    @app.get("/api/status")
    async def status():
        """Service status with configuration presence (never the values)."""
        return {
            "status": "OK",
            "message": "Billing Gateway API is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": settings.app_version,
            "endpoints": {
                "payment": "/api/stripe/create-payment-intent",
                "webhook": "/api/stripe/webhook",
                "portal": "/api/stripe/customer-portal",
            },
            "environment": {
                "python_version": platform.python_version(),
                "stripe_configured": settings.stripe_configured,
                "webhook_configured": settings.webhook_configured,
            },
        }

    return app


def get_app() -> FastAPI:
    """Factory for `uvicorn --factory billing_gateway.main:get_app`."""
    settings = get_settings()
    configure_logging(settings)
    return create_app(settings)
