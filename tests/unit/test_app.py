"""Tests for application wiring, status and configuration."""

import pytest
from pydantic import ValidationError

from billing_gateway.config import Settings
from billing_gateway.main import create_app
from billing_gateway.sinks import (
    InMemoryEventSink,
    InMemoryProcessedEventStore,
    PostgresEventSink,
    PostgresProcessedEventStore,
    build_event_sink,
    build_processed_event_store,
)


class TestStatusEndpoints:
    def test_status_reports_configuration_presence(self, client, stripe_webhook_secret):
        response = client.get("/api/status")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "OK"
        assert body["endpoints"]["webhook"] == "/api/stripe/webhook"
        assert body["environment"]["stripe_configured"] is True
        assert body["environment"]["webhook_configured"] is True
        assert stripe_webhook_secret not in response.text
        assert "sk_test_12345" not in response.text

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "service": "billing-gateway",
            "sink": "memory",
            "dispatch_mode": "inline",
        }

    def test_cors_preflight_for_allowed_origin(self, client):
        response = client.options(
            "/api/stripe/create-payment-intent",
            headers={
                "Origin": "https://gurukullam.github.io",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "https://gurukullam.github.io"

    def test_cors_preflight_for_unknown_origin(self, client):
        response = client.options(
            "/api/stripe/create-payment-intent",
            headers={
                "Origin": "https://evil.example.com",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert "access-control-allow-origin" not in response.headers


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.stripe_signature_tolerance == 300
        assert settings.dispatch_mode == "queue"
        assert settings.sink_backend == "memory"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_from_env")
        monkeypatch.setenv("DISPATCH_MODE", "inline")

        settings = Settings(_env_file=None)

        assert settings.stripe_webhook_secret == "whsec_from_env"
        assert settings.webhook_configured is True
        assert settings.dispatch_mode == "inline"

    def test_settings_are_immutable(self):
        settings = Settings(_env_file=None)

        with pytest.raises(ValidationError):
            settings.stripe_webhook_secret = "whsec_changed"

    def test_rejects_unknown_backend(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, sink_backend="redis")


class TestBackendSelection:
    def test_memory_backend(self):
        settings = Settings(_env_file=None, sink_backend="memory")

        assert isinstance(build_event_sink(settings), InMemoryEventSink)
        assert isinstance(build_processed_event_store(settings), InMemoryProcessedEventStore)

    def test_postgres_backend(self):
        settings = Settings(_env_file=None, sink_backend="postgres")

        assert isinstance(build_event_sink(settings), PostgresEventSink)
        assert isinstance(build_processed_event_store(settings), PostgresProcessedEventStore)

    def test_app_builds_from_settings(self):
        settings = Settings(_env_file=None, stripe_secret_key="", dispatch_mode="inline")

        app = create_app(settings)

        assert app.state.stripe_client is None
        assert isinstance(app.state.event_sink, InMemoryEventSink)
        assert app.state.dispatcher.mode == "inline"
