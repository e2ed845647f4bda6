"""Billing gateway: Stripe payment proxy and webhook ingestion service."""

__version__ = "1.0.0"
