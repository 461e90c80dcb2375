"""Prometheus metrics for the synchronization pipeline.

Provides:
- Push cycle, connector call, page read and webhook delivery metrics
- track_connector_call(): Context manager recording connector latency/outcome
- render_metrics(): Prometheus exposition payload for scraping
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from prometheus_client import REGISTRY, Counter, Histogram, generate_latest

# ── Push Metrics ─────────────────────────────────────────────────────────────

push_cycles_total = Counter(
    "hub_push_cycles_total",
    "Completed or aborted push cycles",
    ["entity_type", "provider", "outcome"],
)

upsert_conflicts_total = Counter(
    "hub_upsert_conflicts_total",
    "Unique-constraint conflicts converted into updates",
    ["entity_type"],
)

# ── Connector Metrics ────────────────────────────────────────────────────────

connector_requests_total = Counter(
    "hub_connector_requests_total",
    "Provider connector write calls",
    ["provider", "status"],
)

connector_request_duration_seconds = Histogram(
    "hub_connector_request_duration_seconds",
    "Provider connector write duration in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ── Read Metrics ─────────────────────────────────────────────────────────────

pages_served_total = Counter(
    "hub_pages_served_total",
    "Paginated list reads served",
    ["entity_type"],
)

# ── Webhook Metrics ──────────────────────────────────────────────────────────

webhook_deliveries_total = Counter(
    "hub_webhook_deliveries_total",
    "Webhook delivery attempts",
    ["event_type", "outcome"],
)


@asynccontextmanager
async def track_connector_call(provider: str) -> AsyncGenerator[None, None]:
    """Record duration and outcome of a connector call.

    Usage:
        async with track_connector_call("zendesk"):
            response = await connector.write(entity_type, payload, context)
    """
    start_time = time.perf_counter()
    status = "success"

    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        connector_requests_total.labels(provider=provider, status=status).inc()
        connector_request_duration_seconds.labels(provider=provider).observe(
            time.perf_counter() - start_time
        )


def render_metrics() -> bytes:
    """Generate Prometheus exposition format payload."""
    return generate_latest(REGISTRY)
