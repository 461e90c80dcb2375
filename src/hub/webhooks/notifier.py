"""Webhook notifier interface and the Redis Streams implementation.

The push cycle only ever talks to a WebhookNotifier. The stream-backed
notifier enqueues the delivery; actual HTTP delivery happens in
WebhookWorker, outside the request path.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import redis.asyncio as aioredis

from src.hub.webhooks.schemas import WebhookDelivery
from src.hub.webhooks.stream import WebhookStream


class WebhookNotifier(ABC):
    """Accepts "record created" notifications for a tenant."""

    @abstractmethod
    async def dispatch(
        self,
        record: dict[str, Any],
        event_type: str,
        tenant_id: str,
        correlation_id: str | None = None,
        connection_id: str | None = None,
    ) -> str:
        """Queue a notification carrying ``record``; returns the delivery id."""


class StreamWebhookNotifier(WebhookNotifier):
    """Enqueue deliveries on the tenant's webhook stream.

    Args:
        redis: Async Redis client.
        maxlen: Approximate stream length cap.
    """

    def __init__(self, redis: aioredis.Redis, maxlen: int = 10000) -> None:
        self._redis = redis
        self._maxlen = maxlen

    async def dispatch(
        self,
        record: dict[str, Any],
        event_type: str,
        tenant_id: str,
        correlation_id: str | None = None,
        connection_id: str | None = None,
    ) -> str:
        delivery = WebhookDelivery(
            event_type=event_type,
            tenant_id=tenant_id,
            connection_id=connection_id,
            correlation_id=correlation_id,
            data=record,
        )
        await WebhookStream(self._redis, tenant_id, self._maxlen).publish(delivery)
        return delivery.delivery_id
