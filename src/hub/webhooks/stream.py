"""Tenant-scoped webhook stream on Redis Streams.

Stream key: t:{tenant_id}:webhooks
DLQ key:    t:{tenant_id}:webhooks:dlq
"""

from __future__ import annotations

from datetime import datetime, timezone

import redis.asyncio as aioredis
import structlog

from src.hub.webhooks.schemas import WebhookDelivery

logger = structlog.get_logger(__name__)


class WebhookStream:
    """Publish, consume and dead-letter webhook deliveries for one tenant.

    Args:
        redis: Async Redis client.
        tenant_id: Tenant whose deliveries this stream carries.
        maxlen: Approximate stream length cap passed to XADD.
    """

    def __init__(self, redis: aioredis.Redis, tenant_id: str, maxlen: int = 10000) -> None:
        self._redis = redis
        self._tenant_id = tenant_id
        self._maxlen = maxlen

    @property
    def key(self) -> str:
        return f"t:{self._tenant_id}:webhooks"

    @property
    def dlq_key(self) -> str:
        return f"{self.key}:dlq"

    async def publish(self, delivery: WebhookDelivery) -> str:
        """Append a delivery to the stream.

        Raises:
            ValueError: If the delivery belongs to another tenant.
        """
        if delivery.tenant_id != self._tenant_id:
            msg = (
                f"Delivery tenant_id '{delivery.tenant_id}' does not match "
                f"stream tenant_id '{self._tenant_id}'"
            )
            raise ValueError(msg)

        message_id = await self._redis.xadd(
            self.key,
            delivery.to_stream_dict(),
            maxlen=self._maxlen,
            approximate=True,
        )
        logger.debug(
            "webhook.published",
            stream=self.key,
            event_type=delivery.event_type,
            delivery_id=delivery.delivery_id,
            message_id=message_id,
        )
        return message_id

    async def read(
        self,
        group: str,
        consumer: str,
        count: int = 10,
        block: int = 5000,
    ) -> list[tuple[str, list[tuple[str, dict[str, str]]]]]:
        """Read new deliveries as a member of a consumer group.

        Creates the group on first use.
        """
        try:
            await self._redis.xgroup_create(self.key, group, id="0", mkstream=True)
        except aioredis.ResponseError:
            pass  # BUSYGROUP: group already exists

        return await self._redis.xreadgroup(
            groupname=group,
            consumername=consumer,
            streams={self.key: ">"},
            count=count,
            block=block,
        )

    async def ack(self, group: str, message_id: str) -> None:
        await self._redis.xack(self.key, group, message_id)

    async def dead_letter(self, raw: dict[str, str], message_id: str, error: str) -> str:
        """Move an exhausted delivery to the DLQ with failure metadata."""
        entry = dict(raw)
        entry["_original_message_id"] = message_id
        entry["_error"] = error
        entry["_dlq_timestamp"] = datetime.now(timezone.utc).isoformat()
        dlq_id = await self._redis.xadd(self.dlq_key, entry)
        logger.error(
            "webhook.dead_lettered",
            stream=self.key,
            message_id=message_id,
            delivery_id=raw.get("delivery_id"),
            error=error,
        )
        return dlq_id
