"""Webhook delivery envelope.

A WebhookDelivery is what the push cycle hands to the notifier and what
the worker later POSTs to tenant endpoints. It serializes to a flat dict
of strings for Redis Streams and back losslessly.

Stream key pattern: t:{tenant_id}:webhooks
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class WebhookDelivery(BaseModel):
    """One outbound webhook notification.

    Attributes:
        delivery_id: Unique id (auto-generated UUID4). Receivers use it to
            deduplicate, since delivery is at-least-once.
        event_type: e.g. "ticketing.ticket.created".
        tenant_id: Tenant whose endpoints receive the notification.
        connection_id: Connection the record belongs to.
        correlation_id: Audit event id of the cycle that produced it.
        timestamp: UTC creation time.
        data: The canonical record as returned to the caller.
        attempt: Delivery attempts made so far.
    """

    delivery_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str
    tenant_id: str
    connection_id: str | None = None
    correlation_id: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: dict[str, Any] = Field(default_factory=dict)
    attempt: int = 0

    def body(self) -> bytes:
        """JSON body POSTed to receivers (excludes delivery bookkeeping)."""
        payload = {
            "id": self.delivery_id,
            "type": self.event_type,
            "created_at": self.timestamp.isoformat(),
            "data": self.data,
        }
        return json.dumps(payload, default=str, separators=(",", ":")).encode("utf-8")

    def to_stream_dict(self) -> dict[str, str]:
        """Serialize to a flat dict of strings suitable for XADD."""
        return {
            "delivery_id": self.delivery_id,
            "event_type": self.event_type,
            "tenant_id": self.tenant_id,
            "connection_id": self.connection_id or "",
            "correlation_id": self.correlation_id or "",
            "timestamp": self.timestamp.isoformat(),
            "data": json.dumps(self.data, default=str),
            "attempt": str(self.attempt),
        }

    @classmethod
    def from_stream_dict(cls, raw: dict[str, str]) -> WebhookDelivery:
        """Reverse to_stream_dict()."""
        return cls(
            delivery_id=raw["delivery_id"],
            event_type=raw["event_type"],
            tenant_id=raw["tenant_id"],
            connection_id=raw.get("connection_id") or None,
            correlation_id=raw.get("correlation_id") or None,
            timestamp=datetime.fromisoformat(raw["timestamp"]),
            data=json.loads(raw["data"]) if raw.get("data") else {},
            attempt=int(raw.get("attempt", "0")),
        )
