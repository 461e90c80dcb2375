"""Webhook delivery worker.

Consumes a tenant's webhook stream through a consumer group and POSTs
each delivery to every active endpoint of the tenant whose scopes match
the event type. Bodies are signed with HMAC-SHA256 using the endpoint
secret.

Delivery is at-least-once: a message is acked only after every matching
endpoint accepted it. On failure the delivery is re-published with an
incremented attempt count after a backoff delay, and moved to the DLQ
once max_attempts is reached. Receivers deduplicate on delivery id.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac

import httpx
import structlog
from sqlalchemy import select

from src.hub.core.database import SessionFactory
from src.hub.core.monitoring import webhook_deliveries_total
from src.hub.models.shared import WebhookEndpointModel
from src.hub.webhooks.schemas import WebhookDelivery
from src.hub.webhooks.stream import WebhookStream

logger = structlog.get_logger(__name__)


def sign(secret: str, body: bytes) -> str:
    """HMAC-SHA256 signature header value for a body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def scope_matches(scopes: list[str] | None, event_type: str) -> bool:
    """True if an endpoint subscribed with ``scopes`` wants ``event_type``.

    An empty scope list subscribes to everything. A scope ending in ".*"
    matches every event type under that prefix.
    """
    if not scopes:
        return True
    for scope in scopes:
        if scope in ("*", event_type):
            return True
        if scope.endswith(".*") and event_type.startswith(scope[:-1]):
            return True
    return False


class DeliveryFailed(Exception):
    """At least one endpoint rejected or could not be reached."""


class WebhookWorker:
    """Deliver queued webhooks for one tenant.

    Args:
        stream: The tenant's WebhookStream.
        session_factory: Async callable yielding AsyncSession instances.
        http_client: Shared httpx client used for POSTs.
        group: Consumer group name.
        consumer_name: Unique consumer name within the group.
        max_attempts: Attempts before a delivery is dead-lettered.
        signature_header: Header carrying the HMAC signature.
        retry_delays: Backoff delays in seconds, indexed by attempt.
    """

    RETRY_DELAYS: list[float] = [1, 4, 16]

    def __init__(
        self,
        stream: WebhookStream,
        session_factory: SessionFactory,
        http_client: httpx.AsyncClient,
        *,
        group: str = "webhook-delivery",
        consumer_name: str = "worker-1",
        max_attempts: int = 3,
        signature_header: str = "X-Hub-Signature",
        retry_delays: list[float] | None = None,
    ) -> None:
        self._stream = stream
        self._session_factory = session_factory
        self._http = http_client
        self._group = group
        self._consumer_name = consumer_name
        self._max_attempts = max_attempts
        self._signature_header = signature_header
        self._retry_delays = retry_delays if retry_delays is not None else self.RETRY_DELAYS
        self._running = False

    # ── Loop ────────────────────────────────────────────────────────────────

    async def process_loop(self) -> None:
        """Read and deliver until stop() is called."""
        self._running = True
        logger.info(
            "webhook.worker_started",
            stream=self._stream.key,
            group=self._group,
            consumer=self._consumer_name,
        )
        while self._running:
            messages = await self._stream.read(self._group, self._consumer_name)
            for _stream_key, entries in messages or []:
                for message_id, raw in entries:
                    await self.handle_message(message_id, raw)

    def stop(self) -> None:
        self._running = False

    # ── Per-message handling ────────────────────────────────────────────────

    async def handle_message(self, message_id: str, raw: dict[str, str]) -> None:
        """Deliver one stream entry, then ack, retry or dead-letter it."""
        delivery = WebhookDelivery.from_stream_dict(raw)
        try:
            await self.deliver(delivery)
        except (DeliveryFailed, httpx.HTTPError) as exc:
            await self._on_failure(message_id, raw, delivery, str(exc))
            return

        await self._stream.ack(self._group, message_id)
        webhook_deliveries_total.labels(event_type=delivery.event_type, outcome="delivered").inc()
        logger.info(
            "webhook.delivered",
            delivery_id=delivery.delivery_id,
            event_type=delivery.event_type,
            attempt=delivery.attempt + 1,
        )

    async def _on_failure(
        self,
        message_id: str,
        raw: dict[str, str],
        delivery: WebhookDelivery,
        error: str,
    ) -> None:
        attempts = delivery.attempt + 1
        logger.warning(
            "webhook.delivery_failed",
            delivery_id=delivery.delivery_id,
            event_type=delivery.event_type,
            attempt=attempts,
            error=error,
        )

        if attempts >= self._max_attempts:
            await self._stream.dead_letter(raw, message_id, error)
            await self._stream.ack(self._group, message_id)
            webhook_deliveries_total.labels(
                event_type=delivery.event_type, outcome="dead_lettered"
            ).inc()
            return

        if self._retry_delays:
            delay = self._retry_delays[min(delivery.attempt, len(self._retry_delays) - 1)]
            await asyncio.sleep(delay)

        retry = delivery.model_copy(update={"attempt": attempts})
        await self._stream.publish(retry)
        await self._stream.ack(self._group, message_id)
        webhook_deliveries_total.labels(event_type=delivery.event_type, outcome="retried").inc()

    # ── HTTP delivery ───────────────────────────────────────────────────────

    async def endpoints_for(self, delivery: WebhookDelivery) -> list[WebhookEndpointModel]:
        """Active endpoints of the delivery's tenant subscribed to its type."""
        async for session in self._session_factory():
            stmt = select(WebhookEndpointModel).where(
                WebhookEndpointModel.tenant_id == delivery.tenant_id,
                WebhookEndpointModel.active.is_(True),
            )
            endpoints = (await session.execute(stmt)).scalars().all()
            return [e for e in endpoints if scope_matches(e.scopes, delivery.event_type)]
        return []

    async def deliver(self, delivery: WebhookDelivery) -> int:
        """POST the delivery to every matching endpoint.

        Returns:
            Number of endpoints that accepted it.

        Raises:
            DeliveryFailed: If any endpoint answered non-2xx or was unreachable.
        """
        endpoints = await self.endpoints_for(delivery)
        if not endpoints:
            logger.debug(
                "webhook.no_endpoints",
                tenant_id=delivery.tenant_id,
                event_type=delivery.event_type,
            )
            return 0

        body = delivery.body()
        failures: list[str] = []
        for endpoint in endpoints:
            headers = {
                "Content-Type": "application/json",
                self._signature_header: sign(endpoint.secret, body),
                "X-Hub-Delivery": delivery.delivery_id,
                "X-Hub-Event": delivery.event_type,
            }
            try:
                response = await self._http.post(endpoint.url, content=body, headers=headers)
            except httpx.HTTPError as exc:
                failures.append(f"{endpoint.id}: {exc}")
                continue
            if not response.is_success:
                failures.append(f"{endpoint.id}: HTTP {response.status_code}")

        if failures:
            raise DeliveryFailed("; ".join(failures))
        return len(endpoints)
