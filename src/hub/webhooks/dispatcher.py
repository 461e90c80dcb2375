"""Post-commit webhook dispatch.

The push cycle must not fail, nor wait, because a webhook could not be
queued: the record is already committed by then. PostCommitDispatcher
runs each dispatch() in a background task, logs failures and swallows
them. drain() lets shutdown hooks and tests wait for in-flight tasks.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from src.hub.core.monitoring import webhook_deliveries_total
from src.hub.webhooks.notifier import WebhookNotifier

logger = structlog.get_logger(__name__)


class PostCommitDispatcher:
    """Fire-and-forget wrapper around a WebhookNotifier.

    Args:
        notifier: Notifier that enqueues deliveries.
    """

    def __init__(self, notifier: WebhookNotifier) -> None:
        self._notifier = notifier
        self._pending: set[asyncio.Task] = set()

    def schedule(
        self,
        record: dict[str, Any],
        event_type: str,
        tenant_id: str,
        correlation_id: str | None = None,
        connection_id: str | None = None,
    ) -> asyncio.Task:
        """Start dispatching in the background and return the task."""
        task = asyncio.create_task(
            self._dispatch(record, event_type, tenant_id, correlation_id, connection_id)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _dispatch(
        self,
        record: dict[str, Any],
        event_type: str,
        tenant_id: str,
        correlation_id: str | None,
        connection_id: str | None,
    ) -> None:
        try:
            delivery_id = await self._notifier.dispatch(
                record, event_type, tenant_id, correlation_id, connection_id
            )
        except Exception as exc:
            webhook_deliveries_total.labels(event_type=event_type, outcome="enqueue_failed").inc()
            logger.warning(
                "webhook.enqueue_failed",
                event_type=event_type,
                tenant_id=tenant_id,
                correlation_id=correlation_id,
                error=str(exc),
            )
            return

        webhook_deliveries_total.labels(event_type=event_type, outcome="enqueued").inc()
        logger.debug(
            "webhook.enqueued",
            event_type=event_type,
            delivery_id=delivery_id,
            correlation_id=correlation_id,
        )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled dispatch to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
