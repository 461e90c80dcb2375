"""Outbound webhooks -- "record created" notifications to tenant endpoints.

- WebhookNotifier / StreamWebhookNotifier: enqueue on a Redis stream
- PostCommitDispatcher: fire-and-forget scheduling after commit
- WebhookWorker: consumer group delivery with HMAC signing, retry, DLQ
"""

from src.hub.webhooks.dispatcher import PostCommitDispatcher
from src.hub.webhooks.notifier import StreamWebhookNotifier, WebhookNotifier
from src.hub.webhooks.schemas import WebhookDelivery
from src.hub.webhooks.stream import WebhookStream
from src.hub.webhooks.worker import WebhookWorker, scope_matches, sign

__all__ = [
    "PostCommitDispatcher",
    "StreamWebhookNotifier",
    "WebhookDelivery",
    "WebhookNotifier",
    "WebhookStream",
    "WebhookWorker",
    "scope_matches",
    "sign",
]
