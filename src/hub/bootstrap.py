"""Hub assembly -- wires stores, engine, connectors and services together.

create_hub() builds every collaborator once and returns them on a Hub.
hub_lifespan() is the process entry point: it configures logging, creates
tables, yields the Hub and, on exit, drains pending webhooks and closes
the database and Redis pools.

Collaborators can be injected (tests pass their own session factory,
connector registry and notifier) so nothing here requires a live
Postgres or Redis.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
import structlog

from src.hub.config import Settings, get_settings
from src.hub.connectors import ConnectorRegistry, JiraConnector, ZendeskConnector
from src.hub.core.database import SessionFactory, close_db, get_session, init_db
from src.hub.core.logging import configure_structlog
from src.hub.core.redis import close_redis, get_redis_pool
from src.hub.overlay import FieldMappingService, SnapshotStore
from src.hub.sync import AuditLog, CanonicalRepository, PaginatedReader, SyncOrchestrator
from src.hub.ticketing.services import (
    AccountService,
    AttachmentService,
    ContactService,
    TeamService,
    TicketService,
    UserService,
)
from src.hub.unification import UnificationEngine, default_mapper_registry
from src.hub.webhooks import (
    PostCommitDispatcher,
    StreamWebhookNotifier,
    WebhookNotifier,
    WebhookStream,
    WebhookWorker,
)

logger = structlog.get_logger(__name__)


@dataclass
class Hub:
    """Every service of a running hub."""

    settings: Settings
    session_factory: SessionFactory
    repository: CanonicalRepository
    overlay: FieldMappingService
    snapshots: SnapshotStore
    audit: AuditLog
    reader: PaginatedReader
    orchestrator: SyncOrchestrator
    dispatcher: PostCommitDispatcher
    connectors: ConnectorRegistry
    tickets: TicketService
    attachments: AttachmentService
    accounts: AccountService
    contacts: ContactService
    teams: TeamService
    users: UserService


def default_connectors(settings: Settings) -> ConnectorRegistry:
    """Register the built-in connectors that have credentials configured."""
    registry = ConnectorRegistry()
    common = {
        "timeout": settings.CONNECTOR_TIMEOUT,
        "max_attempts": settings.CONNECTOR_MAX_RETRIES,
    }
    if settings.ZENDESK_API_TOKEN:
        registry.register(
            ZendeskConnector(
                settings.ZENDESK_BASE_URL,
                settings.ZENDESK_EMAIL,
                settings.ZENDESK_API_TOKEN,
                **common,
            )
        )
    if settings.JIRA_ACCESS_TOKEN:
        registry.register(
            JiraConnector(settings.JIRA_BASE_URL, settings.JIRA_ACCESS_TOKEN, **common)
        )
    if not len(registry):
        logger.warning("hub.no_connectors_configured")
    return registry


def create_hub(
    settings: Settings | None = None,
    *,
    session_factory: SessionFactory | None = None,
    connectors: ConnectorRegistry | None = None,
    notifier: WebhookNotifier | None = None,
) -> Hub:
    """Build a Hub from settings, with optional injected collaborators."""
    settings = settings or get_settings()
    session_factory = session_factory or get_session
    connectors = connectors if connectors is not None else default_connectors(settings)
    if notifier is None:
        notifier = StreamWebhookNotifier(get_redis_pool(), maxlen=settings.WEBHOOK_STREAM_MAXLEN)

    repository = CanonicalRepository(session_factory)
    overlay = FieldMappingService(session_factory)
    snapshots = SnapshotStore(session_factory)
    audit = AuditLog(session_factory)
    reader = PaginatedReader(
        repository,
        overlay,
        snapshots,
        audit,
        default_limit=settings.DEFAULT_PAGE_LIMIT,
        max_limit=settings.MAX_PAGE_LIMIT,
        concurrency=settings.READ_ENRICHMENT_CONCURRENCY,
    )
    dispatcher = PostCommitDispatcher(notifier)
    orchestrator = SyncOrchestrator(
        session_factory,
        repository,
        overlay,
        snapshots,
        audit,
        reader,
        UnificationEngine(default_mapper_registry()),
        connectors,
        dispatcher,
        conflict_retries=settings.UPSERT_CONFLICT_RETRIES,
    )
    attachments = AttachmentService(orchestrator, reader, repository)

    return Hub(
        settings=settings,
        session_factory=session_factory,
        repository=repository,
        overlay=overlay,
        snapshots=snapshots,
        audit=audit,
        reader=reader,
        orchestrator=orchestrator,
        dispatcher=dispatcher,
        connectors=connectors,
        tickets=TicketService(orchestrator, reader, attachments),
        attachments=attachments,
        accounts=AccountService(reader),
        contacts=ContactService(reader),
        teams=TeamService(reader),
        users=UserService(reader),
    )


def create_webhook_worker(
    tenant_id: str,
    session_factory: SessionFactory,
    http_client: httpx.AsyncClient | None = None,
    settings: Settings | None = None,
    consumer_name: str = "worker-1",
) -> WebhookWorker:
    """Build a delivery worker for one tenant's webhook stream.

    Without an http_client, one is created with WEBHOOK_TIMEOUT and lives as
    long as the worker process.
    """
    settings = settings or get_settings()
    if http_client is None:
        http_client = httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT)
    stream = WebhookStream(get_redis_pool(), tenant_id, maxlen=settings.WEBHOOK_STREAM_MAXLEN)
    return WebhookWorker(
        stream,
        session_factory,
        http_client,
        consumer_name=consumer_name,
        max_attempts=settings.WEBHOOK_MAX_ATTEMPTS,
        signature_header=settings.WEBHOOK_SIGNATURE_HEADER,
    )


@asynccontextmanager
async def hub_lifespan(settings: Settings | None = None) -> AsyncGenerator[Hub, None]:
    """Start a hub against the configured database and Redis."""
    configure_structlog()
    await init_db()
    hub = create_hub(settings)
    logger.info("hub.started", environment=hub.settings.ENVIRONMENT.value)
    try:
        yield hub
    finally:
        await hub.dispatcher.drain()
        await close_db()
        await close_redis()
        logger.info("hub.stopped")
