"""Test fixtures for the hub.

Provides:
- A file-backed SQLite database per test (aiosqlite), tables created
- session_factory bound to it
- A seeded tenant with a zendesk connection, as a SyncContext
- EchoConnector: a fake provider that answers with what it was sent
- A fully wired Hub using the echo connector and a mocked notifier
- seed / row_count: direct inserts with strictly increasing created_at, and
  table row counts
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from src.hub.bootstrap import Hub, create_hub
from src.hub.config import Settings
from src.hub.connectors import Connector, ConnectorRegistry, ConnectorResponse
from src.hub.core.database import SessionFactory, init_db, session_factory_for
from src.hub.core.tenant import SyncContext
from src.hub.models.shared import ConnectionModel, TenantModel, new_id
from src.hub.ticketing.registry import EntitySpec
from src.hub.webhooks import WebhookNotifier


class EchoConnector(Connector):
    """Fake provider: records calls and echoes the payload with a remote id."""

    provider = "zendesk"

    def __init__(
        self,
        status_code: int = 201,
        response: dict[str, Any] | None = None,
        error: Exception | None = None,
        remote_id: str = "rt-1",
    ) -> None:
        self.status_code = status_code
        self.response = response
        self.error = error
        self.remote_id = remote_id
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def write(self, entity_type, payload, context) -> ConnectorResponse:
        self.calls.append((entity_type, payload))
        if self.error is not None:
            raise self.error
        data = self.response if self.response is not None else {"id": self.remote_id, **payload}
        return ConnectorResponse(status_code=self.status_code, data=data)


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database with every hub table."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'hub.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> SessionFactory:
    return session_factory_for(engine)


async def _seed_tenant(session_factory: SessionFactory, slug: str, provider: str) -> SyncContext:
    async for session in session_factory():
        tenant = TenantModel(id=new_id(), slug=slug, name=slug.title())
        connection = ConnectionModel(id=new_id(), tenant_id=tenant.id, provider=provider)
        session.add_all([tenant, connection])
        await session.commit()
        return SyncContext(
            tenant_id=tenant.id,
            connection_id=connection.id,
            provider=provider,
            linked_user_id="linked-user-1",
        )
    raise RuntimeError("no session")


@pytest_asyncio.fixture
async def ctx(session_factory) -> SyncContext:
    """Tenant "acme" linked to zendesk."""
    return await _seed_tenant(session_factory, "acme", "zendesk")


@pytest_asyncio.fixture
async def other_ctx(session_factory) -> SyncContext:
    """A second tenant, "globex", also linked to zendesk."""
    return await _seed_tenant(session_factory, "globex", "zendesk")


@pytest.fixture
def echo() -> EchoConnector:
    return EchoConnector()


@pytest.fixture
def notifier() -> AsyncMock:
    mock = AsyncMock(spec=WebhookNotifier)
    mock.dispatch.return_value = "delivery-1"
    return mock


@pytest.fixture
def settings() -> Settings:
    return Settings(DEFAULT_PAGE_LIMIT=50, MAX_PAGE_LIMIT=1000, READ_ENRICHMENT_CONCURRENCY=3)


@pytest.fixture
def hub(settings, session_factory, echo, notifier) -> Hub:
    return create_hub(
        settings,
        session_factory=session_factory,
        connectors=ConnectorRegistry([echo]),
        notifier=notifier,
    )


async def _seed_records(
    session_factory: SessionFactory,
    spec: EntitySpec,
    connection_id: str,
    count: int,
    **values: Any,
) -> list[str]:
    """Insert ``count`` records one second apart; returns ids in creation order."""
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    ids: list[str] = []
    async for session in session_factory():
        for i in range(count):
            record_id = new_id()
            session.add(
                spec.model(
                    id=record_id,
                    remote_id=f"remote-{record_id[:8]}",
                    connection_id=connection_id,
                    created_at=base + timedelta(seconds=i),
                    modified_at=base + timedelta(seconds=i),
                    **values,
                )
            )
            ids.append(record_id)
        await session.commit()
    return ids


async def _count_rows(session_factory: SessionFactory, model: type) -> int:
    async for session in session_factory():
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()
    return 0


@pytest.fixture
def seed(session_factory):
    """``await seed(spec, connection_id, count, **values)`` -> ids."""

    async def _seed(spec: EntitySpec, connection_id: str, count: int, **values: Any) -> list[str]:
        return await _seed_records(session_factory, spec, connection_id, count, **values)

    return _seed


@pytest.fixture
def row_count(session_factory):
    """``await row_count(Model)`` -> number of rows."""

    async def _count(model: type) -> int:
        return await _count_rows(session_factory, model)

    return _count
