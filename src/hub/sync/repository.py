"""Entity-agnostic persistence for canonical records.

CanonicalRepository works on any entity registered in ENTITY_REGISTRY:
the table comes from ``spec.model`` and the persisted columns from
``spec.fields``. Reads open their own session; writes that are part of a
push cycle take the caller's session so the record, its overlay values
and its snapshot commit together.

Scoping:
- Records belong to a connection (connection_id column).
- A tenant owns connections; references and direct reads are checked in
  tenant scope by joining through ConnectionModel.
- Pagination is connection scoped.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.hub.core.database import SessionFactory
from src.hub.models.shared import ConnectionModel, TenantModel, utcnow
from src.hub.ticketing.models import CanonicalColumns
from src.hub.ticketing.registry import EntitySpec

logger = structlog.get_logger(__name__)


def column_values(spec: EntitySpec, values: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only persisted canonical fields; list columns never hold NULL."""
    out: dict[str, Any] = {}
    for name in spec.fields:
        if name not in values:
            continue
        value = values[name]
        if name in spec.list_fields and value is None:
            value = []
        out[name] = value
    return out


class CanonicalRepository:
    """Async persistence for canonical records of every entity type.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    # ── Tenancy ─────────────────────────────────────────────────────────────

    async def tenant_exists(self, tenant_id: str) -> bool:
        """True if the tenant exists and is active."""
        async for session in self._session_factory():
            stmt = select(TenantModel.id).where(
                TenantModel.id == tenant_id,
                TenantModel.is_active.is_(True),
            )
            return (await session.execute(stmt)).scalar_one_or_none() is not None
        return False

    async def connection_belongs_to(self, connection_id: str, tenant_id: str) -> bool:
        """True if the connection exists and is owned by the tenant."""
        async for session in self._session_factory():
            stmt = select(ConnectionModel.id).where(
                ConnectionModel.id == connection_id,
                ConnectionModel.tenant_id == tenant_id,
            )
            return (await session.execute(stmt)).scalar_one_or_none() is not None
        return False

    # ── Reads ───────────────────────────────────────────────────────────────

    async def get(
        self, spec: EntitySpec, record_id: str, tenant_id: str
    ) -> CanonicalColumns | None:
        """Fetch one record by canonical id, in tenant scope."""
        model = spec.model
        async for session in self._session_factory():
            stmt = (
                select(model)
                .join(ConnectionModel, ConnectionModel.id == model.connection_id)
                .where(model.id == record_id, ConnectionModel.tenant_id == tenant_id)
            )
            return (await session.execute(stmt)).scalar_one_or_none()
        return None

    async def missing_ids(
        self, spec: EntitySpec, ids: Iterable[str], tenant_id: str
    ) -> list[str]:
        """Return every id in ``ids`` with no record of ``spec`` in the tenant.

        The result preserves input order and drops duplicates, so a caller
        can report all unresolved references at once.
        """
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return []
        model = spec.model
        async for session in self._session_factory():
            stmt = (
                select(model.id)
                .join(ConnectionModel, ConnectionModel.id == model.connection_id)
                .where(model.id.in_(wanted), ConnectionModel.tenant_id == tenant_id)
            )
            found = set((await session.execute(stmt)).scalars().all())
            return [i for i in wanted if i not in found]
        return wanted

    async def cursor_exists(
        self, spec: EntitySpec, record_id: str, connection_id: str
    ) -> bool:
        """True if ``record_id`` names a record in the connection."""
        model = spec.model
        async for session in self._session_factory():
            stmt = select(model.id).where(
                model.id == record_id,
                model.connection_id == connection_id,
            )
            return (await session.execute(stmt)).scalar_one_or_none() is not None
        return False

    async def fetch_page(
        self,
        spec: EntitySpec,
        connection_id: str,
        limit: int,
        cursor_id: str | None = None,
    ) -> list[CanonicalColumns]:
        """Fetch up to ``limit`` records ordered by (created_at, id).

        When ``cursor_id`` is given the page starts AT that record
        (inclusive), so a cursor handed out as next_cursor yields the record
        that was held back from the previous page.
        """
        model = spec.model
        async for session in self._session_factory():
            stmt = select(model).where(model.connection_id == connection_id)
            if cursor_id is not None:
                anchor = (
                    select(model.created_at)
                    .where(model.id == cursor_id, model.connection_id == connection_id)
                    .scalar_subquery()
                )
                stmt = stmt.where(
                    or_(
                        model.created_at > anchor,
                        and_(model.created_at == anchor, model.id >= cursor_id),
                    )
                )
            stmt = stmt.order_by(model.created_at, model.id).limit(limit)
            return list((await session.execute(stmt)).scalars().all())
        return []

    # ── Writes (caller's transaction) ───────────────────────────────────────

    async def find_by_remote(
        self,
        session: AsyncSession,
        spec: EntitySpec,
        remote_id: str,
        connection_id: str,
    ) -> CanonicalColumns | None:
        """Look up a record by its upsert key (remote_id, connection_id)."""
        model = spec.model
        stmt = select(model).where(
            model.remote_id == remote_id,
            model.connection_id == connection_id,
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def insert(
        self,
        session: AsyncSession,
        spec: EntitySpec,
        connection_id: str,
        values: Mapping[str, Any],
        *,
        record_id: str | None = None,
        remote_id: str | None = None,
    ) -> CanonicalColumns:
        """Insert a new record and flush it.

        ``record_id`` lets callers pre-generate the canonical id (inline
        sub-entities whose id must appear on the parent before either row
        is written).
        """
        kwargs: dict[str, Any] = {
            "connection_id": connection_id,
            "remote_id": remote_id,
            **column_values(spec, values),
        }
        if record_id is not None:
            kwargs["id"] = record_id
        record = spec.model(**kwargs)
        session.add(record)
        await session.flush()
        return record

    async def upsert(
        self,
        session: AsyncSession,
        spec: EntitySpec,
        connection_id: str,
        remote_id: str,
        values: Mapping[str, Any],
    ) -> tuple[CanonicalColumns, bool]:
        """Create or update the record keyed by (remote_id, connection_id).

        On update only the fields present in ``values`` change; the
        canonical id and created_at are kept.

        Returns:
            (record, created) where created is False for an update.

        Raises:
            sqlalchemy.exc.IntegrityError: If a concurrent writer inserted
                the same key between lookup and flush. The caller retries
                the whole transaction, which then takes the update path.
        """
        existing = await self.find_by_remote(session, spec, remote_id, connection_id)
        if existing is None:
            record = await self.insert(
                session, spec, connection_id, values, remote_id=remote_id
            )
            logger.debug("repository.record_created", entity_type=spec.entity_type, id=record.id)
            return record, True

        for name, value in column_values(spec, values).items():
            setattr(existing, name, value)
        existing.modified_at = utcnow()
        await session.flush()
        logger.debug("repository.record_updated", entity_type=spec.entity_type, id=existing.id)
        return existing, False
