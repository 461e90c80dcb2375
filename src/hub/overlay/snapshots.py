"""Raw provider snapshots -- the last payload a provider returned for a record.

Snapshots exist for traceability only. A record has at most one; every
sync cycle replaces it. A missing snapshot is never an error: get()
returns None and callers expose ``remote_data = None``.
"""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.hub.core.database import SessionFactory
from src.hub.models.overlay import RemoteDataModel
from src.hub.models.shared import utcnow


class SnapshotStore:
    """Async access to raw provider snapshots.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def put(
        self,
        session: AsyncSession,
        record_id: str,
        entity_type: str,
        raw: Any,
    ) -> None:
        """Store ``raw`` as the record's snapshot inside the caller's transaction."""
        data = json.dumps(raw, default=str)
        stmt = select(RemoteDataModel).where(RemoteDataModel.record_id == record_id)
        existing = (await session.execute(stmt)).scalar_one_or_none()
        if existing is None:
            session.add(
                RemoteDataModel(record_id=record_id, entity_type=entity_type, data=data)
            )
        else:
            existing.data = data
            existing.modified_at = utcnow()
        await session.flush()

    async def get(self, record_id: str) -> dict[str, Any] | None:
        """Return the record's snapshot, or None if it has none."""
        async for session in self._session_factory():
            stmt = select(RemoteDataModel.data).where(RemoteDataModel.record_id == record_id)
            data = (await session.execute(stmt)).scalar_one_or_none()
            if data is None:
                return None
            return json.loads(data)
        return None
