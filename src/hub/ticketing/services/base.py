"""Shared read operations for every ticketing entity service."""

from __future__ import annotations

from src.hub.core.tenant import SyncContext
from src.hub.sync.reader import PaginatedReader
from src.hub.ticketing.registry import EntitySpec, get_entity_spec
from src.hub.ticketing.schemas import CanonicalOutput, Page


class EntityService:
    """Get and list for one entity type.

    Subclasses set ``entity_type``.

    Args:
        reader: Paginated reader shared by all services.
    """

    entity_type: str

    def __init__(self, reader: PaginatedReader) -> None:
        self._reader = reader

    @property
    def spec(self) -> EntitySpec:
        return get_entity_spec(self.entity_type)

    async def get(
        self, record_id: str, ctx: SyncContext, *, want_raw: bool = False
    ) -> CanonicalOutput:
        """Fetch one record; NotFound if it does not exist for the tenant."""
        return await self._reader.get(self.spec, record_id, ctx, want_raw=want_raw)

    async def list(
        self,
        ctx: SyncContext,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        want_raw: bool = False,
    ) -> Page:
        """Fetch one page of the connection's records."""
        return await self._reader.list(
            self.spec, ctx, limit=limit, cursor=cursor, want_raw=want_raw
        )
