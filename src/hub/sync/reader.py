"""Paginated reader -- single-record and cursor-paginated list reads.

Every read returns hydrated canonical outputs: persisted fields plus the
record's overlay values (always) and its raw provider snapshot (only when
asked for; None if the record has none).

Pagination:
- Connection scoped, ordered by (created_at, id) ascending.
- A cursor is the base64 id of the first record of the page it opens.
- limit+1 rows are fetched; the extra row becomes next_cursor and is held
  back for the next page.
- prev_cursor echoes the caller's cursor.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from src.hub.core.errors import HubError, InvalidCursor, NotFound
from src.hub.core.monitoring import pages_served_total
from src.hub.core.tenant import SyncContext, bind_sync_context
from src.hub.overlay.service import FieldMappingService
from src.hub.overlay.snapshots import SnapshotStore
from src.hub.sync.audit import SUCCESS, AuditLog
from src.hub.sync.cursor import decode_cursor, encode_cursor
from src.hub.sync.repository import CanonicalRepository
from src.hub.ticketing.models import CanonicalColumns
from src.hub.ticketing.registry import EntitySpec
from src.hub.ticketing.schemas import CanonicalOutput, Page

logger = structlog.get_logger(__name__)

READ_METHOD = "GET"


class PaginatedReader:
    """Read canonical records of any entity type.

    Args:
        repository: Canonical record persistence.
        overlay: Overlay value store.
        snapshots: Raw snapshot store.
        audit: Audit log for pull events.
        default_limit: Page size used when the caller gives none.
        max_limit: Largest accepted page size.
        concurrency: Max records enriched in parallel per page.
    """

    def __init__(
        self,
        repository: CanonicalRepository,
        overlay: FieldMappingService,
        snapshots: SnapshotStore,
        audit: AuditLog,
        *,
        default_limit: int = 50,
        max_limit: int = 1000,
        concurrency: int = 10,
    ) -> None:
        self._repository = repository
        self._overlay = overlay
        self._snapshots = snapshots
        self._audit = audit
        self._default_limit = default_limit
        self._max_limit = max_limit
        self._concurrency = concurrency

    # ── Single record ───────────────────────────────────────────────────────

    async def get(
        self,
        spec: EntitySpec,
        record_id: str,
        ctx: SyncContext,
        *,
        want_raw: bool = False,
        audit: bool = True,
    ) -> CanonicalOutput:
        """Fetch one hydrated record.

        Args:
            spec: Entity being read.
            record_id: Canonical id.
            ctx: Caller identity; the record must belong to ctx.tenant_id.
            want_raw: Attach the raw provider snapshot as remote_data.
            audit: Record a pull event. The push cycle's re-read passes
                False, since the push already records its own event.

        Raises:
            NotFound: If no such record exists for the tenant.
        """
        record = await self._repository.get(spec, record_id, ctx.tenant_id)
        if record is None:
            raise NotFound(spec.name, record_id, tenant_id=ctx.tenant_id)

        output = await self.hydrate(spec, record, want_raw=want_raw)

        if audit:
            await self._audit.record(
                ctx, spec.pull_event_type, READ_METHOD, spec.item_url, SUCCESS
            )
        return output

    # ── Pages ───────────────────────────────────────────────────────────────

    async def list(
        self,
        spec: EntitySpec,
        ctx: SyncContext,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        want_raw: bool = False,
    ) -> Page:
        """Fetch one page of hydrated records for ctx.connection_id.

        Raises:
            HubError: If ``limit`` is outside [1, max_limit].
            InvalidCursor: If the cursor does not decode or does not name a
                record of the connection. Raised before any page is fetched.
        """
        limit = self._default_limit if limit is None else limit
        if not 1 <= limit <= self._max_limit:
            raise HubError(
                f"limit must be between 1 and {self._max_limit}",
                step="validate_limit",
                limit=limit,
            )

        with bind_sync_context(ctx, entity_type=spec.entity_type):
            cursor_id: str | None = None
            if cursor is not None:
                cursor_id = decode_cursor(cursor, ctx.connection_id)
                if not await self._repository.cursor_exists(spec, cursor_id, ctx.connection_id):
                    raise InvalidCursor(cursor, ctx.connection_id)

            rows = await self._repository.fetch_page(
                spec, ctx.connection_id, limit + 1, cursor_id
            )

            next_cursor: str | None = None
            if len(rows) == limit + 1:
                next_cursor = encode_cursor(rows[-1].id)
                rows = rows[:-1]

            data = await self._enrich(spec, rows, want_raw)

            await self._audit.record(
                ctx, spec.pull_event_type, READ_METHOD, spec.collection_url, SUCCESS
            )
            pages_served_total.labels(entity_type=spec.entity_type).inc()
            logger.info(
                "reader.page_served",
                count=len(data),
                has_next=next_cursor is not None,
            )

        return Page[spec.output_schema](
            data=data,
            prev_cursor=cursor,
            next_cursor=next_cursor,
        )

    async def _enrich(
        self,
        spec: EntitySpec,
        rows: list[CanonicalColumns],
        want_raw: bool,
    ) -> list[CanonicalOutput]:
        """Hydrate rows concurrently; results keep page order."""
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _one(record: CanonicalColumns) -> CanonicalOutput:
            async with semaphore:
                return await self.hydrate(spec, record, want_raw=want_raw)

        return list(await asyncio.gather(*(_one(r) for r in rows)))

    # ── Hydration ───────────────────────────────────────────────────────────

    async def hydrate(
        self,
        spec: EntitySpec,
        record: CanonicalColumns,
        *,
        want_raw: bool = False,
    ) -> CanonicalOutput:
        """Build the output schema from a row plus its overlay and snapshot."""
        values: dict[str, Any] = {}
        for name in spec.fields:
            value = getattr(record, name)
            if name in spec.list_fields and value is None:
                value = []
            values[name] = value

        field_mappings = await self._overlay.get_values(record.id)
        remote_data = await self._snapshots.get(record.id) if want_raw else None

        return spec.output_schema(
            id=record.id,
            remote_id=record.remote_id,
            created_at=record.created_at,
            modified_at=record.modified_at,
            field_mappings=field_mappings,
            remote_data=remote_data,
            **values,
        )
