"""Attachment service -- push, read, and inline staging for ticket writes.

Attachments can be pushed on their own (add_attachment) or arrive inline
in a ticket write. Inline ones are staged: each gets its canonical id up
front so the ticket can reference it, and the row is inserted in the same
transaction as the ticket.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import structlog
from pydantic import BaseModel

from src.hub.core.errors import ReferenceNotFound
from src.hub.core.tenant import SyncContext
from src.hub.models.shared import new_id
from src.hub.sync.orchestrator import PendingRecord, StagedReferences, SyncOrchestrator
from src.hub.sync.reader import PaginatedReader
from src.hub.sync.repository import CanonicalRepository
from src.hub.ticketing.registry import ATTACHMENT
from src.hub.ticketing.schemas import AttachmentInput, AttachmentOutput
from src.hub.ticketing.services.base import EntityService

logger = structlog.get_logger(__name__)


class AttachmentService(EntityService):
    """Attachment writes and reads.

    Args:
        orchestrator: Push cycle runner.
        reader: Shared reader.
        repository: Used to check ids of existing attachments.
    """

    entity_type = ATTACHMENT

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        reader: PaginatedReader,
        repository: CanonicalRepository,
    ) -> None:
        super().__init__(reader)
        self._orchestrator = orchestrator
        self._repository = repository

    async def add_attachment(
        self,
        data: AttachmentInput,
        ctx: SyncContext,
        *,
        want_raw: bool = False,
    ) -> AttachmentOutput:
        """Push one attachment to the provider and mirror it locally."""
        return await self._orchestrator.push(self.spec, data, ctx, want_raw=want_raw)

    async def stage_inline(
        self, items: Sequence[Any], ctx: SyncContext
    ) -> StagedReferences:
        """Resolve a ticket's attachments list into attachment ids.

        String items must be ids of existing attachments in the tenant.
        Anything else is an inline attachment payload; it gets a fresh id
        and a PendingRecord that the push cycle inserts with the ticket.

        Raises:
            ReferenceNotFound: Naming every string id that does not exist.
        """
        ids: list[str] = []
        existing: list[str] = []
        pending: list[PendingRecord] = []

        for item in items:
            if isinstance(item, str):
                ids.append(item)
                existing.append(item)
                continue
            values = _inline_values(item)
            record_id = new_id()
            ids.append(record_id)
            pending.append(
                PendingRecord(
                    spec=self.spec,
                    id=record_id,
                    values=values,
                    parent_field="ticket_id",
                )
            )

        missing = await self._repository.missing_ids(self.spec, existing, ctx.tenant_id)
        if missing:
            raise ReferenceNotFound("attachments", missing)

        if pending:
            logger.debug("attachments.inline_staged", count=len(pending))
        return StagedReferences(ids=ids, pending=pending)


def _inline_values(item: Any) -> dict[str, Any]:
    if isinstance(item, BaseModel):
        item = item.model_dump(exclude_unset=True)
    if not isinstance(item, Mapping):
        raise TypeError(f"attachment must be an id or an object, got {type(item).__name__}")
    values = AttachmentInput.model_validate(item).model_dump()
    values.pop("field_mappings", None)
    return values
