"""Ticket service -- the main write path of the hub.

add_ticket() runs a full push cycle. Attachments given inline are created
with the ticket through AttachmentService.stage_inline().
"""

from __future__ import annotations

from src.hub.core.tenant import SyncContext
from src.hub.sync.orchestrator import SyncOrchestrator
from src.hub.sync.reader import PaginatedReader
from src.hub.ticketing.registry import TICKET
from src.hub.ticketing.schemas import TicketInput, TicketOutput
from src.hub.ticketing.services.attachment import AttachmentService
from src.hub.ticketing.services.base import EntityService


class TicketService(EntityService):
    """Ticket writes and reads.

    Args:
        orchestrator: Push cycle runner.
        reader: Shared reader.
        attachments: Used to stage inline attachments.
    """

    entity_type = TICKET

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        reader: PaginatedReader,
        attachments: AttachmentService,
    ) -> None:
        super().__init__(reader)
        self._orchestrator = orchestrator
        self._attachments = attachments

    async def add_ticket(
        self,
        data: TicketInput,
        ctx: SyncContext,
        *,
        want_raw: bool = False,
    ) -> TicketOutput:
        """Create the ticket in the provider and mirror it locally.

        Raises:
            NotFound: Unknown tenant or connection.
            ReferenceNotFound: account_id, contact_id, an assignee or an
                attachment id does not exist.
            ConnectorFailure: The provider rejected the write.
        """
        return await self._orchestrator.push(
            self.spec,
            data,
            ctx,
            want_raw=want_raw,
            inline_resolvers={"attachments": self._attachments.stage_inline},
        )
