"""Append-only audit log of push and pull cycles.

One event per completed push (status "success" or "fail" depending on the
provider's answer), one per direct read, and exactly one per list call.
Events are written in their own transaction after the cycle's data
commit, so a failed audit insert never rolls back synchronized data.
"""

from __future__ import annotations

import structlog

from src.hub.core.database import SessionFactory
from src.hub.core.tenant import SyncContext
from src.hub.models.shared import EventModel

logger = structlog.get_logger(__name__)

SUCCESS = "success"
FAIL = "fail"

OUTBOUND = "0"


class AuditLog:
    """Writes EventModel rows.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def record(
        self,
        ctx: SyncContext,
        event_type: str,
        method: str,
        url: str,
        status: str,
    ) -> str:
        """Append one audit event.

        Args:
            ctx: Identity of the cycle being audited.
            event_type: e.g. "ticketing.ticket.push".
            method: "PUSH", "POST" or "GET".
            url: Logical resource path, e.g. "/ticketing/tickets".
            status: SUCCESS or FAIL.

        Returns:
            The new event id, used as correlation id for webhooks.
        """
        async for session in self._session_factory():
            event = EventModel(
                connection_id=ctx.connection_id,
                tenant_id=ctx.tenant_id,
                linked_user_id=ctx.linked_user_id,
                type=event_type,
                method=method,
                url=url,
                status=status,
                provider=ctx.provider,
                direction=OUTBOUND,
            )
            session.add(event)
            await session.commit()

            logger.info(
                "audit.event_recorded",
                event_id=event.id,
                type=event_type,
                status=status,
            )
            return event.id
        raise RuntimeError("session factory yielded no session")
