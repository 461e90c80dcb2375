"""Per-entity ticketing services built on the sync core."""

from src.hub.ticketing.services.attachment import AttachmentService
from src.hub.ticketing.services.base import EntityService
from src.hub.ticketing.services.directory import (
    AccountService,
    ContactService,
    TeamService,
    UserService,
)
from src.hub.ticketing.services.ticket import TicketService

__all__ = [
    "AccountService",
    "AttachmentService",
    "ContactService",
    "EntityService",
    "TeamService",
    "TicketService",
    "UserService",
]
