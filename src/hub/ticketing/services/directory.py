"""Read-only services for entities synced from the provider directory.

Accounts, contacts, teams and users are never written through the hub;
they are mirrored locally and read back through the shared reader.
"""

from __future__ import annotations

from src.hub.ticketing.registry import ACCOUNT, CONTACT, TEAM, USER
from src.hub.ticketing.services.base import EntityService


class AccountService(EntityService):
    entity_type = ACCOUNT


class ContactService(EntityService):
    entity_type = CONTACT


class TeamService(EntityService):
    entity_type = TEAM


class UserService(EntityService):
    entity_type = USER
