"""Canonical schema registry -- one EntitySpec per unified ticketing entity.

The sync machinery (orchestrator, reader, repository, unification engine)
is entity-agnostic; everything it needs to know about an entity comes from
its EntitySpec: the table, the output schema, which canonical fields are
persisted, which hold lists or datetimes, which reference other entities,
and the audit/webhook event names derived from the entity type.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from src.hub.ticketing.models import (
    AccountModel,
    AttachmentModel,
    CanonicalColumns,
    ContactModel,
    TeamModel,
    TicketModel,
    UserModel,
)
from src.hub.ticketing.schemas import (
    AccountOutput,
    AttachmentOutput,
    CanonicalOutput,
    ContactOutput,
    TeamOutput,
    TicketOutput,
    UserOutput,
)

TICKET = "ticketing.ticket"
ACCOUNT = "ticketing.account"
CONTACT = "ticketing.contact"
TEAM = "ticketing.team"
USER = "ticketing.user"
ATTACHMENT = "ticketing.attachment"


@dataclass(frozen=True)
class Reference:
    """A canonical field pointing at records of another entity type."""

    field: str
    target: str
    many: bool = False


@dataclass(frozen=True)
class EntitySpec:
    """Everything the sync pipeline needs to know about one entity type."""

    entity_type: str
    plural: str
    model: type[CanonicalColumns]
    output_schema: type[CanonicalOutput]
    fields: tuple[str, ...]
    list_fields: frozenset[str] = frozenset()
    datetime_fields: frozenset[str] = frozenset()
    references: tuple[Reference, ...] = ()
    id_fields: frozenset[str] = frozenset()
    push_method: str = "PUSH"
    extension_slots: tuple[str, ...] = field(default=("field_mappings", "remote_data"))

    @property
    def name(self) -> str:
        return self.entity_type.split(".", 1)[1]

    @property
    def local_id_fields(self) -> frozenset[str]:
        """Fields holding hub record ids; never overwritten by provider values."""
        return frozenset(ref.field for ref in self.references) | self.id_fields

    @property
    def push_event_type(self) -> str:
        return f"{self.entity_type}.push"

    @property
    def pull_event_type(self) -> str:
        return f"{self.entity_type}.pull"

    @property
    def created_webhook_type(self) -> str:
        return f"{self.entity_type}.created"

    @property
    def collection_url(self) -> str:
        return f"/ticketing/{self.plural}"

    @property
    def item_url(self) -> str:
        return f"/ticketing/{self.name}"


ENTITY_REGISTRY: dict[str, EntitySpec] = {
    TICKET: EntitySpec(
        entity_type=TICKET,
        plural="tickets",
        model=TicketModel,
        output_schema=TicketOutput,
        fields=(
            "name",
            "status",
            "description",
            "due_date",
            "type",
            "parent_ticket",
            "collections",
            "tags",
            "completed_at",
            "priority",
            "assigned_to",
            "account_id",
            "contact_id",
            "attachments",
        ),
        list_fields=frozenset({"collections", "tags", "assigned_to", "attachments"}),
        datetime_fields=frozenset({"due_date", "completed_at"}),
        references=(
            Reference("account_id", ACCOUNT),
            Reference("contact_id", CONTACT),
            Reference("assigned_to", USER, many=True),
        ),
        id_fields=frozenset({"parent_ticket", "attachments"}),
    ),
    ACCOUNT: EntitySpec(
        entity_type=ACCOUNT,
        plural="accounts",
        model=AccountModel,
        output_schema=AccountOutput,
        fields=("name", "domains"),
        list_fields=frozenset({"domains"}),
    ),
    CONTACT: EntitySpec(
        entity_type=CONTACT,
        plural="contacts",
        model=ContactModel,
        output_schema=ContactOutput,
        fields=("name", "email_address", "phone_number", "details"),
    ),
    TEAM: EntitySpec(
        entity_type=TEAM,
        plural="teams",
        model=TeamModel,
        output_schema=TeamOutput,
        fields=("name", "description"),
    ),
    USER: EntitySpec(
        entity_type=USER,
        plural="users",
        model=UserModel,
        output_schema=UserOutput,
        fields=("name", "email_address", "teams", "account_id"),
        list_fields=frozenset({"teams"}),
    ),
    ATTACHMENT: EntitySpec(
        entity_type=ATTACHMENT,
        plural="attachments",
        model=AttachmentModel,
        output_schema=AttachmentOutput,
        fields=("file_name", "file_url", "uploader", "ticket_id", "comment_id"),
        id_fields=frozenset({"uploader", "ticket_id", "comment_id"}),
        push_method="POST",
    ),
}


def get_entity_spec(entity_type: str) -> EntitySpec:
    """Look up the EntitySpec for an entity type.

    Raises:
        KeyError: If the entity type is not part of the canonical schema.
    """
    try:
        return ENTITY_REGISTRY[entity_type]
    except KeyError:
        raise KeyError(f"Unknown canonical entity type: {entity_type}") from None
