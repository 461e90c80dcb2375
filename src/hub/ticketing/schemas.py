"""Pydantic schemas for the unified ticketing entities.

Defines the canonical shapes callers read and write:
- Inputs: TicketInput, AttachmentInput (the two entities with a push path)
- Outputs: TicketOutput, AccountOutput, ContactOutput, TeamOutput,
  UserOutput, AttachmentOutput
- Page: Paginated list envelope with opaque cursors

Every output carries the record's internal id, the provider remote_id,
the merged custom field overlay (field_mappings) and an optional raw
provider snapshot (remote_data).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

# ── Base ────────────────────────────────────────────────────────────────────


class CanonicalOutput(BaseModel):
    """Fields present on every canonical record read."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    remote_id: str | None = None
    field_mappings: dict[str, Any] = Field(default_factory=dict)
    remote_data: dict[str, Any] | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None


# ── Attachments ─────────────────────────────────────────────────────────────


class AttachmentInput(BaseModel):
    """Canonical attachment write."""

    file_name: str | None = None
    file_url: str | None = None
    uploader: str | None = None
    ticket_id: str | None = None
    comment_id: str | None = None
    field_mappings: dict[str, Any] | None = None


class AttachmentOutput(CanonicalOutput):
    file_name: str | None = None
    file_url: str | None = None
    uploader: str | None = None
    ticket_id: str | None = None
    comment_id: str | None = None


# ── Tickets ─────────────────────────────────────────────────────────────────


class TicketInput(BaseModel):
    """Canonical ticket write.

    ``attachments`` accepts either ids of existing attachments or inline
    attachment payloads, which are created alongside the ticket.
    """

    name: str | None = None
    status: str | None = None
    description: str | None = None
    due_date: datetime | None = None
    type: str | None = None
    parent_ticket: str | None = None
    collections: list[str] | None = None
    tags: list[str] | None = None
    completed_at: datetime | None = None
    priority: str | None = None
    assigned_to: list[str] | None = None
    account_id: str | None = None
    contact_id: str | None = None
    attachments: list[str | AttachmentInput] | None = None
    field_mappings: dict[str, Any] | None = None


class TicketOutput(CanonicalOutput):
    name: str | None = None
    status: str | None = None
    description: str | None = None
    due_date: datetime | None = None
    type: str | None = None
    parent_ticket: str | None = None
    collections: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    completed_at: datetime | None = None
    priority: str | None = None
    assigned_to: list[str] = Field(default_factory=list)
    account_id: str | None = None
    contact_id: str | None = None
    attachments: list[str] = Field(default_factory=list)


# ── Read-only entities ──────────────────────────────────────────────────────


class AccountOutput(CanonicalOutput):
    name: str | None = None
    domains: list[str] = Field(default_factory=list)


class ContactOutput(CanonicalOutput):
    name: str | None = None
    email_address: str | None = None
    phone_number: str | None = None
    details: str | None = None


class TeamOutput(CanonicalOutput):
    name: str | None = None
    description: str | None = None


class UserOutput(CanonicalOutput):
    name: str | None = None
    email_address: str | None = None
    teams: list[str] = Field(default_factory=list)
    account_id: str | None = None


# ── Pagination ──────────────────────────────────────────────────────────────

OutputT = TypeVar("OutputT", bound=CanonicalOutput)


class Page(BaseModel, Generic[OutputT]):
    """One page of canonical records with opaque cursors."""

    data: list[OutputT] = Field(default_factory=list)
    prev_cursor: str | None = None
    next_cursor: str | None = None
