"""Canonical ticketing tables -- one per unified entity.

Six SQLAlchemy models sharing the CanonicalColumns mixin:
- TicketModel, AccountModel, ContactModel, TeamModel, UserModel, AttachmentModel

Every table is scoped by connection_id and carries the provider-assigned
remote_id. (remote_id, connection_id) is unique so the push cycle can
upsert by it; rows with a NULL remote_id never collide.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from src.hub.core.database import Base
from src.hub.models.shared import new_id, utcnow


class CanonicalColumns:
    """Columns and constraints common to every canonical entity table."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    remote_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    connection_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    modified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    @declared_attr.directive
    def __table_args__(cls) -> tuple:
        return (
            UniqueConstraint(
                "remote_id",
                "connection_id",
                name=f"uq_{cls.__tablename__}_remote_connection",
            ),
            Index(
                f"ix_{cls.__tablename__}_connection_created",
                "connection_id",
                "created_at",
                "id",
            ),
        )


class TicketModel(CanonicalColumns, Base):
    """Support ticket."""

    __tablename__ = "tcg_tickets"

    name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    parent_ticket: Mapped[str | None] = mapped_column(String(36), nullable=True)
    collections: Mapped[list] = mapped_column(JSON, default=list)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    priority: Mapped[str | None] = mapped_column(String(50), nullable=True)
    assigned_to: Mapped[list] = mapped_column(JSON, default=list)
    account_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    contact_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    attachments: Mapped[list] = mapped_column(JSON, default=list)


class AccountModel(CanonicalColumns, Base):
    """Customer organization."""

    __tablename__ = "tcg_accounts"

    name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    domains: Mapped[list] = mapped_column(JSON, default=list)


class ContactModel(CanonicalColumns, Base):
    """Person who raises tickets."""

    __tablename__ = "tcg_contacts"

    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)


class TeamModel(CanonicalColumns, Base):
    """Agent team."""

    __tablename__ = "tcg_teams"

    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class UserModel(CanonicalColumns, Base):
    """Agent/user of the ticketing backend (ticket assignee)."""

    __tablename__ = "tcg_users"

    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    teams: Mapped[list] = mapped_column(JSON, default=list)
    account_id: Mapped[str | None] = mapped_column(String(36), nullable=True)


class AttachmentModel(CanonicalColumns, Base):
    """File attached to a ticket or comment."""

    __tablename__ = "tcg_attachments"

    file_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    uploader: Mapped[str | None] = mapped_column(String(36), nullable=True)
    ticket_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    comment_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
