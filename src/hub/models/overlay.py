"""Extension data models -- custom field rules, values and raw snapshots.

- AttributeModel: a tenant/provider-defined custom field rule for one
  entity type (which provider field carries it, its type and default).
- ValueModel: the value of one custom field on one canonical record.
- RemoteDataModel: the last raw provider payload seen for a record.

Values and snapshots reference records by id only (no FK) because the
owning record may live in any of the entity tables.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.hub.core.database import Base
from src.hub.models.shared import new_id, utcnow


class AttributeModel(Base):
    """Custom field rule keyed by (entity_type, provider, tenant, slug)."""

    __tablename__ = "attributes"
    __table_args__ = (
        UniqueConstraint(
            "entity_type",
            "provider",
            "tenant_id",
            "slug",
            name="uq_attribute_scope_slug",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    remote_field: Mapped[str] = mapped_column(String(200), nullable=False)
    data_type: Mapped[str] = mapped_column(String(20), default="string")
    default_value: Mapped[Any] = mapped_column(JSON, nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ValueModel(Base):
    """Custom field value attached to a canonical record."""

    __tablename__ = "attribute_values"
    __table_args__ = (
        UniqueConstraint("record_id", "slug", name="uq_value_record_slug"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    record_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    data: Mapped[Any] = mapped_column(JSON, nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    modified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class RemoteDataModel(Base):
    """Latest raw provider payload for a record (one per record)."""

    __tablename__ = "remote_data"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    record_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    data: Mapped[str] = mapped_column(String, nullable=False)
    modified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
