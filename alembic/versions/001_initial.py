"""Initial hub schema: tenancy, audit, webhooks, overlay and ticketing tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CANONICAL_TABLES = (
    "tcg_tickets",
    "tcg_accounts",
    "tcg_contacts",
    "tcg_teams",
    "tcg_users",
    "tcg_attachments",
)


def _canonical(table: str, *columns: sa.Column) -> None:
    """Create a canonical entity table with the shared columns and keys."""
    op.create_table(
        table,
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("remote_id", sa.String(200), nullable=True),
        sa.Column("connection_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=False),
        *columns,
        sa.PrimaryKeyConstraint("id", name=f"pk_{table}"),
        sa.UniqueConstraint(
            "remote_id", "connection_id", name=f"uq_{table}_remote_connection"
        ),
    )
    op.create_index(
        f"ix_{table}_connection_created", table, ["connection_id", "created_at", "id"]
    )


def upgrade() -> None:
    # ── Tenancy ─────────────────────────────────────────────────────────────
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("slug", sa.String(50), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_tenants"),
        sa.UniqueConstraint("slug", name="uq_tenants_slug"),
    )

    op.create_table(
        "connections",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.String(36), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("account_url", sa.String(500), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_connections"),
    )
    op.create_index("ix_connections_tenant_id", "connections", ["tenant_id"])

    # ── Audit + webhooks ────────────────────────────────────────────────────
    op.create_table(
        "events",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("connection_id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.String(36), nullable=False),
        sa.Column("linked_user_id", sa.String(36), nullable=True),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("method", sa.String(10), nullable=False),
        sa.Column("url", sa.String(200), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("direction", sa.String(10), nullable=False, server_default="0"),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_events"),
    )
    op.create_index(
        "ix_events_connection_timestamp", "events", ["connection_id", "timestamp"]
    )

    op.create_table(
        "webhook_endpoints",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.String(36), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("secret", sa.String(200), nullable=False),
        sa.Column("scopes", sa.JSON(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_webhook_endpoints"),
    )
    op.create_index("ix_webhook_endpoints_tenant_id", "webhook_endpoints", ["tenant_id"])

    # ── Overlay ─────────────────────────────────────────────────────────────
    op.create_table(
        "attributes",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("tenant_id", sa.String(36), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("remote_field", sa.String(200), nullable=False),
        sa.Column("data_type", sa.String(20), nullable=False, server_default="string"),
        sa.Column("default_value", sa.JSON(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_attributes"),
        sa.UniqueConstraint(
            "entity_type", "provider", "tenant_id", "slug", name="uq_attribute_scope_slug"
        ),
    )

    op.create_table(
        "attribute_values",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("record_id", sa.String(36), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_attribute_values"),
        sa.UniqueConstraint("record_id", "slug", name="uq_value_record_slug"),
    )
    op.create_index(
        "ix_attribute_values_record_id", "attribute_values", ["record_id"]
    )

    op.create_table(
        "remote_data",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("record_id", sa.String(36), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("data", sa.String(), nullable=False),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_remote_data"),
        sa.UniqueConstraint("record_id", name="uq_remote_data_record_id"),
    )

    # ── Canonical ticketing entities ────────────────────────────────────────
    _canonical(
        "tcg_tickets",
        sa.Column("name", sa.String(500), nullable=True),
        sa.Column("status", sa.String(50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("type", sa.String(50), nullable=True),
        sa.Column("parent_ticket", sa.String(36), nullable=True),
        sa.Column("collections", sa.JSON(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("priority", sa.String(50), nullable=True),
        sa.Column("assigned_to", sa.JSON(), nullable=False),
        sa.Column("account_id", sa.String(36), nullable=True),
        sa.Column("contact_id", sa.String(36), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=False),
    )
    _canonical(
        "tcg_accounts",
        sa.Column("name", sa.String(300), nullable=True),
        sa.Column("domains", sa.JSON(), nullable=False),
    )
    _canonical(
        "tcg_contacts",
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("email_address", sa.String(255), nullable=True),
        sa.Column("phone_number", sa.String(50), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
    )
    _canonical(
        "tcg_teams",
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
    )
    _canonical(
        "tcg_users",
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("email_address", sa.String(255), nullable=True),
        sa.Column("teams", sa.JSON(), nullable=False),
        sa.Column("account_id", sa.String(36), nullable=True),
    )
    _canonical(
        "tcg_attachments",
        sa.Column("file_name", sa.String(500), nullable=True),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("uploader", sa.String(36), nullable=True),
        sa.Column("ticket_id", sa.String(36), nullable=True),
        sa.Column("comment_id", sa.String(36), nullable=True),
    )


def downgrade() -> None:
    for table in reversed(CANONICAL_TABLES):
        op.drop_index(f"ix_{table}_connection_created", table_name=table)
        op.drop_table(table)
    op.drop_table("remote_data")
    op.drop_index("ix_attribute_values_record_id", table_name="attribute_values")
    op.drop_table("attribute_values")
    op.drop_table("attributes")
    op.drop_index("ix_webhook_endpoints_tenant_id", table_name="webhook_endpoints")
    op.drop_table("webhook_endpoints")
    op.drop_index("ix_events_connection_timestamp", table_name="events")
    op.drop_table("events")
    op.drop_index("ix_connections_tenant_id", table_name="connections")
    op.drop_table("connections")
    op.drop_table("tenants")
