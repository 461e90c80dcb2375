"""Custom field overlay store -- rules per (entity, provider, tenant), values per record.

Rules say which provider field carries each tenant-defined custom field;
values are what a given canonical record currently holds for each slug.

Writes that belong to a push cycle (put_values) take the caller's session
so they commit or roll back together with the record upsert. Reads open
their own session so the paginated reader can run them concurrently.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.hub.core.database import SessionFactory
from src.hub.models.overlay import AttributeModel, ValueModel
from src.hub.models.shared import utcnow
from src.hub.overlay.rules import OverlayRule, order_rules

logger = structlog.get_logger(__name__)


def _model_to_rule(model: AttributeModel) -> OverlayRule:
    """Convert AttributeModel to OverlayRule."""
    return OverlayRule(
        slug=model.slug,
        remote_field=model.remote_field,
        data_type=model.data_type or "string",
        default_value=model.default_value,
        position=model.position or 0,
    )


class FieldMappingService:
    """Async access to overlay rules and values.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    # ── Rules ───────────────────────────────────────────────────────────────

    async def get_rules(
        self, entity_type: str, provider: str, tenant_id: str
    ) -> dict[str, OverlayRule]:
        """Load the ordered custom field rules for one scope.

        Returns:
            Rules keyed by slug, ordered by (position, slug). Empty when the
            tenant has defined none.
        """
        async for session in self._session_factory():
            stmt = select(AttributeModel).where(
                AttributeModel.entity_type == entity_type,
                AttributeModel.provider == provider,
                AttributeModel.tenant_id == tenant_id,
            )
            result = await session.execute(stmt)
            return order_rules(_model_to_rule(m) for m in result.scalars().all())
        return {}

    async def define_rule(
        self, entity_type: str, provider: str, tenant_id: str, rule: OverlayRule
    ) -> None:
        """Create or replace a custom field rule."""
        async for session in self._session_factory():
            async with session.begin():
                stmt = select(AttributeModel).where(
                    AttributeModel.entity_type == entity_type,
                    AttributeModel.provider == provider,
                    AttributeModel.tenant_id == tenant_id,
                    AttributeModel.slug == rule.slug,
                )
                model = (await session.execute(stmt)).scalar_one_or_none()
                if model is None:
                    model = AttributeModel(
                        entity_type=entity_type,
                        provider=provider,
                        tenant_id=tenant_id,
                        slug=rule.slug,
                    )
                    session.add(model)
                model.remote_field = rule.remote_field
                model.data_type = rule.data_type
                model.default_value = rule.default_value
                model.position = rule.position

            logger.info(
                "overlay.rule_defined",
                entity_type=entity_type,
                provider=provider,
                tenant_id=tenant_id,
                slug=rule.slug,
            )

    # ── Values ──────────────────────────────────────────────────────────────

    async def put_values(
        self,
        session: AsyncSession,
        record_id: str,
        entity_type: str,
        values: Mapping[str, Any],
    ) -> None:
        """Replace a record's overlay values inside the caller's transaction.

        Slugs absent from ``values`` are removed; order is kept via position.
        """
        await session.execute(delete(ValueModel).where(ValueModel.record_id == record_id))
        now = utcnow()
        for position, (slug, data) in enumerate(values.items()):
            session.add(
                ValueModel(
                    record_id=record_id,
                    entity_type=entity_type,
                    slug=slug,
                    data=data,
                    position=position,
                    modified_at=now,
                )
            )
        await session.flush()

    async def get_values(self, record_id: str) -> dict[str, Any]:
        """Return a record's overlay values in stored order."""
        async for session in self._session_factory():
            stmt = (
                select(ValueModel.slug, ValueModel.data)
                .where(ValueModel.record_id == record_id)
                .order_by(ValueModel.position, ValueModel.slug)
            )
            result = await session.execute(stmt)
            return {slug: data for slug, data in result.all()}
        return {}
