"""Synchronization orchestrator -- one push cycle per canonical write.

A push cycle takes a canonical input, writes it to the tenant's provider
and mirrors the provider's answer locally. Steps run strictly in order:

     1. validate tenant (and that the connection belongs to it)
     2. validate referenced entities, exhaustively per field
     3. stage inline sub-entities (ids generated now, rows written in 7)
     4. load overlay rules
     5. desunify + connector write
     6. unify the provider response
     7. upsert by (remote_id, connection_id), in one transaction with 8
     8. overlay values + raw snapshot
     9. re-read through the reader (no pull event)
    10. audit event, then post-commit webhook (an audit write failure is
        logged, not raised: the record is already committed)

An error in steps 1-8 aborts the cycle with nothing persisted, audited or
notified. Connector errors propagate unchanged; the only retry here is the
upsert conflict retry around steps 7-8.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

from src.hub.connectors.registry import ConnectorRegistry
from src.hub.core.database import SessionFactory
from src.hub.core.errors import NotFound, ReferenceNotFound, TransformError
from src.hub.core.monitoring import push_cycles_total, track_connector_call, upsert_conflicts_total
from src.hub.core.tenant import SyncContext, bind_sync_context
from src.hub.overlay.rules import OverlayRule, merge_overlay
from src.hub.overlay.service import FieldMappingService
from src.hub.overlay.snapshots import SnapshotStore
from src.hub.sync.audit import FAIL, SUCCESS, AuditLog
from src.hub.sync.reader import PaginatedReader
from src.hub.sync.repository import CanonicalRepository
from src.hub.ticketing.registry import EntitySpec, get_entity_spec
from src.hub.ticketing.schemas import CanonicalOutput
from src.hub.unification.engine import OVERLAY_KEY, UnificationEngine
from src.hub.webhooks.dispatcher import PostCommitDispatcher

logger = structlog.get_logger(__name__)


# ── Inline sub-entities ─────────────────────────────────────────────────────


@dataclass
class PendingRecord:
    """A sub-entity row to insert in the same transaction as its parent.

    Attributes:
        spec: Entity type of the sub-entity.
        id: Canonical id, generated before the parent is written.
        values: Canonical field values.
        parent_field: Field set to the parent's id once it is known, unless
            the caller already gave one.
    """

    spec: EntitySpec
    id: str
    values: dict[str, Any]
    parent_field: str | None = None


@dataclass
class StagedReferences:
    """Result of resolving a list field that mixes ids and inline payloads."""

    ids: list[str]
    pending: list[PendingRecord] = field(default_factory=list)


InlineResolver = Callable[[Sequence[Any], SyncContext], Awaitable[StagedReferences]]


def _as_source(data: BaseModel | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=True)
    return dict(data)


class SyncOrchestrator:
    """Runs push cycles for any entity type with a push path.

    Args:
        session_factory: Async callable yielding AsyncSession instances,
            used for the steps 7-8 transaction.
        repository: Canonical record persistence.
        overlay: Overlay rules and values.
        snapshots: Raw snapshot store.
        audit: Audit log.
        reader: Reader used for the step 9 re-read.
        engine: Unification engine.
        connectors: Provider connector registry.
        dispatcher: Post-commit webhook dispatcher.
        conflict_retries: Extra attempts after a unique-key conflict.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        repository: CanonicalRepository,
        overlay: FieldMappingService,
        snapshots: SnapshotStore,
        audit: AuditLog,
        reader: PaginatedReader,
        engine: UnificationEngine,
        connectors: ConnectorRegistry,
        dispatcher: PostCommitDispatcher,
        *,
        conflict_retries: int = 2,
    ) -> None:
        self._session_factory = session_factory
        self._repository = repository
        self._overlay = overlay
        self._snapshots = snapshots
        self._audit = audit
        self._reader = reader
        self._engine = engine
        self._connectors = connectors
        self._dispatcher = dispatcher
        self._conflict_retries = conflict_retries

    async def push(
        self,
        spec: EntitySpec,
        data: BaseModel | Mapping[str, Any],
        ctx: SyncContext,
        *,
        want_raw: bool = False,
        inline_resolvers: Mapping[str, InlineResolver] | None = None,
    ) -> CanonicalOutput:
        """Execute one push cycle.

        Args:
            spec: Entity being written.
            data: Canonical input (pydantic model or mapping). Unset fields
                are not sent to the provider.
            ctx: Caller identity and connection.
            want_raw: Include the raw provider response as remote_data.
            inline_resolvers: Per list field, a resolver that turns a mix of
                ids and inline payloads into ids plus rows to insert.

        Returns:
            The hydrated record as persisted.

        Raises:
            NotFound: Tenant or connection does not exist.
            ReferenceNotFound: A referenced entity does not exist.
            ConnectorFailure: The provider call failed.
            TransformError: The provider response cannot be unified.
            UnknownProvider: No connector or field map for the provider.
        """
        with bind_sync_context(ctx, entity_type=spec.entity_type):
            try:
                output, status = await self._run(spec, data, ctx, want_raw, inline_resolvers)
            except Exception:
                push_cycles_total.labels(
                    entity_type=spec.entity_type, provider=ctx.provider, outcome="error"
                ).inc()
                raise

            push_cycles_total.labels(
                entity_type=spec.entity_type, provider=ctx.provider, outcome=status
            ).inc()
            return output

    async def _run(
        self,
        spec: EntitySpec,
        data: BaseModel | Mapping[str, Any],
        ctx: SyncContext,
        want_raw: bool,
        inline_resolvers: Mapping[str, InlineResolver] | None,
    ) -> tuple[CanonicalOutput, str]:
        source = _as_source(data)
        logger.info("sync.push_started", fields=sorted(source))

        # 1. Tenant
        if not await self._repository.tenant_exists(ctx.tenant_id):
            raise NotFound("tenant", ctx.tenant_id, step="validate_tenant")
        if not await self._repository.connection_belongs_to(ctx.connection_id, ctx.tenant_id):
            raise NotFound(
                "connection", ctx.connection_id, step="validate_tenant", tenant_id=ctx.tenant_id
            )

        # 2. References
        await self._validate_references(spec, source, ctx)

        # 3. Inline sub-entities
        pending: list[PendingRecord] = []
        for field_name, resolver in (inline_resolvers or {}).items():
            items = source.get(field_name)
            if not items:
                continue
            staged = await resolver(items, ctx)
            source[field_name] = staged.ids
            pending.extend(staged.pending)

        # 4. Overlay rules
        input_overlay = source.get(OVERLAY_KEY)
        rules = await self._overlay.get_rules(spec.entity_type, ctx.provider, ctx.tenant_id)
        # Rules reach the provider only when the input carries overlay values;
        # the response is always read back through them.
        outbound_rules: Mapping[str, OverlayRule] | None = rules if input_overlay else None

        # 5. Desunify + provider write
        connector = self._connectors.resolve(ctx.provider, spec.entity_type)
        payload = self._engine.desunify(
            source, spec.entity_type, ctx.provider, ctx.tenant_id, outbound_rules
        )
        async with track_connector_call(ctx.provider):
            response = await connector.write(spec.entity_type, payload, ctx)
        logger.info("sync.connector_responded", status_code=response.status_code)

        # 6. Unify
        unified = self._engine.unify(
            [response.data], spec.entity_type, ctx.provider, ctx.tenant_id, rules
        )[0]
        remote_id = unified.get("remote_id")
        if remote_id is None:
            raise TransformError(
                "provider response carries no remote id",
                entity_type=spec.entity_type,
                provider=ctx.provider,
            )

        # Provider-echoed fields win, except fields holding hub record ids:
        # those keep the validated input value, never a provider id.
        values = {name: source[name] for name in spec.fields if name in source}
        values.update(
            {
                name: v
                for name, v in unified.items()
                if name in spec.fields and name not in spec.local_id_fields
            }
        )
        overlay_values = merge_overlay(rules, unified.get(OVERLAY_KEY), input_overlay)

        # 7-8. Upsert, overlay, snapshot
        record_id, created = await self._persist(
            spec, ctx, remote_id, values, overlay_values, response.data, pending
        )
        logger.info(
            "sync.record_persisted",
            record_id=record_id,
            remote_id=remote_id,
            created=created,
            inline_created=len(pending),
        )

        # 9. Re-read
        output = await self._reader.get(spec, record_id, ctx, want_raw=want_raw, audit=False)

        # 10. Audit, then webhook
        status = SUCCESS if response.created else FAIL
        try:
            event_id = await self._audit.record(
                ctx, spec.push_event_type, spec.push_method, spec.collection_url, status
            )
        except Exception as exc:
            # Record already committed; audit failure is logged only.
            event_id = str(uuid.uuid4())
            logger.error(
                "sync.audit_failed",
                record_id=record_id,
                correlation_id=event_id,
                error=str(exc),
            )
        self._dispatcher.schedule(
            output.model_dump(mode="json"),
            spec.created_webhook_type,
            ctx.tenant_id,
            correlation_id=event_id,
            connection_id=ctx.connection_id,
        )
        logger.info("sync.push_completed", record_id=record_id, status=status, event_id=event_id)
        return output, status

    async def _validate_references(
        self, spec: EntitySpec, source: Mapping[str, Any], ctx: SyncContext
    ) -> None:
        """Raise ReferenceNotFound naming every unresolved id of a field."""
        for ref in spec.references:
            value = source.get(ref.field)
            if value is None:
                continue
            ids = [str(v) for v in value] if ref.many else [str(value)]
            missing = await self._repository.missing_ids(
                get_entity_spec(ref.target), ids, ctx.tenant_id
            )
            if missing:
                raise ReferenceNotFound(ref.field, missing)

    async def _persist(
        self,
        spec: EntitySpec,
        ctx: SyncContext,
        remote_id: str,
        values: dict[str, Any],
        overlay_values: dict[str, Any],
        raw: dict[str, Any],
        pending: list[PendingRecord],
    ) -> tuple[str, bool]:
        """Write record, sub-entities, overlay and snapshot in one transaction.

        A unique-key conflict means another cycle created the same
        (remote_id, connection_id) concurrently; the transaction is rolled
        back and rerun, and the rerun takes the update path.
        """
        attempts = self._conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                async for session in self._session_factory():
                    async with session.begin():
                        record, created = await self._repository.upsert(
                            session, spec, ctx.connection_id, remote_id, values
                        )
                        for item in pending:
                            item_values = dict(item.values)
                            if item.parent_field and not item_values.get(item.parent_field):
                                item_values[item.parent_field] = record.id
                            await self._repository.insert(
                                session,
                                item.spec,
                                ctx.connection_id,
                                item_values,
                                record_id=item.id,
                            )
                        await self._overlay.put_values(
                            session, record.id, spec.entity_type, overlay_values
                        )
                        await self._snapshots.put(session, record.id, spec.entity_type, raw)
                    return record.id, created
            except IntegrityError as exc:
                upsert_conflicts_total.labels(entity_type=spec.entity_type).inc()
                if attempt == attempts:
                    raise
                logger.warning(
                    "sync.upsert_conflict",
                    remote_id=remote_id,
                    attempt=attempt,
                    error=str(exc.orig),
                )
        raise RuntimeError("session factory yielded no session")
