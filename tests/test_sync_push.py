"""Tests for the push cycle: SyncOrchestrator through TicketService/AttachmentService.

Covers:
- Happy path: record, audit event and webhook (Scenario A)
- Idempotent upsert by (remote_id, connection_id)
- Tenant and reference validation, nothing written on failure
- Connector failure and untransformable responses abort cleanly
- Upsert conflict converted into an update
- Webhook and audit failures after commit do not fail the push
- Provider ids never replace validated hub references
- Overlay round trip, defaults and precedence
- Inline attachments created in the same commit as the ticket
"""

from __future__ import annotations

import dataclasses

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from src.hub.core.errors import (
    ConnectorFailure,
    NotFound,
    ReferenceNotFound,
    TransformError,
    UnknownProvider,
)
from src.hub.models.overlay import RemoteDataModel, ValueModel
from src.hub.models.shared import EventModel
from src.hub.overlay import OverlayRule
from src.hub.ticketing.models import AttachmentModel, TicketModel
from src.hub.ticketing.registry import ACCOUNT, ATTACHMENT, TICKET, USER, get_entity_spec
from src.hub.ticketing.schemas import AttachmentInput, TicketInput


async def _events(session_factory) -> list[EventModel]:
    async for session in session_factory():
        result = await session.execute(select(EventModel).order_by(EventModel.timestamp))
        return list(result.scalars().all())
    return []


async def _attachments(session_factory) -> list[AttachmentModel]:
    async for session in session_factory():
        return list((await session.execute(select(AttachmentModel))).scalars().all())
    return []


async def _assert_nothing_written(session_factory, row_count, notifier) -> None:
    assert await row_count(TicketModel) == 0
    assert await row_count(AttachmentModel) == 0
    assert await row_count(ValueModel) == 0
    assert await row_count(RemoteDataModel) == 0
    assert await _events(session_factory) == []
    notifier.dispatch.assert_not_awaited()


# ── Happy path ──────────────────────────────────────────────────────────────


class TestPushHappyPath:
    """Successful push cycles."""

    async def test_scenario_a_creates_record_event_and_webhook(
        self, hub, ctx, echo, notifier, session_factory
    ):
        """Echo answering 201 with rt-1 -> record, one success event, one webhook."""
        echo.response = {"id": "rt-1", "subject": "Bug", "priority": "high"}

        out = await hub.tickets.add_ticket(TicketInput(name="Bug", priority="HIGH"), ctx)
        await hub.dispatcher.drain()

        assert out.remote_id == "rt-1"
        assert out.name == "Bug"
        assert out.priority == "HIGH"

        events = await _events(session_factory)
        assert len(events) == 1
        event = events[0]
        assert event.type == "ticketing.ticket.push"
        assert event.status == "success"
        assert event.method == "PUSH"
        assert event.url == "/ticketing/tickets"
        assert event.direction == "0"
        assert event.tenant_id == ctx.tenant_id
        assert event.connection_id == ctx.connection_id
        assert event.linked_user_id == ctx.linked_user_id
        assert event.provider == "zendesk"

        notifier.dispatch.assert_awaited_once()
        record, event_type, tenant_id, correlation_id, connection_id = (
            notifier.dispatch.await_args.args
        )
        assert record["id"] == out.id
        assert record["remote_id"] == "rt-1"
        assert event_type == "ticketing.ticket.created"
        assert tenant_id == ctx.tenant_id
        assert correlation_id == event.id
        assert connection_id == ctx.connection_id

    async def test_desunified_payload_sent_to_connector(self, hub, ctx, echo):
        """The connector receives provider field names, not canonical ones."""
        await hub.tickets.add_ticket(
            TicketInput(name="Printer on fire", description="Smoke", tags=["hw"]), ctx
        )

        entity_type, payload = echo.calls[0]
        assert entity_type == TICKET
        assert payload == {
            "subject": "Printer on fire",
            "comment": {"body": "Smoke"},
            "tags": ["hw"],
        }

    async def test_non_created_status_records_fail_event(self, hub, ctx, echo, session_factory):
        """A 200 answer still mirrors the record but audits as fail."""
        echo.status_code = 200

        out = await hub.tickets.add_ticket(TicketInput(name="Bug"), ctx)

        assert out.remote_id == "rt-1"
        events = await _events(session_factory)
        assert [e.status for e in events] == ["fail"]

    async def test_want_raw_returns_provider_snapshot(self, hub, ctx, echo):
        echo.response = {"id": 991, "subject": "Bug", "via": {"channel": "api"}}

        out = await hub.tickets.add_ticket(TicketInput(name="Bug"), ctx, want_raw=True)

        assert out.remote_id == "991"
        assert out.remote_data == {"id": 991, "subject": "Bug", "via": {"channel": "api"}}

    async def test_without_want_raw_remote_data_is_none(self, hub, ctx):
        out = await hub.tickets.add_ticket(TicketInput(name="Bug"), ctx)
        assert out.remote_data is None

    async def test_attachment_push_uses_post_method(self, hub, ctx, echo, session_factory):
        echo.response = {
            "upload": {
                "token": "tok",
                "attachment": {"id": 77, "file_name": "a.png", "content_url": "https://f/a.png"},
            }
        }

        out = await hub.attachments.add_attachment(
            AttachmentInput(file_name="a.png", file_url="https://f/a.png"), ctx
        )
        await hub.dispatcher.drain()

        assert out.remote_id == "77"
        assert out.file_name == "a.png"
        assert out.file_url == "https://f/a.png"
        events = await _events(session_factory)
        assert [(e.type, e.method, e.url) for e in events] == [
            ("ticketing.attachment.push", "POST", "/ticketing/attachments")
        ]
        assert echo.calls[0][0] == ATTACHMENT


# ── Idempotence ─────────────────────────────────────────────────────────────


class TestPushIdempotence:
    """Upsert by (remote_id, connection_id)."""

    async def test_same_remote_id_updates_in_place(self, hub, ctx, echo, row_count):
        first = await hub.tickets.add_ticket(TicketInput(name="First"), ctx)
        second = await hub.tickets.add_ticket(TicketInput(name="Second"), ctx)

        assert await row_count(TicketModel) == 1
        assert second.id == first.id
        assert second.name == "Second"
        assert second.created_at == first.created_at
        assert second.modified_at > first.modified_at

    async def test_snapshot_replaced_not_duplicated(self, hub, ctx, echo, row_count):
        await hub.tickets.add_ticket(TicketInput(name="First"), ctx)
        out = await hub.tickets.add_ticket(TicketInput(name="Second"), ctx, want_raw=True)

        assert await row_count(RemoteDataModel) == 1
        assert out.remote_data["subject"] == "Second"

    async def test_same_remote_id_other_connection_is_separate(
        self, hub, ctx, other_ctx, row_count
    ):
        a = await hub.tickets.add_ticket(TicketInput(name="A"), ctx)
        b = await hub.tickets.add_ticket(TicketInput(name="B"), other_ctx)

        assert a.id != b.id
        assert await row_count(TicketModel) == 2


# ── Validation ──────────────────────────────────────────────────────────────


class TestPushValidation:
    """Steps 1-3 abort before the provider is called."""

    async def test_unknown_tenant(self, hub, ctx, echo, notifier, session_factory, row_count):
        stranger = dataclasses.replace(ctx, tenant_id="no-such-tenant")

        with pytest.raises(NotFound) as exc_info:
            await hub.tickets.add_ticket(TicketInput(name="Bug"), stranger)

        assert exc_info.value.kind == "tenant"
        assert exc_info.value.step == "validate_tenant"
        assert echo.calls == []
        await _assert_nothing_written(session_factory, row_count, notifier)

    async def test_connection_of_another_tenant(self, hub, ctx, other_ctx, echo):
        borrowed = dataclasses.replace(ctx, connection_id=other_ctx.connection_id)

        with pytest.raises(NotFound) as exc_info:
            await hub.tickets.add_ticket(TicketInput(name="Bug"), borrowed)

        assert exc_info.value.kind == "connection"
        assert echo.calls == []

    async def test_missing_assignee(self, hub, ctx, echo, notifier, session_factory, row_count):
        with pytest.raises(ReferenceNotFound) as exc_info:
            await hub.tickets.add_ticket(
                TicketInput(name="Bug", assigned_to=["nonexistent-id"]), ctx
            )

        assert exc_info.value.field == "assigned_to"
        assert exc_info.value.missing_ids == ["nonexistent-id"]
        assert echo.calls == []
        await _assert_nothing_written(session_factory, row_count, notifier)

    async def test_missing_assignees_reported_exhaustively(self, hub, ctx, seed):
        [user_id] = await seed(get_entity_spec(USER), ctx.connection_id, 1, name="Ann")

        with pytest.raises(ReferenceNotFound) as exc_info:
            await hub.tickets.add_ticket(
                TicketInput(assigned_to=["ghost-1", user_id, "ghost-2"]), ctx
            )

        assert exc_info.value.missing_ids == ["ghost-1", "ghost-2"]

    async def test_missing_account(self, hub, ctx):
        with pytest.raises(ReferenceNotFound) as exc_info:
            await hub.tickets.add_ticket(TicketInput(account_id="acct-missing"), ctx)
        assert exc_info.value.field == "account_id"

    async def test_reference_in_other_tenant_not_visible(self, hub, ctx, other_ctx, seed):
        [foreign_user] = await seed(get_entity_spec(USER), other_ctx.connection_id, 1)

        with pytest.raises(ReferenceNotFound):
            await hub.tickets.add_ticket(TicketInput(assigned_to=[foreign_user]), ctx)

    async def test_valid_references_persisted(self, hub, ctx, seed):
        [user_id] = await seed(get_entity_spec(USER), ctx.connection_id, 1)
        [account_id] = await seed(get_entity_spec(ACCOUNT), ctx.connection_id, 1)

        out = await hub.tickets.add_ticket(
            TicketInput(name="Bug", assigned_to=[user_id], account_id=account_id), ctx
        )

        assert out.assigned_to == [user_id]
        assert out.account_id == account_id

    async def test_provider_ids_do_not_replace_validated_references(self, hub, ctx, echo, seed):
        [user_id] = await seed(get_entity_spec(USER), ctx.connection_id, 1)
        echo.response = {"id": "rt-2", "subject": "Bug", "collaborator_ids": [98765]}

        out = await hub.tickets.add_ticket(TicketInput(name="Bug", assigned_to=[user_id]), ctx)

        assert out.assigned_to == [user_id]

    async def test_provider_ids_never_stored_without_input(self, hub, ctx, echo):
        echo.response = {
            "id": "rt-3",
            "subject": "Bug",
            "collaborator_ids": [1, 2],
            "problem_id": 9,
        }

        out = await hub.tickets.add_ticket(TicketInput(name="Bug"), ctx)

        assert out.assigned_to == []
        assert out.parent_ticket is None

    async def test_unknown_provider(self, hub, ctx, notifier, session_factory, row_count):
        jira_ctx = dataclasses.replace(ctx, provider="jira")

        with pytest.raises(UnknownProvider):
            await hub.tickets.add_ticket(TicketInput(name="Bug"), jira_ctx)

        await _assert_nothing_written(session_factory, row_count, notifier)


# ── Failures after validation ───────────────────────────────────────────────


class TestPushFailures:
    """Steps 5-8 failures leave no trace."""

    async def test_connector_failure_propagates_unchanged(
        self, hub, ctx, echo, notifier, session_factory, row_count
    ):
        failure = ConnectorFailure("zendesk", "provider rejected the write", status_code=422)
        echo.error = failure

        with pytest.raises(ConnectorFailure) as exc_info:
            await hub.tickets.add_ticket(
                TicketInput(name="Bug", attachments=[AttachmentInput(file_name="a.txt")]), ctx
            )

        assert exc_info.value is failure
        assert exc_info.value.status_code == 422
        assert len(echo.calls) == 1
        await hub.dispatcher.drain()
        await _assert_nothing_written(session_factory, row_count, notifier)

    async def test_response_without_remote_id(
        self, hub, ctx, echo, notifier, session_factory, row_count
    ):
        echo.response = {"subject": "Bug"}

        with pytest.raises(TransformError):
            await hub.tickets.add_ticket(TicketInput(name="Bug"), ctx)

        await _assert_nothing_written(session_factory, row_count, notifier)

    async def test_response_with_wrong_shape(self, hub, ctx, echo, row_count):
        echo.response = {"id": "rt-1", "tags": "not-a-list"}

        with pytest.raises(TransformError) as exc_info:
            await hub.tickets.add_ticket(TicketInput(name="Bug"), ctx)

        assert exc_info.value.step == "transform"
        assert await row_count(TicketModel) == 0


# ── Concurrency ─────────────────────────────────────────────────────────────


class TestUpsertConflict:
    """A racing create surfaces as a unique-key conflict."""

    async def test_conflict_converted_to_update(self, hub, ctx, monkeypatch, row_count):
        first = await hub.tickets.add_ticket(TicketInput(name="A"), ctx)

        original = hub.repository.find_by_remote
        calls = {"n": 0}

        async def stale_lookup(*args, **kwargs):
            # Simulates a lookup that ran before the other writer committed
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return await original(*args, **kwargs)

        monkeypatch.setattr(hub.repository, "find_by_remote", stale_lookup)

        second = await hub.tickets.add_ticket(TicketInput(name="B"), ctx)

        assert calls["n"] == 2
        assert second.id == first.id
        assert second.name == "B"
        assert await row_count(TicketModel) == 1

    async def test_conflict_retries_bounded(self, hub, ctx, monkeypatch, session_factory):
        await hub.tickets.add_ticket(TicketInput(name="A"), ctx)

        async def always_stale(*args, **kwargs):
            return None

        monkeypatch.setattr(hub.repository, "find_by_remote", always_stale)

        with pytest.raises(IntegrityError):
            await hub.tickets.add_ticket(TicketInput(name="B"), ctx)

        # Only the first push was audited
        assert len(await _events(session_factory)) == 1


# ── Webhooks ────────────────────────────────────────────────────────────────


class TestPushWebhooks:
    """Webhook dispatch runs after commit and never fails the push."""

    async def test_webhook_failure_does_not_fail_push(
        self, hub, ctx, notifier, session_factory, row_count
    ):
        notifier.dispatch.side_effect = ConnectionError("redis down")

        out = await hub.tickets.add_ticket(TicketInput(name="Bug"), ctx)
        await hub.dispatcher.drain()

        assert out.remote_id == "rt-1"
        assert await row_count(TicketModel) == 1
        assert len(await _events(session_factory)) == 1
        notifier.dispatch.assert_awaited_once()

    async def test_audit_failure_does_not_fail_push(
        self, hub, ctx, notifier, monkeypatch, row_count
    ):
        async def broken_record(*args, **kwargs):
            raise RuntimeError("audit store down")

        monkeypatch.setattr(hub.audit, "record", broken_record)

        out = await hub.tickets.add_ticket(TicketInput(name="Bug"), ctx)
        await hub.dispatcher.drain()

        assert out.remote_id == "rt-1"
        assert await row_count(TicketModel) == 1
        notifier.dispatch.assert_awaited_once()
        correlation_id = notifier.dispatch.await_args.args[3]
        assert correlation_id

    async def test_drain_waits_for_pending_dispatches(self, hub, ctx, notifier):
        await hub.tickets.add_ticket(TicketInput(name="Bug"), ctx)
        await hub.dispatcher.drain()
        assert hub.dispatcher.pending == 0


# ── Overlay ─────────────────────────────────────────────────────────────────


class TestPushOverlay:
    """Custom field values travel through the provider and back."""

    async def _rule(self, hub, ctx, **kwargs) -> None:
        await hub.overlay.define_rule(TICKET, "zendesk", ctx.tenant_id, OverlayRule(**kwargs))

    async def test_round_trip(self, hub, ctx, echo):
        await self._rule(
            hub, ctx, slug="priority_custom", remote_field="custom_fields.priority_custom"
        )

        out = await hub.tickets.add_ticket(
            TicketInput(name="Bug", field_mappings={"priority_custom": "high"}), ctx
        )

        assert echo.calls[0][1]["custom_fields"] == {"priority_custom": "high"}
        assert out.field_mappings == {"priority_custom": "high"}

    async def test_defaults_applied_and_ordered_by_position(self, hub, ctx, echo):
        await self._rule(hub, ctx, slug="zone", remote_field="cf.zone", position=2)
        await self._rule(
            hub, ctx, slug="tier", remote_field="cf.tier", default_value="gold", position=1
        )

        out = await hub.tickets.add_ticket(
            TicketInput(name="Bug", field_mappings={"zone": "eu", "extra": 1}), ctx
        )

        assert echo.calls[0][1]["cf"] == {"tier": "gold", "zone": "eu"}
        assert "extra" not in str(echo.calls[0][1])
        assert list(out.field_mappings.items()) == [("tier", "gold"), ("zone", "eu"), ("extra", 1)]

    async def test_input_beats_provider_value(self, hub, ctx, echo):
        await self._rule(hub, ctx, slug="team", remote_field="cf.team")
        echo.response = {"id": "rt-1", "cf": {"team": "from-provider"}}

        out = await hub.tickets.add_ticket(
            TicketInput(name="Bug", field_mappings={"team": "from-input"}), ctx
        )

        assert out.field_mappings == {"team": "from-input"}

    async def test_push_without_overlay_stores_provider_custom_fields(self, hub, ctx, echo):
        await self._rule(hub, ctx, slug="team", remote_field="cf.team")
        echo.response = {"id": "rt-9", "subject": "X", "cf": {"team": "support"}}

        out = await hub.tickets.add_ticket(TicketInput(name="X"), ctx)

        assert "cf" not in echo.calls[0][1]
        assert out.field_mappings == {"team": "support"}

    async def test_overlay_replaced_each_cycle(self, hub, ctx, echo):
        await self._rule(hub, ctx, slug="team", remote_field="cf.team")
        await hub.tickets.add_ticket(TicketInput(name="A", field_mappings={"team": "ops"}), ctx)
        echo.response = {"id": "rt-1", "subject": "B", "cf": {"team": "billing"}}

        out = await hub.tickets.add_ticket(TicketInput(name="B"), ctx)

        assert out.field_mappings == {"team": "billing"}

    async def test_overlay_without_rules_is_not_sent(self, hub, ctx, echo):
        out = await hub.tickets.add_ticket(
            TicketInput(name="Bug", field_mappings={"loose": "x"}), ctx
        )

        assert echo.calls[0][1] == {"subject": "Bug"}
        assert out.field_mappings == {"loose": "x"}


# ── Inline attachments ──────────────────────────────────────────────────────


class TestInlineAttachments:
    """Attachments given inline are created with the ticket."""

    async def test_inline_attachment_created_with_ticket(self, hub, ctx, session_factory):
        out = await hub.tickets.add_ticket(
            TicketInput(
                name="Bug",
                attachments=[AttachmentInput(file_name="log.txt", file_url="https://f/log.txt")],
            ),
            ctx,
        )

        rows = await _attachments(session_factory)
        assert len(rows) == 1
        assert out.attachments == [rows[0].id]
        assert rows[0].ticket_id == out.id
        assert rows[0].file_name == "log.txt"
        assert rows[0].connection_id == ctx.connection_id

    async def test_mixed_ids_and_inline_keep_order(self, hub, ctx, seed, session_factory):
        [existing] = await seed(get_entity_spec(ATTACHMENT), ctx.connection_id, 1)

        out = await hub.tickets.add_ticket(
            TicketInput(attachments=[AttachmentInput(file_name="new.txt"), existing]), ctx
        )

        assert len(out.attachments) == 2
        assert out.attachments[1] == existing
        new_ids = {a.id for a in await _attachments(session_factory)} - {existing}
        assert out.attachments[0] in new_ids

    async def test_unknown_attachment_id(self, hub, ctx, echo, notifier, session_factory, row_count):
        with pytest.raises(ReferenceNotFound) as exc_info:
            await hub.tickets.add_ticket(
                TicketInput(attachments=[AttachmentInput(file_name="a"), "ghost"]), ctx
            )

        assert exc_info.value.field == "attachments"
        assert exc_info.value.missing_ids == ["ghost"]
        assert echo.calls == []
        await _assert_nothing_written(session_factory, row_count, notifier)
