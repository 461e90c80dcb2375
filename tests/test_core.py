"""Tests for core infrastructure: errors, settings, sync context, metrics."""

from __future__ import annotations

import pytest
import structlog

from src.hub.config import Environment, Settings
from src.hub.core.errors import (
    ConnectorFailure,
    HubError,
    InvalidCursor,
    NotFound,
    ReferenceNotFound,
    TransformError,
    UnknownProvider,
)
from src.hub.core.monitoring import (
    connector_requests_total,
    render_metrics,
    track_connector_call,
)
from src.hub.core.tenant import SyncContext, bind_sync_context


class TestErrors:
    """Every error names its pipeline step and identifiers."""

    def test_str_includes_step_and_context(self):
        err = HubError("boom", step="persist", record_id="r-1")
        assert str(err) == "[persist] boom (record_id=r-1)"

    def test_str_without_context(self):
        assert str(HubError("boom")) == "[unknown] boom"

    @pytest.mark.parametrize(
        ("error", "step"),
        [
            (NotFound("tenant", "t-1"), "lookup"),
            (ReferenceNotFound("assigned_to", ["u-1"]), "validate_references"),
            (ConnectorFailure("zendesk", "down"), "connector_write"),
            (TransformError("bad shape"), "transform"),
            (InvalidCursor("abc", "conn-1"), "resolve_cursor"),
            (UnknownProvider("freshdesk"), "resolve_provider"),
        ],
    )
    def test_default_steps(self, error, step):
        assert isinstance(error, HubError)
        assert error.step == step

    def test_not_found_step_override(self):
        err = NotFound("tenant", "t-1", step="validate_tenant")
        assert err.step == "validate_tenant"
        assert err.context["id"] == "t-1"

    def test_reference_not_found_lists_every_id(self):
        err = ReferenceNotFound("assigned_to", ["u-1", "u-2"])
        assert err.missing_ids == ["u-1", "u-2"]
        assert err.field == "assigned_to"


class TestSettings:
    """Environment-driven configuration."""

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.DEFAULT_PAGE_LIMIT == 50
        assert settings.MAX_PAGE_LIMIT == 1000
        assert settings.ENVIRONMENT == Environment.development
        assert settings.WEBHOOK_SIGNATURE_HEADER == "X-Hub-Signature"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("MAX_PAGE_LIMIT", "200")
        monkeypatch.setenv("ENVIRONMENT", "production")
        settings = Settings(_env_file=None)
        assert settings.MAX_PAGE_LIMIT == 200
        assert settings.ENVIRONMENT == Environment.production


class TestSyncContext:
    """Context binding for structured logs."""

    def test_binds_and_unbinds_ids(self):
        ctx = SyncContext(tenant_id="t-1", connection_id="c-1", provider="jira")

        with bind_sync_context(ctx, entity_type="ticket"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["tenant_id"] == "t-1"
            assert bound["connection_id"] == "c-1"
            assert bound["entity_type"] == "ticket"

        assert "tenant_id" not in structlog.contextvars.get_contextvars()


class TestMonitoring:
    """Connector call tracking."""

    async def test_counts_success_and_error(self):
        success = connector_requests_total.labels(provider="probe", status="success")
        error = connector_requests_total.labels(provider="probe", status="error")
        before_ok, before_err = success._value.get(), error._value.get()

        async with track_connector_call("probe"):
            pass
        with pytest.raises(RuntimeError):
            async with track_connector_call("probe"):
                raise RuntimeError("down")

        assert success._value.get() == before_ok + 1
        assert error._value.get() == before_err + 1

    def test_render_metrics_exposes_hub_metrics(self):
        payload = render_metrics().decode()
        assert "hub_push_cycles_total" in payload
        assert "hub_connector_request_duration_seconds" in payload
