"""Error taxonomy for the synchronization pipeline.

Every error raised by the push and read paths derives from HubError and
carries the pipeline step it was raised in plus the identifiers involved,
so callers can report which stage of a cycle failed and for which record.

Exports:
    HubError: Base class.
    NotFound: Tenant, record or connection absent.
    ReferenceNotFound: A related entity referenced by a write does not exist.
    ConnectorFailure: Provider call errored or returned a failure status.
    TransformError: Provider shape cannot be mapped (not merely unmapped).
    InvalidCursor: Pagination cursor does not resolve in the connection.
    UnknownProvider: No connector or field map registered for a provider.
"""

from __future__ import annotations

from typing import Any


class HubError(Exception):
    """Base class for pipeline errors.

    Attributes:
        step: Pipeline step name (e.g. "validate_tenant", "connector_write").
        context: Identifiers relevant to the failure (ids, provider, field).
    """

    step: str = "unknown"

    def __init__(self, message: str, *, step: str | None = None, **context: Any) -> None:
        self.message = message
        if step is not None:
            self.step = step
        self.context = context
        super().__init__(str(self))

    def __str__(self) -> str:
        if not self.context:
            return f"[{self.step}] {self.message}"
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"[{self.step}] {self.message} ({details})"


class NotFound(HubError):
    """Raised when a tenant, record or connection does not exist."""

    def __init__(self, kind: str, identifier: str, *, step: str = "lookup", **context: Any) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found", step=step, id=identifier, **context)


class ReferenceNotFound(HubError):
    """Raised when a write references related entities that do not exist.

    Attributes:
        field: Canonical field carrying the reference (e.g. "assigned_to").
        missing_ids: Every referenced id that failed to resolve.
    """

    step = "validate_references"

    def __init__(self, field: str, missing_ids: list[str]) -> None:
        self.field = field
        self.missing_ids = list(missing_ids)
        super().__init__(
            f"{field} references entities that do not exist",
            field=field,
            missing_ids=self.missing_ids,
        )


class ConnectorFailure(HubError):
    """Raised when a provider connector call fails.

    Attributes:
        provider: Provider slug.
        status_code: HTTP-like status returned by the provider, if any.
    """

    step = "connector_write"

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        status_code: int | None = None,
        **context: Any,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(message, provider=provider, status_code=status_code, **context)


class TransformError(HubError):
    """Raised on an unrecoverable shape mismatch during unify/desunify."""

    step = "transform"


class InvalidCursor(HubError):
    """Raised when a pagination cursor does not resolve in the connection."""

    step = "resolve_cursor"

    def __init__(self, cursor: str, connection_id: str) -> None:
        self.cursor = cursor
        super().__init__(
            "The provided cursor does not exist",
            cursor=cursor,
            connection_id=connection_id,
        )


class UnknownProvider(HubError):
    """Raised when no connector or field map is registered for a provider."""

    step = "resolve_provider"

    def __init__(self, provider: str, **context: Any) -> None:
        self.provider = provider
        super().__init__("no implementation registered", provider=provider, **context)
