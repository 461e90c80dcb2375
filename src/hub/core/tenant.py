"""Per-call sync context.

A SyncContext identifies who is calling (tenant, linked end-user) and
which connection (tenant + provider pair) the call is scoped to. It is
passed explicitly through every push and read cycle and bound into the
structlog context so every log line of a cycle carries the same ids.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import structlog


@dataclass(frozen=True)
class SyncContext:
    """Immutable identity of one push or read cycle."""

    tenant_id: str
    connection_id: str
    provider: str
    linked_user_id: str | None = None


@contextmanager
def bind_sync_context(ctx: SyncContext, **extra: str) -> Iterator[None]:
    """Bind the context ids into structlog contextvars for the block."""
    with structlog.contextvars.bound_contextvars(
        tenant_id=ctx.tenant_id,
        connection_id=ctx.connection_id,
        provider=ctx.provider,
        **extra,
    ):
        yield
