"""Synchronization core -- push cycles, paginated reads, audit.

- SyncOrchestrator: canonical write -> provider -> local mirror
- PaginatedReader: hydrated single-record and cursor-paginated reads
- CanonicalRepository: entity-agnostic persistence with upsert
- AuditLog: append-only push/pull events
"""

from src.hub.sync.audit import AuditLog
from src.hub.sync.cursor import decode_cursor, encode_cursor
from src.hub.sync.orchestrator import (
    InlineResolver,
    PendingRecord,
    StagedReferences,
    SyncOrchestrator,
)
from src.hub.sync.reader import PaginatedReader
from src.hub.sync.repository import CanonicalRepository

__all__ = [
    "AuditLog",
    "CanonicalRepository",
    "InlineResolver",
    "PaginatedReader",
    "PendingRecord",
    "StagedReferences",
    "SyncOrchestrator",
    "decode_cursor",
    "encode_cursor",
]
