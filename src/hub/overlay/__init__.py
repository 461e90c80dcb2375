"""Extension data attached to canonical records.

- FieldMappingService: custom field rules and per-record values
- SnapshotStore: last raw provider payload per record
- OverlayRule / merge_overlay: rule vocabulary and precedence merge
"""

from src.hub.overlay.rules import OverlayRule, merge_overlay, order_rules
from src.hub.overlay.service import FieldMappingService
from src.hub.overlay.snapshots import SnapshotStore

__all__ = [
    "FieldMappingService",
    "OverlayRule",
    "SnapshotStore",
    "merge_overlay",
    "order_rules",
]
