"""Declarative provider field maps and the value conversions they use.

A ProviderFieldMap says, for one (provider, entity type) pair, where each
canonical field lives in the provider payload and how its value converts
in each direction. Paths are dotted ("comment.body", "fields.summary").

Defines:
- FieldRule: canonical field -> provider path(s), value kind, enum values
- ProviderFieldMap: remote id path plus the FieldRules for an entity
- get_path() / set_path(): dotted path access on nested dicts
- to_provider_value() / to_canonical_value(): per-kind conversion
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.hub.core.errors import TransformError

VALUE_KINDS = ("string", "integer", "list", "datetime", "named", "reference", "any")

_MISSING = object()


@dataclass(frozen=True)
class FieldRule:
    """Mapping of one canonical field onto a provider payload.

    Attributes:
        path: Dotted provider path used when writing to the provider.
        kind: Value kind, one of VALUE_KINDS. "named" wraps the value as
            ``{"name": value}`` (Jira-style select objects). "reference"
            carries a related record id verbatim.
        inbound_path: Path read back from provider output, if it differs
            from ``path`` (e.g. a write-only comment body).
        values: Canonical -> provider enum translation. Values without an
            entry pass through unchanged.
        inbound_values: Extra provider -> canonical translations applied on
            top of the inverse of ``values``.
    """

    path: str
    kind: str = "string"
    inbound_path: str | None = None
    values: Mapping[str, str] = field(default_factory=dict)
    inbound_values: Mapping[str, str] = field(default_factory=dict)

    @property
    def read_path(self) -> str:
        return self.inbound_path or self.path


@dataclass(frozen=True)
class ProviderFieldMap:
    """All FieldRules of one entity type for one provider."""

    provider: str
    entity_type: str
    remote_id_path: str
    fields: Mapping[str, FieldRule]


# ── Path helpers ────────────────────────────────────────────────────────────


def get_path(data: Mapping[str, Any], path: str) -> Any:
    """Return the value at a dotted path, or the module sentinel if absent."""
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def has_value(value: Any) -> bool:
    """True unless value is the absent-path sentinel."""
    return value is not _MISSING


def set_path(data: dict[str, Any], path: str, value: Any) -> None:
    """Set a value at a dotted path, creating intermediate dicts."""
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


# ── Conversions ─────────────────────────────────────────────────────────────


def to_provider_value(name: str, rule: FieldRule, value: Any) -> Any:
    """Convert a canonical value into the provider representation."""
    if value is None:
        return None

    if rule.values and isinstance(value, str):
        value = rule.values.get(value, value)

    if rule.kind == "datetime":
        return value.isoformat() if isinstance(value, datetime) else str(value)
    if rule.kind == "list":
        return list(value) if isinstance(value, (list, tuple, set)) else [value]
    if rule.kind == "named":
        return {"name": str(value)}
    if rule.kind == "integer":
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise TransformError(
                f"cannot convert {name} to integer", field=name, value=value
            ) from exc
    if rule.kind in ("string", "reference"):
        return str(value)
    return value


def to_canonical_value(name: str, rule: FieldRule, raw: Any) -> Any:
    """Convert a provider value into the canonical representation.

    Raises:
        TransformError: If the provider value has an incompatible shape.
    """
    if raw is None:
        return None

    value = raw
    if rule.kind == "named":
        if isinstance(raw, Mapping):
            value = raw.get("name")
        elif not isinstance(raw, str):
            raise TransformError(
                f"expected object with name for {name}", field=name, value=raw
            )
    elif rule.kind == "datetime":
        if isinstance(raw, datetime):
            value = raw
        else:
            try:
                value = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
            except ValueError as exc:
                raise TransformError(
                    f"unparseable datetime for {name}", field=name, value=raw
                ) from exc
    elif rule.kind == "list":
        if not isinstance(raw, (list, tuple)):
            raise TransformError(f"expected list for {name}", field=name, value=raw)
        value = [str(v) for v in raw]
    elif rule.kind in ("string", "integer", "reference"):
        if isinstance(raw, (Mapping, list)):
            raise TransformError(
                f"expected scalar for {name}", field=name, value=raw
            )
        value = str(raw)

    if (rule.values or rule.inbound_values) and isinstance(value, str):
        inverse = {v: k for k, v in rule.values.items()}
        inverse.update(rule.inbound_values)
        value = inverse.get(value, value)

    return value
