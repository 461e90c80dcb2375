"""Bidirectional transform between canonical records and provider payloads.

desunify(): canonical -> provider, used for outbound writes.
unify():    provider -> canonical, used on connector responses.

Both are pure: they read only the declarative field maps held by the
MapperRegistry and the overlay rules passed in by the caller.

Rules:
- desunify drops canonical fields with no provider counterpart (logged at
  debug, never an error -- provider validation belongs to the connector).
- unify omits canonical fields absent from the provider output instead of
  defaulting them.
- Overlay values travel through the provider field named by their rule;
  unify reads them back into an ordered ``field_mappings`` mapping.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from src.hub.core.errors import TransformError, UnknownProvider
from src.hub.overlay.rules import OverlayRule, merge_overlay
from src.hub.unification.mapping import (
    ProviderFieldMap,
    get_path,
    has_value,
    set_path,
    to_canonical_value,
    to_provider_value,
)

logger = structlog.get_logger(__name__)

OVERLAY_KEY = "field_mappings"


class MapperRegistry:
    """Registry of ProviderFieldMaps keyed by (provider, entity_type)."""

    def __init__(self) -> None:
        self._maps: dict[tuple[str, str], ProviderFieldMap] = {}

    def register(self, field_map: ProviderFieldMap) -> None:
        self._maps[(field_map.provider, field_map.entity_type)] = field_map

    def register_all(self, field_maps: Mapping[str, ProviderFieldMap]) -> None:
        for field_map in field_maps.values():
            self.register(field_map)

    def get(self, provider: str, entity_type: str) -> ProviderFieldMap:
        """Return the field map for a provider/entity pair.

        Raises:
            UnknownProvider: If the provider has no map for the entity type.
        """
        try:
            return self._maps[(provider, entity_type)]
        except KeyError:
            raise UnknownProvider(provider, entity_type=entity_type) from None

    def providers(self) -> set[str]:
        return {provider for provider, _ in self._maps}


def default_mapper_registry() -> MapperRegistry:
    """MapperRegistry preloaded with the built-in provider maps."""
    from src.hub.unification.providers import BUILTIN_FIELD_MAPS

    registry = MapperRegistry()
    for field_maps in BUILTIN_FIELD_MAPS.values():
        registry.register_all(field_maps)
    return registry


class UnificationEngine:
    """Converts records between canonical and provider shapes.

    Args:
        mappers: Registry of declarative provider field maps.
    """

    def __init__(self, mappers: MapperRegistry) -> None:
        self._mappers = mappers

    def desunify(
        self,
        source: Mapping[str, Any],
        entity_type: str,
        provider: str,
        tenant_id: str,
        overlay_rules: Mapping[str, OverlayRule] | None = None,
    ) -> dict[str, Any]:
        """Convert a canonical input into a provider payload.

        Args:
            source: Canonical field values (unset fields omitted).
            entity_type: Canonical entity type, e.g. "ticketing.ticket".
            provider: Provider slug.
            tenant_id: Tenant the write belongs to (log context only).
            overlay_rules: Custom field rules; when given, overlay values in
                ``source["field_mappings"]`` are written to their provider
                fields, falling back to rule defaults.

        Returns:
            Provider-shaped payload dict.
        """
        field_map = self._mappers.get(provider, entity_type)
        payload: dict[str, Any] = {}
        dropped: list[str] = []

        for name, value in source.items():
            if name == OVERLAY_KEY or value is None:
                continue
            rule = field_map.fields.get(name)
            if rule is None:
                dropped.append(name)
                continue
            set_path(payload, rule.path, to_provider_value(name, rule, value))

        if overlay_rules:
            overlay = merge_overlay(overlay_rules, source.get(OVERLAY_KEY))
            for slug, value in overlay.items():
                rule = overlay_rules.get(slug)
                if rule is None:
                    dropped.append(f"{OVERLAY_KEY}.{slug}")
                    continue
                set_path(payload, rule.remote_field, _coerce_overlay(rule, value))

        if dropped:
            logger.debug(
                "unification.desunify_dropped_fields",
                entity_type=entity_type,
                provider=provider,
                tenant_id=tenant_id,
                fields=dropped,
            )

        return payload

    def unify(
        self,
        outputs: Sequence[Any],
        entity_type: str,
        provider: str,
        tenant_id: str,
        overlay_rules: Mapping[str, OverlayRule] | None = None,
    ) -> list[dict[str, Any]]:
        """Convert provider outputs into canonical records.

        Args:
            outputs: Raw provider records.
            entity_type: Canonical entity type.
            provider: Provider slug.
            tenant_id: Tenant the records belong to (log context only).
            overlay_rules: Custom field rules used to extract overlay values.

        Returns:
            One canonical dict per output, in input order. Each carries
            ``remote_id``, the mapped canonical fields present in the
            output, and ``field_mappings``.

        Raises:
            TransformError: If an output is not a mapping or a value has an
                incompatible shape.
        """
        field_map = self._mappers.get(provider, entity_type)
        unified: list[dict[str, Any]] = []

        for index, raw in enumerate(outputs):
            if not isinstance(raw, Mapping):
                raise TransformError(
                    "provider output is not an object",
                    entity_type=entity_type,
                    provider=provider,
                    index=index,
                )

            record: dict[str, Any] = {}
            remote_id = get_path(raw, field_map.remote_id_path)
            record["remote_id"] = (
                str(remote_id) if has_value(remote_id) and remote_id is not None else None
            )

            for name, rule in field_map.fields.items():
                value = get_path(raw, rule.read_path)
                if not has_value(value):
                    continue
                record[name] = to_canonical_value(name, rule, value)

            overlay: dict[str, Any] = {}
            for slug, rule in (overlay_rules or {}).items():
                value = get_path(raw, rule.remote_field)
                if has_value(value):
                    overlay[slug] = value
            record[OVERLAY_KEY] = overlay

            unified.append(record)

        logger.debug(
            "unification.unified",
            entity_type=entity_type,
            provider=provider,
            tenant_id=tenant_id,
            count=len(unified),
        )
        return unified


def _coerce_overlay(rule: OverlayRule, value: Any) -> Any:
    """Coerce an overlay value to its rule's declared data type."""
    if value is None or rule.data_type == "any":
        return value
    try:
        if rule.data_type == "string":
            return str(value)
        if rule.data_type == "number":
            return float(value) if isinstance(value, str) else value
        if rule.data_type == "boolean":
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes")
            return bool(value)
        if rule.data_type == "list":
            return list(value) if isinstance(value, (list, tuple)) else [value]
    except (TypeError, ValueError) as exc:
        raise TransformError(
            f"cannot coerce overlay value to {rule.data_type}",
            slug=rule.slug,
            value=value,
        ) from exc
    return value
