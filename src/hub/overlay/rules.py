"""Custom field rules and the overlay merge.

An overlay is an ordered mapping slug -> value. Values for the same slug
can come from several layers; merge_overlay() combines them with a fixed
precedence instead of relying on insertion order:

    rule defaults  <  earlier layers  <  later layers

Key order: slugs with a rule first, sorted by rule position, then slugs
without a rule in the order they were first seen across the layers.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

_MISSING = object()


@dataclass(frozen=True)
class OverlayRule:
    """A tenant/provider custom field definition for one entity type.

    Attributes:
        slug: Canonical key the value is exposed under in field_mappings.
        remote_field: Dotted path of the value in the provider payload.
        data_type: One of "string", "number", "boolean", "list", "any".
        default_value: Value used when no layer supplies one (None = none).
        position: Sort key for output ordering.
    """

    slug: str
    remote_field: str
    data_type: str = "string"
    default_value: Any = None
    position: int = 0


def order_rules(rules: Iterable[OverlayRule]) -> dict[str, OverlayRule]:
    """Return rules keyed by slug in (position, slug) order."""
    return {r.slug: r for r in sorted(rules, key=lambda r: (r.position, r.slug))}


def merge_overlay(
    rules: Mapping[str, OverlayRule] | None,
    *layers: Mapping[str, Any] | None,
    include_defaults: bool = True,
) -> dict[str, Any]:
    """Merge overlay layers into one ordered mapping.

    Args:
        rules: Rules keyed by slug (already ordered, see order_rules()).
        *layers: Value mappings from lowest to highest precedence. None
            layers are skipped.
        include_defaults: Seed ruled slugs with their default_value.

    Returns:
        New dict; ruled slugs first in rule order, then unruled slugs.
    """
    rules = rules or {}
    resolved: dict[str, Any] = {}
    extra_order: list[str] = []

    for layer in layers:
        if not layer:
            continue
        for slug, value in layer.items():
            if slug not in rules and slug not in resolved:
                extra_order.append(slug)
            resolved[slug] = value

    merged: dict[str, Any] = {}
    for slug, rule in rules.items():
        value = resolved.get(slug, _MISSING)
        if value is _MISSING:
            if include_defaults and rule.default_value is not None:
                merged[slug] = rule.default_value
            continue
        merged[slug] = value

    for slug in extra_order:
        merged[slug] = resolved[slug]

    return merged
