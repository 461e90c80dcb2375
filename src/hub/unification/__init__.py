"""Unification layer -- canonical <-> provider transforms.

Provides:
- UnificationEngine: desunify() for outbound writes, unify() for responses
- MapperRegistry: declarative ProviderFieldMaps keyed by (provider, entity)
- FieldRule / ProviderFieldMap: the field map vocabulary
"""

from src.hub.unification.engine import (
    MapperRegistry,
    UnificationEngine,
    default_mapper_registry,
)
from src.hub.unification.mapping import FieldRule, ProviderFieldMap

__all__ = [
    "FieldRule",
    "MapperRegistry",
    "ProviderFieldMap",
    "UnificationEngine",
    "default_mapper_registry",
]
