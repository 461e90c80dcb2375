"""Connector registry -- resolves a provider slug to its Connector.

Resolution fails loudly: an unregistered provider raises UnknownProvider
instead of returning an empty capability.
"""

from __future__ import annotations

import structlog

from src.hub.connectors.base import Connector
from src.hub.core.errors import UnknownProvider

logger = structlog.get_logger(__name__)


class ConnectorRegistry:
    """In-process registry of provider connectors."""

    def __init__(self, connectors: list[Connector] | None = None) -> None:
        self._connectors: dict[str, Connector] = {}
        for connector in connectors or []:
            self.register(connector)

    def register(self, connector: Connector) -> None:
        """Register (or replace) the connector for its provider."""
        if connector.provider in self._connectors:
            logger.warning("connectors.replaced", provider=connector.provider)
        self._connectors[connector.provider] = connector

    def resolve(self, provider: str, entity_type: str | None = None) -> Connector:
        """Return the connector for a provider.

        Args:
            provider: Provider slug.
            entity_type: If given, the connector must support writing it.

        Raises:
            UnknownProvider: If no connector is registered, or it does not
                support the entity type.
        """
        connector = self._connectors.get(provider)
        if connector is None:
            raise UnknownProvider(provider)
        if entity_type is not None and not connector.supports(entity_type):
            raise UnknownProvider(provider, entity_type=entity_type)
        return connector

    def __contains__(self, provider: str) -> bool:
        return provider in self._connectors

    def __len__(self) -> int:
        return len(self._connectors)
