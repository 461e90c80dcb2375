"""Connector abstract base class -- the interface every provider backend implements.

A connector performs the literal external call to one third-party backend.
The orchestrator hands it an already desunified payload and gets back the
provider's status code and raw response body; it never sees canonical data.

Retry, rate limiting and auth are the connector's business. The push cycle
itself never retries a connector call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from src.hub.core.tenant import SyncContext

CREATED_STATUS = 201


class ConnectorResponse(BaseModel):
    """Result of a provider write.

    Attributes:
        status_code: Provider status (HTTP semantics; 201 means created).
        data: Raw provider record returned by the write.
    """

    status_code: int
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def created(self) -> bool:
        return self.status_code == CREATED_STATUS


class Connector(ABC):
    """Abstract interface for provider write operations.

    Attributes:
        provider: Provider slug this connector serves (e.g. "zendesk").
    """

    provider: str

    @abstractmethod
    async def write(
        self,
        entity_type: str,
        payload: dict[str, Any],
        context: SyncContext,
    ) -> ConnectorResponse:
        """Create the entity in the provider, return its raw response.

        Raises:
            ConnectorFailure: If the call errors or the provider rejects it.
        """
        ...

    def supports(self, entity_type: str) -> bool:
        """Return True if this connector can write the entity type."""
        return True
