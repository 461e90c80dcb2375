"""REST connector base for providers reached over HTTP.

HttpConnector maps each entity type to an endpoint path and an optional
JSON envelope key (Zendesk posts ``{"ticket": {...}}`` and answers the
same way). Requests go through httpx with tenacity retry on failures
where the request was never processed (connect errors, 429, 503), matching
the retry decorator used by the other external clients.

Any non-2xx answer after retries, or a 2xx body that is not a JSON object,
becomes a ConnectorFailure.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.hub.connectors.base import Connector, ConnectorResponse
from src.hub.core.errors import ConnectorFailure
from src.hub.core.tenant import SyncContext

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS = (429, 503)


class _RetryableStatus(Exception):
    """Internal marker raised for responses worth retrying."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        super().__init__(f"retryable status {response.status_code}")


@dataclass(frozen=True)
class Endpoint:
    """Where and how an entity type is written."""

    path: str
    envelope: str | None = None


class HttpConnector(Connector):
    """Connector posting JSON payloads to a provider REST API.

    Args:
        base_url: Provider API root.
        endpoints: Entity type -> Endpoint.
        headers: Static request headers (auth included).
        timeout: Per-request timeout in seconds.
        max_attempts: Attempts for retryable failures.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    provider: str = "http"

    def __init__(
        self,
        base_url: str,
        endpoints: Mapping[str, Endpoint],
        headers: Mapping[str, str] | None = None,
        timeout: float = 30.0,
        max_attempts: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._endpoints = dict(endpoints)
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._transport = transport

    def supports(self, entity_type: str) -> bool:
        return entity_type in self._endpoints

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client for one write."""
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    def request_headers(self, context: SyncContext) -> dict[str, str]:
        """Per-call headers; subclasses add tenant-specific auth here."""
        return {}

    async def write(
        self,
        entity_type: str,
        payload: dict[str, Any],
        context: SyncContext,
    ) -> ConnectorResponse:
        endpoint = self._endpoints.get(entity_type)
        if endpoint is None:
            raise ConnectorFailure(
                self.provider,
                "entity type not writable through this connector",
                entity_type=entity_type,
            )

        body = {endpoint.envelope: payload} if endpoint.envelope else payload

        try:
            response = await self._post(endpoint.path, body, context)
        except _RetryableStatus as exc:
            response = exc.response
        except httpx.HTTPError as exc:
            logger.error(
                "connector.transport_error",
                provider=self.provider,
                entity_type=entity_type,
                error=str(exc),
            )
            raise ConnectorFailure(self.provider, f"transport error: {exc}") from exc

        if response.is_error:
            logger.error(
                "connector.write_rejected",
                provider=self.provider,
                entity_type=entity_type,
                status_code=response.status_code,
            )
            raise ConnectorFailure(
                self.provider,
                "provider rejected the write",
                status_code=response.status_code,
                body=response.text[:500],
            )

        try:
            data = response.json() if response.content else {}
        except ValueError as exc:
            logger.error(
                "connector.invalid_body",
                provider=self.provider,
                entity_type=entity_type,
                status_code=response.status_code,
            )
            raise ConnectorFailure(
                self.provider,
                "provider returned a body that is not JSON",
                status_code=response.status_code,
                body=response.text[:500],
            ) from exc
        if endpoint.envelope and isinstance(data, dict) and endpoint.envelope in data:
            data = data[endpoint.envelope]
        if not isinstance(data, dict):
            raise ConnectorFailure(
                self.provider,
                "provider returned a body that is not a JSON object",
                status_code=response.status_code,
            )

        logger.info(
            "connector.write_complete",
            provider=self.provider,
            entity_type=entity_type,
            status_code=response.status_code,
        )
        return ConnectorResponse(status_code=response.status_code, data=data)

    async def _post(
        self, path: str, body: dict[str, Any], context: SyncContext
    ) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(
                (httpx.ConnectError, httpx.ConnectTimeout, _RetryableStatus)
            ),
            reraise=True,
        ):
            with attempt:
                async with self._client() as client:
                    response = await client.post(
                        path, json=body, headers=self.request_headers(context)
                    )
                if response.status_code in RETRYABLE_STATUS:
                    raise _RetryableStatus(response)
                return response
        raise AssertionError("unreachable")  # pragma: no cover
