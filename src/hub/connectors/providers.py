"""Concrete provider connectors.

Only endpoint layout and authentication differ between providers; the
request/retry/error handling lives in HttpConnector.
"""

from __future__ import annotations

import base64

from src.hub.connectors.http import Endpoint, HttpConnector
from src.hub.ticketing.registry import ATTACHMENT, TICKET


class ZendeskConnector(HttpConnector):
    """Zendesk Support REST API (v2), API-token auth."""

    provider = "zendesk"

    ENDPOINTS = {
        TICKET: Endpoint("/tickets.json", envelope="ticket"),
        ATTACHMENT: Endpoint("/uploads.json"),
    }

    def __init__(self, base_url: str, email: str, api_token: str, **kwargs) -> None:
        credentials = base64.b64encode(f"{email}/token:{api_token}".encode()).decode()
        super().__init__(
            base_url,
            self.ENDPOINTS,
            headers={"Authorization": f"Basic {credentials}"},
            **kwargs,
        )


class JiraConnector(HttpConnector):
    """Jira Cloud REST API (v3), bearer-token auth."""

    provider = "jira"

    ENDPOINTS = {
        TICKET: Endpoint("/issue"),
    }

    def __init__(self, base_url: str, access_token: str, **kwargs) -> None:
        super().__init__(
            base_url,
            self.ENDPOINTS,
            headers={"Authorization": f"Bearer {access_token}"},
            **kwargs,
        )
