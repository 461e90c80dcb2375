"""Provider connector layer -- pluggable Connector pattern for outbound writes.

Provides the abstract Connector interface with concrete implementations:
- HttpConnector: Generic REST connector (httpx + tenacity retry)
- ZendeskConnector / JiraConnector: Endpoint and auth definitions
- ConnectorRegistry: provider slug -> Connector, UnknownProvider on miss
"""

from src.hub.connectors.base import CREATED_STATUS, Connector, ConnectorResponse
from src.hub.connectors.http import Endpoint, HttpConnector
from src.hub.connectors.providers import JiraConnector, ZendeskConnector
from src.hub.connectors.registry import ConnectorRegistry

__all__ = [
    "CREATED_STATUS",
    "Connector",
    "ConnectorRegistry",
    "ConnectorResponse",
    "Endpoint",
    "HttpConnector",
    "JiraConnector",
    "ZendeskConnector",
]
