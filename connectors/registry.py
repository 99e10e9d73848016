"""
ConnectorRegistry — maps each supported service to its provider client.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from connectors.base import BaseConnector
from connectors.errors import UnsupportedService
from connectors.schemas import SERVICE_CATALOG_VERSION, ServiceName
from connectors.twitter import TwitterConnector

logger = logging.getLogger(__name__)


def default_connectors() -> List[BaseConnector]:
    """All known connectors — add new ones here."""
    return [
        TwitterConnector(),
    ]


class ConnectorRegistry:
    """Registry of provider clients keyed by ``ServiceName``."""

    def __init__(self, connectors: Optional[Iterable[BaseConnector]] = None):
        self._connectors: Dict[ServiceName, BaseConnector] = {}
        for conn in default_connectors() if connectors is None else connectors:
            self.register(conn)

    def register(self, connector: BaseConnector) -> None:
        self._connectors[connector.service] = connector
        if connector.is_configured():
            logger.info("Connector registered: %s (%s)", connector.display_name, connector.service.value)
        else:
            logger.warning(
                "Connector %s registered but not configured (missing consumer key/secret)",
                connector.service.value,
            )

    def get(self, service: "str | ServiceName") -> BaseConnector:
        """Get the connector for ``service`` or raise ``UnsupportedService``."""
        name = ServiceName.parse(service)
        connector = self._connectors.get(name)
        if connector is None:
            raise UnsupportedService(f"Service '{name.value}' has no connector")
        return connector

    def services(self) -> List[ServiceName]:
        return list(self._connectors)

    def list_providers(self) -> List[Dict[str, object]]:
        """Return info about all available connectors."""
        return [
            {
                "service": c.service.value,
                "display_name": c.display_name,
                "description": c.description,
                "color": c.color,
                "configured": c.is_configured(),
                "catalog_version": SERVICE_CATALOG_VERSION,
            }
            for c in self._connectors.values()
        ]
