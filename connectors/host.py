"""
Host capabilities the connection lifecycle depends on.

The host runtime is reached only through two narrow interfaces:

  • ``SettingsOracle`` — which credential-bearing settings are in effect,
    and a mutator to set / clear them.
  • ``IntegrationController`` — reload or stop the integration that uses a
    service's credentials.

``InMemoryHost`` implements both for standalone deployments and tests.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Protocol, Sequence, Set, Tuple, runtime_checkable

from connectors.events import CredentialsPersisted
from connectors.schemas import ServiceName

logger = logging.getLogger(__name__)


@runtime_checkable
class SettingsOracle(Protocol):
    async def get_active_settings(
        self, principal_id: str, keys: Sequence[str]
    ) -> Optional[Mapping[str, Optional[str]]]:
        """Return the in-effect values for ``keys``, or None for "no opinion"."""
        ...

    async def update_settings(self, principal_id: str, values: Mapping[str, Optional[str]]) -> None:
        """Set each key; a ``None`` value clears it."""
        ...


@runtime_checkable
class IntegrationController(Protocol):
    async def reload(self, principal_id: str, service: ServiceName) -> None:
        ...

    async def stop(self, principal_id: str, service: ServiceName) -> None:
        ...


class InMemoryHost:
    """Process-local settings table plus a record of running integrations."""

    def __init__(self):
        self._settings: Dict[str, Dict[str, str]] = {}
        self.running: Set[Tuple[str, ServiceName]] = set()

    async def get_active_settings(
        self, principal_id: str, keys: Sequence[str]
    ) -> Optional[Mapping[str, Optional[str]]]:
        current = self._settings.get(principal_id)
        if current is None:
            return None
        return {key: current.get(key) for key in keys}

    async def update_settings(self, principal_id: str, values: Mapping[str, Optional[str]]) -> None:
        current = self._settings.setdefault(principal_id, {})
        for key, value in values.items():
            if value is None:
                current.pop(key, None)
            else:
                current[key] = value

    async def reload(self, principal_id: str, service: ServiceName) -> None:
        self.running.add((principal_id, service))
        logger.info("Integration %s (re)started for %s", service.value, principal_id)

    async def stop(self, principal_id: str, service: ServiceName) -> None:
        self.running.discard((principal_id, service))
        logger.info("Integration %s stopped for %s", service.value, principal_id)


class SettingsInjector:
    """
    ``CredentialsPersisted`` subscriber: inject the new credentials into the
    host settings and reload the dependent integration.

    Skips both steps when the event carries no usable values.
    """

    def __init__(self, oracle: SettingsOracle, controller: IntegrationController):
        self._oracle = oracle
        self._controller = controller

    async def __call__(self, event: CredentialsPersisted) -> None:
        if not any(event.settings.values()):
            logger.info(
                "No credential settings for %s/%s — skipping integration reload",
                event.service.value,
                event.principal_id,
            )
            return
        await self._oracle.update_settings(event.principal_id, event.settings)
        await self._controller.reload(event.principal_id, event.service)
        logger.info("Injected %s settings and reloaded integration for %s", event.service.value, event.principal_id)
