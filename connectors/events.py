"""
Post-persistence events.

The coordinator publishes ``CredentialsPersisted`` once credentials are
safely stored.  Reconfiguring / reloading the dependent integration happens
in subscribers, so a failed reload never undoes a successful connect and can
be retried on its own.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from connectors.schemas import ServiceName

logger = logging.getLogger(__name__)


class CredentialsPersisted(BaseModel):
    principal_id: str
    service: ServiceName
    # host setting key -> value (e.g. TWITTER_ACCESS_TOKEN)
    settings: Dict[str, Optional[str]] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def __repr__(self) -> str:
        # settings hold live secrets
        return f"CredentialsPersisted(principal_id={self.principal_id!r}, service={self.service.value!r})"

    __str__ = __repr__


EventHandler = Callable[[CredentialsPersisted], Awaitable[None]]
FailedDelivery = Tuple[CredentialsPersisted, EventHandler]

# Failed deliveries kept for retry_failed(); the oldest are dropped first.
DEFAULT_MAX_FAILED = 100


class EventDispatcher:
    """
    Sequential async fan-out of ``CredentialsPersisted`` events.

    A handler that raises is logged and the (event, handler) pair is queued
    for ``retry_failed()``; other handlers still run.  The queue holds at
    most ``max_failed`` entries and only the newest event per
    (principal, service, handler), since a later connect supersedes an
    earlier one.
    """

    def __init__(self, max_failed: int = DEFAULT_MAX_FAILED):
        self._handlers: List[EventHandler] = []
        self._failed: "OrderedDict[tuple, FailedDelivery]" = OrderedDict()
        self._max_failed = max_failed

    @property
    def failed(self) -> List[FailedDelivery]:
        """Queued (event, handler) pairs, oldest first."""
        return list(self._failed.values())

    def _queue_failure(self, event: CredentialsPersisted, handler: EventHandler) -> None:
        key = (event.principal_id, event.service, handler)
        self._failed.pop(key, None)
        self._failed[key] = (event, handler)
        while len(self._failed) > self._max_failed:
            dropped, _ = self._failed.popitem(last=False)[1]
            logger.warning(
                "Failed-event queue full, dropping %s/%s", dropped.service.value, dropped.principal_id
            )

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    async def _deliver(self, event: CredentialsPersisted, handler: EventHandler) -> bool:
        try:
            await handler(event)
            return True
        except Exception as exc:
            logger.error(
                "Event handler %s failed for %s/%s: %s",
                getattr(handler, "__qualname__", handler),
                event.service.value,
                event.principal_id,
                exc,
            )
            self._queue_failure(event, handler)
            return False

    async def publish(self, event: CredentialsPersisted) -> bool:
        """Deliver ``event`` to every handler; True if all succeeded."""
        ok = True
        for handler in list(self._handlers):
            ok = await self._deliver(event, handler) and ok
        return ok

    async def retry_failed(self) -> int:
        """Redeliver queued failures once; returns how many still fail."""
        pending = self.failed
        self._failed.clear()
        for event, handler in pending:
            await self._deliver(event, handler)
        return len(self._failed)
