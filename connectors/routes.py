"""
Connection API routes — providers, status, connect/callback, disconnect, test.

Route prefix: /api/v1/connections
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from api.dependencies import get_coordinator
from config.settings import config
from connectors.coordinator import AuthCoordinator, with_query
from connectors.errors import InvalidOrExpiredSession
from connectors.schemas import ServiceName

logger = logging.getLogger(__name__)

router = APIRouter(tags=["connections"])


class ConnectRequest(BaseModel):
    agent_id: uuid.UUID
    return_url: Optional[str] = None


class AgentRequest(BaseModel):
    agent_id: uuid.UUID


def _return_redirect(return_url: Optional[str], **params: str) -> RedirectResponse:
    target = return_url or config.default_return_path
    return RedirectResponse(with_query(target, **params), status_code=302)


# ── Routes ─────────────────────────────────────────────────────────────


@router.get("/providers")
async def list_providers(coordinator: AuthCoordinator = Depends(get_coordinator)) -> list[dict]:
    """
    List supported services and whether each is configured.
    No principal required — used by the UI to render the connections panel.
    """
    return coordinator.registry.list_providers()


@router.get("")
async def list_connections(
    agent_id: uuid.UUID = Query(...),
    coordinator: AuthCoordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    """Connection status for every supported service."""
    statuses = await coordinator.list_statuses(str(agent_id))
    return {
        "agent_id": str(agent_id),
        "connections": [s.model_dump(mode="json") for s in statuses],
    }


@router.post("/events/retry")
async def retry_failed_events(coordinator: AuthCoordinator = Depends(get_coordinator)) -> Dict[str, int]:
    """Redeliver post-connect events whose handlers failed earlier."""
    still_failing = await coordinator.events.retry_failed()
    return {"still_failing": still_failing}


@router.get("/{service}/status")
async def connection_status(
    service: str,
    agent_id: uuid.UUID = Query(...),
    coordinator: AuthCoordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    status = await coordinator.status(str(agent_id), ServiceName.parse(service))
    return status.model_dump(mode="json")


@router.post("/{service}/connect")
async def connect(
    service: str,
    body: ConnectRequest,
    coordinator: AuthCoordinator = Depends(get_coordinator),
) -> Dict[str, str]:
    """
    Start the OAuth handshake.

    The frontend should send the user to ``auth_url``.
    """
    logger.info("Initiating %s OAuth for agent %s", service, body.agent_id)
    result = await coordinator.initiate(str(body.agent_id), ServiceName.parse(service), body.return_url)
    return {"auth_url": result.authorization_url, "service": result.service.value}


@router.get("/{service}/callback")
async def oauth_callback(
    service: str,
    oauth_token: Optional[str] = Query(None),
    oauth_verifier: Optional[str] = Query(None),
    denied: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    coordinator: AuthCoordinator = Depends(get_coordinator),
):
    """
    OAuth callback — the provider redirects here after consent.

    Exchanges the verifier, stores the credentials and redirects back to the
    caller's return URL with ``oauth=success`` (or ``oauth=denied``).
    """
    name = ServiceName.parse(service)

    if denied:
        if not coordinator.abandon(denied, name):
            raise InvalidOrExpiredSession()
        return _return_redirect(None, oauth="denied", service=name.value)

    if not oauth_token or not oauth_verifier:
        raise InvalidOrExpiredSession("Missing required OAuth parameters")

    result = await coordinator.callback(oauth_token, oauth_verifier, state, service=name)
    return _return_redirect(result.return_url, oauth="success", service=result.service.value)


@router.post("/{service}/disconnect")
async def disconnect(
    service: str,
    body: AgentRequest,
    coordinator: AuthCoordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    name = ServiceName.parse(service)
    await coordinator.revoke(str(body.agent_id), name)
    return {
        "success": True,
        "service": name.value,
        "message": f"{name.value} connection disconnected",
    }


@router.post("/{service}/test")
async def test_connection(
    service: str,
    body: AgentRequest,
    coordinator: AuthCoordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    """Call the provider with the stored credentials."""
    check = await coordinator.verify(str(body.agent_id), ServiceName.parse(service))
    return check.model_dump(mode="json")
