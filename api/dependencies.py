"""
FastAPI dependencies (shared across routes).
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from connectors.coordinator import AuthCoordinator


async def get_coordinator(request: Request) -> AuthCoordinator:
    """Return the coordinator wired into ``app.state`` at startup."""
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Auth service not available",
        )
    return coordinator
