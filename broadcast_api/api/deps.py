from __future__ import annotations

from fastapi import HTTPException, Request, status

from broadcast_api.services.broadcast_service import BroadcastDispatcher


def get_dispatcher(request: Request) -> BroadcastDispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Broadcast dispatcher is not initialised",
        )
    return dispatcher
