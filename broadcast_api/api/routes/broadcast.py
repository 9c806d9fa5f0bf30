from __future__ import annotations

import logging

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from broadcast_api.api import deps
from broadcast_api.core.exceptions import BroadcastValidationError, RepositoryError
from broadcast_api.schemas.broadcast import (
    BroadcastResponse,
    Channel,
    EmailBroadcastRequest,
    ErrorResponse,
    SmsBroadcastRequest,
)
from broadcast_api.services.broadcast_service import BroadcastDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["broadcast"])

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


@router.post("/sendSmsToAll", response_model=BroadcastResponse, responses=ERROR_RESPONSES)
async def send_sms_to_all(
    payload: SmsBroadcastRequest | None = Body(default=None),
    dispatcher: BroadcastDispatcher = Depends(deps.get_dispatcher),
):
    """
    Send the same SMS to every registered user.
    """
    try:
        summary = await dispatcher.dispatch(Channel.SMS, (payload or SmsBroadcastRequest()).to_payload())
    except BroadcastValidationError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except RepositoryError as exc:
        logger.error("Error sending SMS: %s", exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to send messages", str(exc))

    return BroadcastResponse(
        message="Messages sent successfully",
        attempted=summary.attempted,
        succeeded=summary.succeeded,
        failed=summary.failed,
    )


@router.post("/sendEmailToAll", response_model=BroadcastResponse, responses=ERROR_RESPONSES)
async def send_email_to_all(
    payload: EmailBroadcastRequest | None = Body(default=None),
    dispatcher: BroadcastDispatcher = Depends(deps.get_dispatcher),
):
    """
    Send the same plain-text email to every registered user.
    """
    try:
        summary = await dispatcher.dispatch(Channel.EMAIL, (payload or EmailBroadcastRequest()).to_payload())
    except BroadcastValidationError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except RepositoryError as exc:
        logger.error("Error sending emails: %s", exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to send emails", str(exc))

    return BroadcastResponse(
        message="Emails sent successfully",
        attempted=summary.attempted,
        succeeded=summary.succeeded,
        failed=summary.failed,
    )


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    content = ErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=content)
