import logging

import uvicorn
from fastapi import FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from broadcast_api.api.routes import api_router
from broadcast_api.core.config import Settings, settings
from broadcast_api.core.logging import configure_logging
from broadcast_api.db.session import SessionLocal
from broadcast_api.schemas.broadcast import Channel
from broadcast_api.services.broadcast_service import BroadcastDispatcher
from broadcast_api.services.email_service import SmtpEmailTransport
from broadcast_api.services.recipient_service import RecipientSource, SqlRecipientSource
from broadcast_api.services.sms_service import TwilioSmsTransport

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


def build_dispatcher(config: Settings, recipients: RecipientSource) -> BroadcastDispatcher:
    return BroadcastDispatcher(
        recipients,
        {
            Channel.SMS: TwilioSmsTransport(config),
            Channel.EMAIL: SmtpEmailTransport(config),
        },
        country_code=config.default_country_code,
        max_concurrency=config.dispatch_max_concurrency,
        send_timeout=config.dispatch_send_timeout_seconds,
    )


@app.on_event("startup")
async def _startup() -> None:
    configure_logging()
    app.state.dispatcher = build_dispatcher(settings, SqlRecipientSource(SessionLocal))
    if settings.transport_mock_mode:
        logger.warning("Transport mock mode enabled; no SMS or email will leave this process")
    logger.info("%s started (env=%s)", settings.app_name, settings.app_env)


@app.on_event("shutdown")
async def _shutdown() -> None:
    dispatcher = getattr(app.state, "dispatcher", None)
    if dispatcher is not None:
        await dispatcher.aclose()
        app.state.dispatcher = None


@app.get("/", response_class=PlainTextResponse, tags=["health"])
async def root() -> str:
    return f"Welcome to {settings.app_name}"


@app.get("/favicon.ico", include_in_schema=False)
async def favicon() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def run() -> None:
    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
