from __future__ import annotations

import logging
from typing import Any, Dict
from uuid import uuid4

import httpx

from broadcast_api.core.config import Settings
from broadcast_api.core.exceptions import TransportError
from broadcast_api.core.phone import mask_phone
from broadcast_api.schemas.broadcast import Channel, TextPayload
from broadcast_api.services.transports import SendReceipt

logger = logging.getLogger(__name__)

TWILIO_API_VERSION = "2010-04-01"


class TwilioSmsTransport:
    """Sends one SMS per call through the Twilio Messages REST API."""

    channel = Channel.SMS

    def __init__(self, config: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = config
        self._client = client
        self._owns_client = client is None

    @property
    def mock_mode(self) -> bool:
        return self._settings.transport_mock_mode or not self._settings.sms_configured

    async def send(self, addressee: str, payload: TextPayload) -> SendReceipt:
        if self.mock_mode:
            logger.info("Mock SMS to %s (%s chars)", mask_phone(addressee), len(payload.body or ""))
            return SendReceipt(addressee=addressee, provider_id=f"MOCK-{uuid4().hex[:12]}", status="mock")

        data = {
            "To": addressee,
            "From": self._settings.twilio_phone_number,
            "Body": payload.body,
        }
        try:
            response = await self._get_client().post(
                self._messages_url(),
                data=data,
                auth=(self._settings.twilio_account_sid, self._settings.twilio_auth_token),
            )
        except httpx.HTTPError as exc:  # network/timeout errors
            raise TransportError(addressee, f"Twilio request failed: {exc}") from exc

        if response.status_code >= 400:
            raise TransportError(
                addressee,
                f"Twilio HTTP {response.status_code}: {_error_detail(response)}",
            )

        body = _json_or_empty(response)
        logger.debug("SMS accepted for %s (sid=%s)", mask_phone(addressee), body.get("sid"))
        return SendReceipt(addressee=addressee, provider_id=body.get("sid"), status=body.get("status"))

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _messages_url(self) -> str:
        base_url = self._settings.twilio_base_url.rstrip("/")
        return f"{base_url}/{TWILIO_API_VERSION}/Accounts/{self._settings.twilio_account_sid}/Messages.json"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.twilio_timeout, verify=True)
        return self._client


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_detail(response: httpx.Response) -> str:
    body = _json_or_empty(response)
    message = body.get("message")
    code = body.get("code")
    if message and code:
        return f"{message} (code {code})"
    return message or response.text or "Unknown error"
