from __future__ import annotations

import logging
import ssl
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Callable

import aiosmtplib

from broadcast_api.core.config import Settings
from broadcast_api.core.exceptions import TransportError
from broadcast_api.core.phone import mask_email
from broadcast_api.schemas.broadcast import Channel, EmailPayload
from broadcast_api.services.transports import SendReceipt

logger = logging.getLogger(__name__)


class SmtpEmailTransport:
    """
    Sends one plain-text email per call over SMTP.

    Each delivery opens its own aiosmtplib connection on the event loop, so a
    cancelled send closes its connection instead of leaving work behind.
    """

    channel = Channel.EMAIL

    def __init__(
        self,
        config: Settings,
        smtp_factory: Callable[..., aiosmtplib.SMTP] = aiosmtplib.SMTP,
    ) -> None:
        self._settings = config
        self._smtp_factory = smtp_factory

    @property
    def mock_mode(self) -> bool:
        return self._settings.transport_mock_mode or not self._settings.email_configured

    def build_message(self, addressee: str, payload: EmailPayload) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._settings.email_user or "no-reply@localhost"
        message["To"] = addressee
        message["Subject"] = payload.subject
        message["Message-ID"] = make_msgid()
        message.set_content(payload.body or "")
        return message

    async def send(self, addressee: str, payload: EmailPayload) -> SendReceipt:
        try:
            message = self.build_message(addressee, payload)
        except ValueError as exc:  # header injection, malformed address
            raise TransportError(addressee, f"Invalid message: {exc}") from exc

        if self.mock_mode:
            logger.info("Mock email to %s (subject=%r)", mask_email(addressee), payload.subject)
            return SendReceipt(addressee=addressee, provider_id=message["Message-ID"], status="mock")

        try:
            await self._deliver(addressee, message)
        except aiosmtplib.SMTPRecipientsRefused as exc:
            raise TransportError(addressee, f"Recipient refused: {_refusal_reason(exc)}") from exc
        except (aiosmtplib.SMTPException, OSError) as exc:
            raise TransportError(addressee, f"SMTP delivery failed: {exc}") from exc

        logger.debug("Email accepted for %s", mask_email(addressee))
        return SendReceipt(addressee=addressee, provider_id=message["Message-ID"], status="accepted")

    async def aclose(self) -> None:
        return None

    async def _deliver(self, addressee: str, message: EmailMessage) -> None:
        smtp = self._smtp_factory(
            hostname=self._settings.email_host,
            port=self._settings.email_port,
            timeout=self._settings.email_timeout,
            start_tls=self._settings.email_use_tls,
            tls_context=self._tls_context(),
        )
        async with smtp:
            await smtp.login(self._settings.email_user, self._settings.email_pass)
            refused, _response = await smtp.send_message(message)
        if refused and addressee in refused:
            response = refused[addressee]
            raise TransportError(addressee, f"Recipient refused: {response.code} {response.message}")

    def _tls_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self._settings.email_verify_certificates:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context


def _refusal_reason(exc: aiosmtplib.SMTPRecipientsRefused) -> str:
    parts = [f"{refused.code} {refused.message}" for refused in exc.recipients]
    return "; ".join(parts) or "unknown"
