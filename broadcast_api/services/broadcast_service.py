from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, List

from broadcast_api.core.exceptions import BroadcastValidationError, TransportError
from broadcast_api.core.phone import DEFAULT_COUNTRY_CODE, mask_email, mask_phone, normalize_phone
from broadcast_api.schemas.broadcast import (
    BatchSummary,
    Channel,
    DispatchOutcome,
    EmailPayload,
    TextPayload,
)
from broadcast_api.services.recipient_service import Recipient, RecipientSource
from broadcast_api.services.transports import NotificationTransport

logger = logging.getLogger(__name__)

TIMEOUT_REASON = "timeout"


def has_addressee(addressee: str | None) -> bool:
    return bool(addressee and addressee.strip())


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def resolve_addressee(
    recipient: Recipient,
    channel: Channel,
    country_code: str = DEFAULT_COUNTRY_CODE,
) -> str | None:
    if channel is Channel.SMS:
        return normalize_phone(recipient.phone_number, country_code)
    if recipient.email is None:
        return None
    return recipient.email.strip() or None


def validate_payload(channel: Channel, payload: Any) -> None:
    if channel is Channel.SMS:
        if not isinstance(payload, TextPayload) or _is_blank(payload.body):
            raise BroadcastValidationError("Message content is required")
        return
    if (
        not isinstance(payload, EmailPayload)
        or _is_blank(payload.subject)
        or _is_blank(payload.body)
    ):
        raise BroadcastValidationError("Subject and message content are required")


class BroadcastDispatcher:
    """
    Fans one payload out to every registered recipient on a channel.

    The recipient fetch completes before any send starts. Sends then run
    concurrently, each one settling into its own outcome, so a failing or
    slow recipient never cancels its siblings. ``max_concurrency`` of 0
    leaves the fan-out unbounded.
    """

    def __init__(
        self,
        recipients: RecipientSource,
        transports: dict[Channel, NotificationTransport],
        *,
        country_code: str = DEFAULT_COUNTRY_CODE,
        max_concurrency: int = 0,
        send_timeout: float | None = None,
    ) -> None:
        self._recipients = recipients
        self._transports = dict(transports)
        self._country_code = country_code
        self._max_concurrency = max_concurrency
        self._send_timeout = send_timeout

    async def dispatch(self, channel: Channel, payload: TextPayload | EmailPayload) -> BatchSummary:
        validate_payload(channel, payload)
        transport = self._transports.get(channel)
        if transport is None:
            raise BroadcastValidationError(f"No transport configured for {channel.value}")

        recipients = await asyncio.to_thread(self._recipients.list_recipients)
        targets = self._collect_targets(recipients, channel)
        logger.info(
            "%s broadcast started (recipients=%s, addressable=%s)",
            channel.value,
            len(recipients),
            len(targets),
        )

        limiter = asyncio.Semaphore(self._max_concurrency) if self._max_concurrency > 0 else None
        outcomes: List[DispatchOutcome] = await asyncio.gather(
            *(
                self._send_one(channel, transport, recipient, addressee, payload, limiter)
                for recipient, addressee in targets
            )
        )

        summary = BatchSummary.from_outcomes(channel, outcomes)
        logger.info(
            "%s broadcast finished (attempted=%s, succeeded=%s, failed=%s)",
            channel.value,
            summary.attempted,
            summary.succeeded,
            summary.failed,
        )
        return summary

    async def aclose(self) -> None:
        for transport in self._transports.values():
            await transport.aclose()

    def _collect_targets(
        self,
        recipients: list[Recipient],
        channel: Channel,
    ) -> list[tuple[Recipient, str]]:
        targets = []
        for recipient in recipients:
            addressee = resolve_addressee(recipient, channel, self._country_code)
            if has_addressee(addressee):
                targets.append((recipient, addressee))
        return targets

    async def _send_one(
        self,
        channel: Channel,
        transport: NotificationTransport,
        recipient: Recipient,
        addressee: str,
        payload: TextPayload | EmailPayload,
        limiter: asyncio.Semaphore | None,
    ) -> DispatchOutcome:
        masked = _mask(channel, addressee)
        async with limiter if limiter is not None else contextlib.nullcontext():
            try:
                receipt = await asyncio.wait_for(transport.send(addressee, payload), self._send_timeout)
            except asyncio.TimeoutError:
                logger.warning("Send to %s timed out after %ss", masked, self._send_timeout)
                return _failed(recipient, addressee, TIMEOUT_REASON)
            except TransportError as exc:
                logger.warning("Failed to send to %s: %s", masked, exc.cause)
                return _failed(recipient, addressee, exc.cause)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unexpected transport error for %s", masked)
                return _failed(recipient, addressee, str(exc) or type(exc).__name__)

        logger.debug("Sent to %s (provider_id=%s)", masked, receipt.provider_id)
        return DispatchOutcome(
            recipient_id=recipient.user_id,
            addressee=addressee,
            sent=True,
            provider_id=receipt.provider_id,
        )


def _failed(recipient: Recipient, addressee: str, reason: str) -> DispatchOutcome:
    return DispatchOutcome(
        recipient_id=recipient.user_id,
        addressee=addressee,
        sent=False,
        reason=reason,
    )


def _mask(channel: Channel, addressee: str) -> str | None:
    if channel is Channel.SMS:
        return mask_phone(addressee)
    return mask_email(addressee)
