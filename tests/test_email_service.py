from __future__ import annotations

import asyncio
import ssl
from types import SimpleNamespace

import aiosmtplib
import pytest

from broadcast_api.core.config import Settings
from broadcast_api.core.exceptions import TransportError
from broadcast_api.schemas.broadcast import Channel, EmailPayload
from broadcast_api.services.broadcast_service import BroadcastDispatcher
from broadcast_api.services.email_service import SmtpEmailTransport
from broadcast_api.services.recipient_service import Recipient
from conftest import FakeRecipientSource, FakeTransport


class FakeSMTP:
    """Stands in for aiosmtplib.SMTP and records the session."""

    def __init__(self, *, refused=None, error=None, delay=0.0, tracker=None, **options):
        self.options = options
        self.refused = refused or {}
        self.error = error
        self.delay = delay
        self.tracker = tracker
        self.credentials = None
        self.sent = []

    async def __aenter__(self):
        if self.tracker is not None:
            self.tracker["open"] += 1
            self.tracker["max_open"] = max(self.tracker["max_open"], self.tracker["open"])
        return self

    async def __aexit__(self, *exc_info):
        if self.tracker is not None:
            self.tracker["open"] -= 1
        return False

    async def login(self, user, password):
        self.credentials = (user, password)

    async def send_message(self, message):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.sent.append(message)
        return self.refused, "250 OK"


def _factory(sessions, **behaviour):
    def make(**options):
        smtp = FakeSMTP(**behaviour, **options)
        sessions.append(smtp)
        return smtp

    return make


def _live_settings(**overrides) -> Settings:
    values = {
        "TRANSPORT_MOCK_MODE": False,
        "EMAIL_HOST": "smtp.test",
        "EMAIL_PORT": 2525,
        "EMAIL_USER": "sender@example.com",
        "EMAIL_PASS": "app-password",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.mark.asyncio
async def test_send_delivers_plain_text_message():
    sessions = []
    transport = SmtpEmailTransport(_live_settings(), smtp_factory=_factory(sessions))

    receipt = await transport.send("alice@example.com", EmailPayload(subject="Hello", body="Body text"))

    smtp = sessions[0]
    assert smtp.options["hostname"] == "smtp.test"
    assert smtp.options["port"] == 2525
    assert smtp.options["start_tls"] is True
    assert isinstance(smtp.options["tls_context"], ssl.SSLContext)
    assert smtp.credentials == ("sender@example.com", "app-password")
    message = smtp.sent[0]
    assert message["From"] == "sender@example.com"
    assert message["To"] == "alice@example.com"
    assert message["Subject"] == "Hello"
    assert message.get_content().strip() == "Body text"
    assert receipt.provider_id == message["Message-ID"]
    assert receipt.status == "accepted"


@pytest.mark.asyncio
async def test_certificate_checks_can_be_disabled():
    sessions = []
    transport = SmtpEmailTransport(
        _live_settings(EMAIL_VERIFY_CERTIFICATES=False),
        smtp_factory=_factory(sessions),
    )

    await transport.send("alice@example.com", EmailPayload(subject="Hello", body="Body"))

    assert sessions[0].options["tls_context"].verify_mode == ssl.CERT_NONE


@pytest.mark.asyncio
async def test_refused_recipient_raises_transport_error():
    sessions = []
    refused = {"ghost@example.com": SimpleNamespace(code=550, message="No such user")}
    transport = SmtpEmailTransport(_live_settings(), smtp_factory=_factory(sessions, refused=refused))

    with pytest.raises(TransportError) as excinfo:
        await transport.send("ghost@example.com", EmailPayload(subject="Hello", body="Body"))

    assert excinfo.value.recipient == "ghost@example.com"
    assert "550 No such user" in excinfo.value.cause


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, expected",
    [
        (
            aiosmtplib.SMTPRecipientsRefused(
                [aiosmtplib.SMTPRecipientRefused(550, "Mailbox unavailable", "bad@example.com")]
            ),
            "Recipient refused: 550 Mailbox unavailable",
        ),
        (aiosmtplib.SMTPAuthenticationError(535, "Bad credentials"), "SMTP delivery failed"),
        (aiosmtplib.SMTPConnectError("connection refused"), "SMTP delivery failed"),
        (ConnectionRefusedError("connection refused"), "SMTP delivery failed"),
    ],
)
async def test_smtp_errors_raise_transport_error(error, expected):
    sessions = []
    transport = SmtpEmailTransport(_live_settings(), smtp_factory=_factory(sessions, error=error))

    with pytest.raises(TransportError) as excinfo:
        await transport.send("bad@example.com", EmailPayload(subject="Hello", body="Body"))

    assert expected in excinfo.value.cause


@pytest.mark.asyncio
async def test_header_breaking_addressee_raises_transport_error():
    sessions = []
    transport = SmtpEmailTransport(_live_settings(), smtp_factory=_factory(sessions))

    with pytest.raises(TransportError) as excinfo:
        await transport.send("alice@example.com\nBcc: all@example.com", EmailPayload(subject="Hi", body="Body"))

    assert "Invalid message" in excinfo.value.cause
    assert sessions == []


@pytest.mark.asyncio
async def test_mock_mode_does_not_open_smtp_connection():
    sessions = []
    transport = SmtpEmailTransport(Settings(TRANSPORT_MOCK_MODE=True), smtp_factory=_factory(sessions))

    receipt = await transport.send("alice@example.com", EmailPayload(subject="Hello", body="Body"))

    assert sessions == []
    assert receipt.status == "mock"


@pytest.mark.asyncio
async def test_slow_server_fan_out_delivers_within_deadline():
    sessions = []
    tracker = {"open": 0, "max_open": 0}
    transport = SmtpEmailTransport(
        _live_settings(),
        smtp_factory=_factory(sessions, delay=0.3, tracker=tracker),
    )
    source = FakeRecipientSource(
        [Recipient(user_id=i, email=f"user{i}@example.com", phone_number=None) for i in range(40)]
    )
    dispatcher = BroadcastDispatcher(
        source,
        {Channel.SMS: FakeTransport(Channel.SMS), Channel.EMAIL: transport},
        max_concurrency=50,
        send_timeout=1.0,
    )

    summary = await dispatcher.dispatch(Channel.EMAIL, EmailPayload(subject="Notice", body="Body"))

    assert (summary.attempted, summary.succeeded, summary.failed) == (40, 40, 0)
    assert sum(len(smtp.sent) for smtp in sessions) == 40
    assert tracker["open"] == 0


@pytest.mark.asyncio
async def test_concurrency_cap_bounds_open_smtp_sessions():
    sessions = []
    tracker = {"open": 0, "max_open": 0}
    transport = SmtpEmailTransport(
        _live_settings(),
        smtp_factory=_factory(sessions, delay=0.02, tracker=tracker),
    )
    source = FakeRecipientSource(
        [Recipient(user_id=i, email=f"user{i}@example.com", phone_number=None) for i in range(12)]
    )
    dispatcher = BroadcastDispatcher(
        source,
        {Channel.SMS: FakeTransport(Channel.SMS), Channel.EMAIL: transport},
        max_concurrency=3,
        send_timeout=1.0,
    )

    summary = await dispatcher.dispatch(Channel.EMAIL, EmailPayload(subject="Notice", body="Body"))

    assert summary.succeeded == 12
    assert tracker["max_open"] == 3
