"""Shared fixtures and test doubles for the broadcast service."""
from __future__ import annotations

import asyncio
import os
from typing import Dict, List, Optional

import pytest

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TRANSPORT_MOCK_MODE"] = "true"
os.environ["LOG_LEVEL"] = os.environ.get("LOG_LEVEL") or "DEBUG"

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from broadcast_api.core.exceptions import TransportError
from broadcast_api.models import Base
from broadcast_api.services.recipient_service import Recipient
from broadcast_api.services.transports import SendReceipt


class FakeTransport:
    """Records every send; fails or delays chosen addressees."""

    def __init__(
        self,
        channel,
        *,
        failures: Optional[Dict[str, str]] = None,
        delays: Optional[Dict[str, float]] = None,
        errors: Optional[Dict[str, Exception]] = None,
    ) -> None:
        self.channel = channel
        self.failures = failures or {}
        self.delays = delays or {}
        self.errors = errors or {}
        self.calls: List[tuple] = []
        self.completed: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def send(self, addressee: str, payload) -> SendReceipt:
        self.calls.append((addressee, payload))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(addressee, 0)
            if delay:
                await asyncio.sleep(delay)
            else:
                await asyncio.sleep(0)
            if addressee in self.errors:
                raise self.errors[addressee]
            if addressee in self.failures:
                raise TransportError(addressee, self.failures[addressee])
        finally:
            self.in_flight -= 1
        self.completed.append(addressee)
        return SendReceipt(addressee=addressee, provider_id=f"id-{addressee}", status="queued")

    async def aclose(self) -> None:
        self.closed = True


class FakeRecipientSource:
    """Counts fetches and optionally raises instead of returning recipients."""

    def __init__(self, recipients: Optional[List[Recipient]] = None, error: Optional[Exception] = None) -> None:
        self.recipients = recipients or []
        self.error = error
        self.calls = 0

    def list_recipients(self) -> List[Recipient]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.recipients)


@pytest.fixture
def recipients() -> List[Recipient]:
    return [
        Recipient(user_id=1, email="alice@example.com", phone_number="0771234567"),
        Recipient(user_id=2, email="bob@example.com", phone_number="+94712345678"),
        Recipient(user_id=3, email="carol@example.com", phone_number="0759876543"),
    ]


@pytest.fixture
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        engine.dispose()
