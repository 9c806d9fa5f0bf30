from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from broadcast_api.schemas.broadcast import Channel


@dataclass
class SendReceipt:
    addressee: str
    provider_id: str | None
    status: str | None = None


class NotificationTransport(Protocol):
    channel: Channel

    async def send(self, addressee: str, payload: Any) -> SendReceipt:
        ...

    async def aclose(self) -> None:
        ...
