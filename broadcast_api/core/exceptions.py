from __future__ import annotations


class BroadcastValidationError(ValueError):
    """Broadcast payload is missing a required field."""


class RepositoryError(RuntimeError):
    """Recipient store could not be read."""


class TransportError(RuntimeError):
    """A single outbound notification could not be delivered."""

    def __init__(self, recipient: str, cause: str) -> None:
        super().__init__(f"{recipient}: {cause}")
        self.recipient = recipient
        self.cause = cause
