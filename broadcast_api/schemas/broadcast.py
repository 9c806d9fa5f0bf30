from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Channel(str, Enum):
    SMS = "SMS"
    EMAIL = "EMAIL"


class TextPayload(BaseModel):
    body: str | None = None


class EmailPayload(BaseModel):
    subject: str | None = None
    body: str | None = None


class SmsBroadcastRequest(BaseModel):
    message: str | None = Field(default=None, description="SMS body sent to every user")

    def to_payload(self) -> TextPayload:
        return TextPayload(body=self.message)


class EmailBroadcastRequest(BaseModel):
    subject: str | None = None
    text: str | None = Field(default=None, description="Plain-text email body")

    def to_payload(self) -> EmailPayload:
        return EmailPayload(subject=self.subject, body=self.text)


class DispatchOutcome(BaseModel):
    recipient_id: int | None
    addressee: str
    sent: bool
    provider_id: str | None = None
    reason: str | None = None


class DispatchFailure(BaseModel):
    recipient_id: int | None
    addressee: str
    reason: str


class BatchSummary(BaseModel):
    channel: Channel
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    failures: list[DispatchFailure] = Field(default_factory=list)

    @classmethod
    def from_outcomes(cls, channel: Channel, outcomes: list[DispatchOutcome]) -> "BatchSummary":
        failures = [
            DispatchFailure(
                recipient_id=outcome.recipient_id,
                addressee=outcome.addressee,
                reason=outcome.reason or "unknown error",
            )
            for outcome in outcomes
            if not outcome.sent
        ]
        return cls(
            channel=channel,
            attempted=len(outcomes),
            succeeded=len(outcomes) - len(failures),
            failed=len(failures),
            failures=failures,
        )


class BroadcastResponse(BaseModel):
    message: str
    attempted: int
    succeeded: int
    failed: int


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None
