from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from broadcast_api.core.exceptions import RepositoryError
from broadcast_api.core.security import hash_password
from broadcast_api.models.domain import User
from broadcast_api.schemas.users import UserCreate


@dataclass(frozen=True)
class Recipient:
    user_id: int | None
    email: str | None
    phone_number: str | None


class RecipientSource(Protocol):
    def list_recipients(self) -> list[Recipient]:
        ...


class SqlRecipientSource:
    """Reads every registered user as a broadcast recipient."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def list_recipients(self) -> list[Recipient]:
        try:
            session = self._session_factory()
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Recipient store unavailable: {exc}") from exc
        try:
            rows = session.execute(
                select(User.id, User.email, User.phone_number).order_by(User.id)
            ).all()
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Failed to load recipients: {exc}") from exc
        finally:
            session.close()
        return [
            Recipient(user_id=row.id, email=row.email, phone_number=row.phone_number)
            for row in rows
        ]


class StaticRecipientSource:
    """In-memory recipient list, used by the smoke script and CLI checks."""

    def __init__(self, recipients: list[Recipient]) -> None:
        self._recipients = list(recipients)

    def list_recipients(self) -> list[Recipient]:
        return list(self._recipients)


def create_user(db: Session, payload: UserCreate) -> User:
    user = User(
        email=payload.email,
        phone_number=payload.phone_number,
        date_of_birth=payload.date_of_birth,
        password_hash=hash_password(payload.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def list_users(db: Session) -> list[User]:
    return list(db.scalars(select(User).order_by(User.id)).all())
