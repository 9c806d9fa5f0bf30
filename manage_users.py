from __future__ import annotations

import argparse
import asyncio
from datetime import date

from broadcast_api.core.config import settings
from broadcast_api.core.logging import configure_logging
from broadcast_api.core.phone import normalize_phone
from broadcast_api.db.session import SessionLocal
from broadcast_api.schemas.broadcast import EmailPayload, TextPayload
from broadcast_api.schemas.users import UserCreate, UserRead
from broadcast_api.services.email_service import SmtpEmailTransport
from broadcast_api.services.recipient_service import create_user, list_users
from broadcast_api.services.sms_service import TwilioSmsTransport


def main() -> None:
    parser = argparse.ArgumentParser(description="Broadcast recipient management and provider checks")
    subparsers = parser.add_subparsers(dest="command", required=True)

    add_user = subparsers.add_parser("add-user", help="register a broadcast recipient")
    add_user.add_argument("--email", required=True)
    add_user.add_argument("--phone", required=True)
    add_user.add_argument("--dob", required=True, type=date.fromisoformat, help="YYYY-MM-DD")
    add_user.add_argument("--password", required=True)

    subparsers.add_parser("list-users", help="list registered recipients")

    sms = subparsers.add_parser("send-test-sms", help="send one SMS through the configured provider")
    sms.add_argument("--to", required=True)
    sms.add_argument("--message", default="Broadcast provider check")

    email = subparsers.add_parser("send-test-email", help="send one email through the configured provider")
    email.add_argument("--to", required=True)
    email.add_argument("--subject", default="Broadcast provider check")
    email.add_argument("--text", default="This is a test message.")

    args = parser.parse_args()
    configure_logging()

    if args.command == "add-user":
        payload = UserCreate(
            email=args.email,
            phone_number=args.phone,
            date_of_birth=args.dob,
            password=args.password,
        )
        with SessionLocal() as db:
            user = create_user(db, payload)
            print("User created:", UserRead.model_validate(user).model_dump_json())

    elif args.command == "list-users":
        with SessionLocal() as db:
            users = list_users(db)
            print("User count:", len(users))
            for user in users:
                print(UserRead.model_validate(user).model_dump_json())

    elif args.command == "send-test-sms":
        receipt = asyncio.run(_send_sms(args.to, args.message))
        print("SMS accepted:", receipt.provider_id, receipt.status)

    elif args.command == "send-test-email":
        receipt = asyncio.run(_send_email(args.to, args.subject, args.text))
        print("Email accepted:", receipt.provider_id, receipt.status)


async def _send_sms(to: str, message: str):
    transport = TwilioSmsTransport(settings)
    try:
        addressee = normalize_phone(to, settings.default_country_code) or to
        return await transport.send(addressee, TextPayload(body=message))
    finally:
        await transport.aclose()


async def _send_email(to: str, subject: str, text: str):
    transport = SmtpEmailTransport(settings)
    try:
        return await transport.send(to, EmailPayload(subject=subject, body=text))
    finally:
        await transport.aclose()


if __name__ == "__main__":
    main()
