from __future__ import annotations

from fastapi.testclient import TestClient

from broadcast_api.core.config import Settings
from broadcast_api.main import app, build_dispatcher
from broadcast_api.services.recipient_service import Recipient, StaticRecipientSource


def run_smoke() -> None:
    config = Settings(TRANSPORT_MOCK_MODE=True)
    recipients = StaticRecipientSource(
        [
            Recipient(user_id=1, email="alice@example.com", phone_number="0771234567"),
            Recipient(user_id=2, email="bob@example.com", phone_number="+94712345678"),
            Recipient(user_id=3, email="", phone_number=""),
        ]
    )
    client = TestClient(app)
    app.state.dispatcher = build_dispatcher(config, recipients)

    client.get("/health/ping").raise_for_status()
    resp = client.post("/sendSmsToAll", json={"message": "Smoke test"})
    resp.raise_for_status()
    print("SMS smoke completed:", resp.json())
    resp = client.post("/sendEmailToAll", json={"subject": "Smoke", "text": "Smoke test"})
    resp.raise_for_status()
    print("Email smoke completed:", resp.json())


if __name__ == "__main__":
    run_smoke()
