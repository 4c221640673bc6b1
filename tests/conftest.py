"""Shared fixtures: a scriptable in-memory transport and service-account keys."""

import json
from typing import Any, Optional, Sequence

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from pubsub_session.transport.base import CreateSubscriptionResult, PulledEnvelope, Subscription


class FakeTransport:
    """Deterministic MessagingTransport. Every call is recorded in ``calls``."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.existing: set[str] = set()
        self.create_failure: Optional[str] = None
        self.authorize_error: Optional[Exception] = None
        self.publish_error: Optional[Exception] = None
        self.inbox: list[str] = []
        self.published: list[tuple[str, str]] = []
        self.acked: list[str] = []
        self.deleted: list[str] = []
        self.closed: list[Any] = []
        self._seq = 0

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def authorize(self, credentials: Any, project_id: str, scopes: Sequence[str]) -> Any:
        self.calls.append(("authorize", (credentials.client_email, project_id, tuple(scopes))))
        if self.authorize_error is not None:
            raise self.authorize_error
        return {"project": project_id, "email": credentials.client_email}

    async def create_subscription(self, auth: Any, name: str, topic: str) -> CreateSubscriptionResult:
        self.calls.append(("create_subscription", (name, topic)))
        if self.create_failure is not None:
            return CreateSubscriptionResult.failed(self.create_failure)
        if name in self.existing:
            return CreateSubscriptionResult.already_exists()
        self.existing.add(name)
        return CreateSubscriptionResult.created(Subscription(name=name, topic=topic))

    async def lookup_subscription(self, auth: Any, name: str) -> Subscription:
        self.calls.append(("lookup_subscription", (name,)))
        return Subscription(name=name, topic="existing-topic")

    async def pull(self, auth: Any, subscription: Subscription, wait: bool = False) -> Optional[PulledEnvelope]:
        self.calls.append(("pull", (subscription.name, wait)))
        if not self.inbox:
            return None
        self._seq += 1
        ack_id = f"ack-{self._seq}"
        data = self.inbox.pop(0)

        async def _ack() -> None:
            self.calls.append(("acknowledge", (ack_id,)))
            self.acked.append(ack_id)

        return PulledEnvelope(ack_id=ack_id, data=data, ack=_ack, message_id=str(self._seq))

    async def publish(self, auth: Any, topic: str, data: str) -> None:
        self.calls.append(("publish", (topic, data)))
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((topic, data))

    def delete_subscription(self, auth: Any, subscription: Subscription) -> None:
        self.calls.append(("delete_subscription", (subscription.name,)))
        self.deleted.append(subscription.name)
        self.existing.discard(subscription.name)

    async def close(self, auth: Any) -> None:
        self.calls.append(("close", ()))
        self.closed.append(auth)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture(scope="session")
def private_key_pem() -> str:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def credentials_json(private_key_pem: str) -> str:
    return json.dumps({
        "type": "service_account",
        "project_id": "demo-project",
        "private_key_id": "key-1",
        "private_key": private_key_pem,
        "client_email": "sensor@demo-project.iam.gserviceaccount.com",
        "client_id": "1234567890",
        "token_uri": "https://oauth2.googleapis.com/token",
    })


@pytest.fixture
def credentials_file(tmp_path, credentials_json: str):
    path = tmp_path / "credentials.json"
    path.write_text(credentials_json)
    return path
