"""
Messaging transport contract.

A session never talks to the network itself; it drives an injected
MessagingTransport. The auth handle returned by ``authorize`` is opaque to the
session and is passed back on every later call.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from pubsub_session.auth import ServiceAccountCredentials


class Subscription:
    """Handle on a durable subscription bound to a topic."""

    __slots__ = ("name", "topic", "path")

    def __init__(self, name: str, topic: str, path: Optional[str] = None):
        self.name = name
        self.topic = topic
        self.path = path or name

    def __repr__(self) -> str:
        return f"Subscription(name={self.name!r}, topic={self.topic!r})"


class CreateStatus(str, Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


class CreateSubscriptionResult:
    __slots__ = ("status", "subscription", "reason")

    def __init__(
        self,
        status: CreateStatus,
        subscription: Optional[Subscription] = None,
        reason: Optional[str] = None,
    ):
        self.status = status
        self.subscription = subscription
        self.reason = reason

    @classmethod
    def created(cls, subscription: Subscription) -> "CreateSubscriptionResult":
        return cls(CreateStatus.CREATED, subscription=subscription)

    @classmethod
    def already_exists(cls) -> "CreateSubscriptionResult":
        return cls(CreateStatus.ALREADY_EXISTS)

    @classmethod
    def failed(cls, reason: str) -> "CreateSubscriptionResult":
        return cls(CreateStatus.FAILED, reason=reason)

    def __repr__(self) -> str:
        return f"CreateSubscriptionResult(status={self.status.value!r}, reason={self.reason!r})"


class PulledEnvelope:
    """One pulled message plus the capability to acknowledge it."""

    __slots__ = ("ack_id", "data", "message_id", "publish_time", "attributes", "_ack", "acknowledged")

    def __init__(
        self,
        ack_id: str,
        data: str,
        ack: Callable[[], Awaitable[None]],
        message_id: Optional[str] = None,
        publish_time: Optional[str] = None,
        attributes: Optional[dict[str, str]] = None,
    ):
        self.ack_id = ack_id
        self.data = data
        self.message_id = message_id
        self.publish_time = publish_time
        self.attributes = attributes or {}
        self._ack = ack
        self.acknowledged = False

    async def acknowledge(self) -> None:
        await self._ack()
        self.acknowledged = True

    def __repr__(self) -> str:
        return f"PulledEnvelope(message_id={self.message_id!r}, acknowledged={self.acknowledged})"


@runtime_checkable
class MessagingTransport(Protocol):
    async def authorize(
        self, credentials: ServiceAccountCredentials, project_id: str, scopes: Sequence[str],
    ) -> Any:
        """Return an authorised handle, or raise AuthenticationError."""
        ...

    async def create_subscription(self, auth: Any, name: str, topic: str) -> CreateSubscriptionResult:
        ...

    async def lookup_subscription(self, auth: Any, name: str) -> Subscription:
        """Return the existing subscription, or raise SubscriptionError."""
        ...

    async def pull(self, auth: Any, subscription: Subscription, wait: bool = False) -> Optional[PulledEnvelope]:
        ...

    async def publish(self, auth: Any, topic: str, data: str) -> None:
        """Publish one payload, or raise PublishError."""
        ...

    def delete_subscription(self, auth: Any, subscription: Subscription) -> None:
        """Dispatch deletion without waiting for the outcome."""
        ...

    async def close(self, auth: Any) -> None:
        ...
