"""
AsyncMessagingSession / MessagingSession — the client-facing session.

Lifecycle: construct → initialize() → send()/receive() → close().
``ready`` is derived from the authenticated and initialised flags; until it is
true, send/receive are no-ops returning None. A closed session can't be
initialised again.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional, Union

from pubsub_session.auth import PUBSUB_SCOPES, parse_credentials
from pubsub_session.codec import decode_message, encode_message
from pubsub_session.errors import (
    AuthenticationError,
    ConfigurationError,
    MessageDecodeError,
    PublishError,
    SubscriptionError,
)
from pubsub_session.models.message import Message
from pubsub_session.transport.base import CreateStatus, MessagingTransport, PulledEnvelope, Subscription
from pubsub_session.transport.pubsub import PubSubTransport

logger = logging.getLogger(__name__)


class AsyncMessagingSession:
    """Async pub/sub session for one client identity (primary)."""

    def __init__(self, identity: str, transport: Optional[MessagingTransport] = None):
        if not identity:
            raise ConfigurationError("identity is required")
        if transport is None:
            transport = PubSubTransport()
        self._identity = identity
        self._transport = transport

        self._authenticated = False
        self._initialized = False
        self._closed = False
        self._topic: Optional[str] = None
        self._auth: Any = None
        self._subscription: Optional[Subscription] = None

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def topic(self) -> Optional[str]:
        return self._topic

    @property
    def authenticated(self) -> bool:
        return self._authenticated

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def ready(self) -> bool:
        return self._authenticated and self._initialized

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    async def initialize(
        self,
        credentials_file: Optional[Union[str, Path]],
        project_id: Optional[str],
        topic: Optional[str],
    ) -> bool:
        """Initialise from a service-account key file. Must be called before use."""
        if credentials_file is None:
            raise ConfigurationError("No credentials file specified")
        json_credentials = Path(credentials_file).read_text()
        return await self.initialize_json(json_credentials, project_id, topic)

    async def initialize_json(
        self,
        json_credentials: str,
        project_id: Optional[str],
        topic: Optional[str],
    ) -> bool:
        """Initialise from raw service-account key JSON.

        Authenticates, then creates the subscription named after this session's
        identity on ``topic``. If it already exists (a previous run with the same
        identity), the existing one is looked up and reused.
        """
        if not project_id:
            raise ConfigurationError("No project id specified")
        if not topic:
            raise ConfigurationError("No topic specified")
        if self._closed:
            raise ConfigurationError("Session is closed; create a new session")
        if self._authenticated or self._initialized:
            raise ConfigurationError("Session is already initialised; close it first")

        credentials = parse_credentials(json_credentials)

        try:
            self._auth = await self._transport.authorize(credentials, project_id, PUBSUB_SCOPES)
        except AuthenticationError:
            raise
        except Exception as e:
            raise AuthenticationError(f"Failed to authorise {credentials.client_email}: {e}")
        self._authenticated = True
        self._topic = topic
        logger.debug("Session %s authenticated", self._identity)

        self._subscription = await self._acquire_subscription(topic)
        self._initialized = True
        logger.debug("Session %s ready on topic %s", self._identity, topic)
        return self.ready

    async def _acquire_subscription(self, topic: str) -> Subscription:
        try:
            result = await self._transport.create_subscription(self._auth, self._identity, topic)
        except SubscriptionError:
            raise
        except Exception as e:
            raise SubscriptionError(f"Failed to create subscription {self._identity}: {e}")

        if result.status == CreateStatus.CREATED and result.subscription is not None:
            logger.info("Created subscription %s on %s", self._identity, topic)
            return result.subscription
        if result.status == CreateStatus.ALREADY_EXISTS:
            logger.info("Subscription %s already exists, reusing it", self._identity)
            try:
                return await self._transport.lookup_subscription(self._auth, self._identity)
            except SubscriptionError:
                raise
            except Exception as e:
                raise SubscriptionError(f"Failed to look up subscription {self._identity}: {e}")
        raise SubscriptionError(
            f"Subscription {self._identity} could not be created: {result.reason}",
            details={"reason": result.reason},
        )

    async def _pull(self, wait: bool) -> Optional[PulledEnvelope]:
        envelope = await self._transport.pull(self._auth, self._subscription, wait=wait)  # type: ignore[arg-type]
        if envelope is None:
            return None
        # Acknowledged before decoding: a payload that fails to decode is not redelivered.
        await envelope.acknowledge()
        return envelope

    async def receive_raw(self, wait: bool = False) -> Optional[str]:
        """Receive one message as its raw string, or None if nothing is available."""
        if not self.ready:
            return None
        envelope = await self._pull(wait)
        if envelope is None:
            return None
        return envelope.data

    async def receive(self, wait: bool = False) -> Optional[Message]:
        """Receive one message, or None if nothing is available or it doesn't decode."""
        if not self.ready:
            return None
        envelope = await self._pull(wait)
        if envelope is None:
            return None
        try:
            return decode_message(envelope.data)
        except MessageDecodeError as e:
            logger.warning(f"Dropping undecodable message {envelope.message_id}: {e}")
            return None

    async def send(self, message: Message) -> Optional[Message]:
        """Publish a message to the topic the subscription is bound to. Returns the message on success."""
        if not self.ready:
            return None
        topic = self._subscription.topic  # type: ignore[union-attr]
        data = encode_message(message)
        try:
            await self._transport.publish(self._auth, topic, data)
        except PublishError:
            raise
        except Exception as e:
            raise PublishError(f"Failed to publish to {topic}: {e}")
        return message

    async def close(self, unsubscribe: bool = True) -> None:
        """Close the session. By default the subscription is deleted as well."""
        if unsubscribe and self._subscription is not None:
            self._transport.delete_subscription(self._auth, self._subscription)
        self._subscription = None
        self._initialized = False

        auth, self._auth = self._auth, None
        try:
            if auth is not None:
                await self._transport.close(auth)
        finally:
            self._authenticated = False
            self._closed = True
        logger.debug("Session %s closed", self._identity)

    async def __aenter__(self) -> "AsyncMessagingSession":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


class MessagingSession:
    """Sync wrapper around AsyncMessagingSession. Runs the event loop internally."""

    def __init__(self, identity: str, transport: Optional[MessagingTransport] = None):
        self._async = AsyncMessagingSession(identity, transport)
        self._loop = asyncio.new_event_loop()

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def identity(self) -> str:
        return self._async.identity

    @property
    def topic(self) -> Optional[str]:
        return self._async.topic

    @property
    def ready(self) -> bool:
        return self._async.ready

    def initialize(self, credentials_file: Optional[Union[str, Path]], project_id: Optional[str], topic: Optional[str]) -> bool:
        return self._run(self._async.initialize(credentials_file, project_id, topic))

    def initialize_json(self, json_credentials: str, project_id: Optional[str], topic: Optional[str]) -> bool:
        return self._run(self._async.initialize_json(json_credentials, project_id, topic))

    def receive_raw(self, wait: bool = False) -> Optional[str]:
        return self._run(self._async.receive_raw(wait=wait))

    def receive(self, wait: bool = False) -> Optional[Message]:
        return self._run(self._async.receive(wait=wait))

    def send(self, message: Message) -> Optional[Message]:
        return self._run(self._async.send(message))

    def close(self, unsubscribe: bool = True) -> None:
        if self._loop.is_closed():
            return
        try:
            self._run(self._async.close(unsubscribe=unsubscribe))
        finally:
            self._loop.close()

    def __enter__(self) -> "MessagingSession":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
