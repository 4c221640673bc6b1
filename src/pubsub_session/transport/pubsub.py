"""
Google Cloud Pub/Sub transport over the v1 REST API.

Resource names may be given short (``my-topic``) or fully qualified
(``projects/p/topics/my-topic``); short names are qualified with the project
the handle was authorised for.
"""

import asyncio
import base64
import logging
from typing import Any, Optional, Sequence

import httpx

from pubsub_session.auth import ServiceAccountCredentials, TokenSource
from pubsub_session.errors import AuthenticationError, MessagingError, PublishError, SubscriptionError
from pubsub_session.transport.base import CreateSubscriptionResult, PulledEnvelope, Subscription
from pubsub_session.transport.http import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_S, HttpClient

logger = logging.getLogger(__name__)

DEFAULT_PULL_TIMEOUT_S = 90.0
CONFLICT = 409


class AuthorizedClient:
    """Auth handle: an HTTP client carrying a refreshing token, bound to one project."""

    def __init__(self, http: HttpClient, tokens: TokenSource, project_id: str):
        self.http = http
        self.tokens = tokens
        self.project_id = project_id
        self._pending: set[asyncio.Task[None]] = set()

    def topic_path(self, topic: str) -> str:
        if topic.startswith("projects/"):
            return topic
        return f"projects/{self.project_id}/topics/{topic}"

    def subscription_path(self, name: str) -> str:
        if name.startswith("projects/"):
            return name
        return f"projects/{self.project_id}/subscriptions/{name}"

    def dispatch(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)


class PubSubTransport:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_S,
        pull_timeout: float = DEFAULT_PULL_TIMEOUT_S,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._timeout = timeout
        self._pull_timeout = pull_timeout
        self._http_transport = http_transport

    async def authorize(
        self, credentials: ServiceAccountCredentials, project_id: str, scopes: Sequence[str],
    ) -> AuthorizedClient:
        http = HttpClient(base_url=self._base_url, timeout=self._timeout, transport=self._http_transport)
        tokens = TokenSource(credentials, scopes, http)
        try:
            await tokens.refresh()
        except AuthenticationError:
            await http.close()
            raise
        http.set_token_provider(tokens.token)
        logger.debug("Authorised %s for project %s", credentials.client_email, project_id)
        return AuthorizedClient(http, tokens, project_id)

    async def create_subscription(self, auth: AuthorizedClient, name: str, topic: str) -> CreateSubscriptionResult:
        path = auth.subscription_path(name)
        topic_path = auth.topic_path(topic)
        try:
            result = await auth.http.put(path, {"topic": topic_path})
        except MessagingError as e:
            if (e.details or {}).get("status") == CONFLICT:
                return CreateSubscriptionResult.already_exists()
            return CreateSubscriptionResult.failed(str(e))
        except httpx.HTTPError as e:
            return CreateSubscriptionResult.failed(f"{type(e).__name__}: {e}")
        return CreateSubscriptionResult.created(
            Subscription(name=name, topic=result.get("topic", topic_path), path=result.get("name", path)),
        )

    async def lookup_subscription(self, auth: AuthorizedClient, name: str) -> Subscription:
        path = auth.subscription_path(name)
        try:
            result = await auth.http.get(path)
        except (MessagingError, httpx.HTTPError) as e:
            raise SubscriptionError(f"Failed to look up subscription {name}: {e}")
        return Subscription(name=name, topic=result["topic"], path=result.get("name", path))

    async def pull(
        self, auth: AuthorizedClient, subscription: Subscription, wait: bool = False,
    ) -> Optional[PulledEnvelope]:
        """Pull at most one message.

        Payload bytes are decoded as UTF-8; invalid sequences become U+FFFD, so a
        non-text payload comes back altered rather than failing the pull.
        """
        result = await auth.http.post(
            f"{subscription.path}:pull",
            {"maxMessages": 1, "returnImmediately": not wait},
            timeout=self._pull_timeout if wait else None,
        )
        received = result.get("receivedMessages") or []
        if not received:
            return None
        item = received[0]
        message = item.get("message", {})
        ack_id = item["ackId"]

        async def _ack() -> None:
            await auth.http.post(f"{subscription.path}:acknowledge", {"ackIds": [ack_id]})

        return PulledEnvelope(
            ack_id=ack_id,
            data=base64.b64decode(message.get("data", "")).decode("utf-8", errors="replace"),
            ack=_ack,
            message_id=message.get("messageId"),
            publish_time=message.get("publishTime"),
            attributes=message.get("attributes"),
        )

    async def publish(self, auth: AuthorizedClient, topic: str, data: str) -> None:
        encoded = base64.b64encode(data.encode("utf-8")).decode("ascii")
        try:
            await auth.http.post(f"{auth.topic_path(topic)}:publish", {"messages": [{"data": encoded}]})
        except (MessagingError, httpx.HTTPError) as e:
            raise PublishError(f"Failed to publish to {topic}: {e}", details=getattr(e, "details", None))

    def delete_subscription(self, auth: AuthorizedClient, subscription: Subscription) -> None:
        async def _do_delete() -> None:
            try:
                await auth.http.delete(subscription.path)
            except Exception as e:
                logger.error(f"Delete failed for subscription {subscription.name}: {e}")

        auth.dispatch(_do_delete())

    async def close(self, auth: AuthorizedClient) -> None:
        await auth.drain()
        await auth.http.close()
