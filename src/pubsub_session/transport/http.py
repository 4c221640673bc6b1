"""
REST HTTP client for the Pub/Sub API.
"""

from typing import Any, Awaitable, Callable, Optional

import httpx

from pubsub_session.errors import MessagingError

DEFAULT_BASE_URL = "https://pubsub.googleapis.com/v1"
DEFAULT_TIMEOUT_S = 30.0

TokenProvider = Callable[[], Awaitable[str]]


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token_provider: Optional[TokenProvider] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/",
            headers={"User-Agent": "pubsub-session/0.1.0", "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def set_token_provider(self, provider: TokenProvider) -> None:
        self._token_provider = provider

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def _auth_headers(self, authenticated: bool) -> dict[str, str]:
        headers: dict[str, str] = {}
        if authenticated and self._token_provider:
            headers["Authorization"] = f"Bearer {await self._token_provider()}"
        return headers

    @staticmethod
    def _check(resp: httpx.Response) -> Any:
        if resp.status_code >= 400:
            raise MessagingError(
                "http_error",
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                details={"status": resp.status_code},
            )
        if not resp.content:
            return {}
        return resp.json()

    async def get(self, path: str, authenticated: bool = True) -> Any:
        resp = await self._client.get(path, headers=await self._auth_headers(authenticated))
        return self._check(resp)

    async def post(
        self,
        path: str,
        body: Optional[dict[str, Any]] = None,
        authenticated: bool = True,
        timeout: Optional[float] = None,
    ) -> Any:
        kwargs: dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout
        resp = await self._client.post(path, json=body, headers=await self._auth_headers(authenticated), **kwargs)
        return self._check(resp)

    async def post_form(self, url: str, data: dict[str, str]) -> Any:
        """POST form-encoded data without the bearer token (token endpoint)."""
        resp = await self._client.post(url, data=data)
        return self._check(resp)

    async def put(self, path: str, body: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        resp = await self._client.put(path, json=body, headers=await self._auth_headers(authenticated))
        return self._check(resp)

    async def delete(self, path: str, authenticated: bool = True) -> Any:
        resp = await self._client.delete(path, headers=await self._auth_headers(authenticated))
        return self._check(resp)

    async def close(self) -> None:
        await self._client.aclose()
