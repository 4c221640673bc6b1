"""
Service-account authentication.

Credentials come as the JSON key file issued for a service account. An access
token is obtained with the OAuth2 JWT-bearer grant: an RS256 assertion signed
with the account's private key is exchanged at the account's ``token_uri``.
Tokens are refreshed transparently shortly before they expire.
"""

import json
import logging
import time
from typing import Optional, Sequence

import httpx
import jwt
from pydantic import BaseModel, ValidationError, field_validator

from pubsub_session.errors import AuthenticationError, MessagingError
from pubsub_session.transport.http import HttpClient

logger = logging.getLogger(__name__)

PUBSUB_SCOPES = (
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/pubsub",
)
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
TOKEN_LIFETIME_S = 3600
TOKEN_REFRESH_MARGIN_S = 60


class ServiceAccountCredentials(BaseModel):
    type: str = "service_account"
    client_email: str
    private_key: str
    private_key_id: Optional[str] = None
    client_id: Optional[str] = None
    project_id: Optional[str] = None
    token_uri: str = DEFAULT_TOKEN_URI

    @field_validator("type")
    @classmethod
    def _must_be_service_account(cls, v: str) -> str:
        if v != "service_account":
            raise ValueError(f"expected a service_account key, got {v!r}")
        return v


def parse_credentials(json_credentials: str) -> ServiceAccountCredentials:
    """Parse service-account key material. Raises AuthenticationError if it isn't usable."""
    try:
        return ServiceAccountCredentials.model_validate(json.loads(json_credentials))
    except (json.JSONDecodeError, TypeError) as e:
        raise AuthenticationError(f"Credentials are not valid JSON: {e}")
    except ValidationError as e:
        raise AuthenticationError(
            "Credentials are not a usable service-account key",
            details={"errors": [err["loc"] for err in e.errors()]},
        )


def build_assertion(credentials: ServiceAccountCredentials, scopes: Sequence[str], now: Optional[int] = None) -> str:
    """Sign the JWT-bearer assertion for a token request."""
    issued = int(now if now is not None else time.time())
    claims = {
        "iss": credentials.client_email,
        "scope": " ".join(scopes),
        "aud": credentials.token_uri,
        "iat": issued,
        "exp": issued + TOKEN_LIFETIME_S,
    }
    headers = {"kid": credentials.private_key_id} if credentials.private_key_id else None
    try:
        return jwt.encode(claims, credentials.private_key, algorithm="RS256", headers=headers)
    except (ValueError, TypeError, jwt.PyJWTError) as e:
        raise AuthenticationError(f"Unable to sign token assertion: {e}")


class TokenSource:
    """Hands out a valid access token, refreshing it when it's about to expire."""

    def __init__(self, credentials: ServiceAccountCredentials, scopes: Sequence[str], http: HttpClient):
        self._credentials = credentials
        self._scopes = tuple(scopes)
        self._http = http
        self._token: Optional[str] = None
        self._expires_at = 0.0

    @property
    def scopes(self) -> tuple[str, ...]:
        return self._scopes

    @property
    def expired(self) -> bool:
        return self._token is None or time.time() >= self._expires_at - TOKEN_REFRESH_MARGIN_S

    async def refresh(self) -> str:
        assertion = build_assertion(self._credentials, self._scopes)
        try:
            result = await self._http.post_form(
                self._credentials.token_uri,
                {"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
            )
        except (MessagingError, httpx.HTTPError) as e:
            raise AuthenticationError(f"Token request rejected: {e}", details=getattr(e, "details", None))
        token = result.get("access_token") if isinstance(result, dict) else None
        if not token:
            raise AuthenticationError("Token response carried no access_token")
        self._token = token
        self._expires_at = time.time() + float(result.get("expires_in", TOKEN_LIFETIME_S))
        logger.debug("Access token refreshed for %s", self._credentials.client_email)
        return token

    async def token(self) -> str:
        if self.expired:
            return await self.refresh()
        return self._token  # type: ignore[return-value]
