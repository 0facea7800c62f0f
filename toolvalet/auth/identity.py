"""
Identity collaborator clients.

The identity service owns every user's provider tokens. toolvalet only
reads them (``get_token``), asks for re-authorization URLs
(``build_authorization_url``) and revokes them on disconnect.

Two implementations:
- OutboundAppIdentityClient: HTTP client for an outbound-app token
  management API (bearer ``<project_id>:<management_key>``)
- MemoryIdentityClient: in-process store for development and tests
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Protocol, Tuple, runtime_checkable
from urllib.parse import urlencode

import httpx
from dateutil import parser as date_parser

from .models import StoredToken, scope_set

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """Raised when the identity service cannot be reached or answers with an error"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@runtime_checkable
class IdentityClientProtocol(Protocol):
    """Contract consumed by the TokenBroker."""

    async def get_token(self, user_id: str, provider: str) -> Optional[StoredToken]:
        """Current token for (user, provider), or None when not connected."""
        ...

    async def build_authorization_url(
        self,
        provider: str,
        user_id: str,
        required_scopes: Iterable[str],
        redirect_url: str,
        state: Optional[str] = None,
    ) -> str:
        """URL the user must visit to (re)grant ``required_scopes``."""
        ...

    async def revoke_token(self, user_id: str, provider: str) -> bool:
        """Delete the stored token. Returns False if none existed."""
        ...


def _json_object(response: httpx.Response, what: str) -> Dict[str, Any]:
    """Decode a 2xx body that must be a JSON object."""
    try:
        body = response.json()
    except ValueError as e:
        raise IdentityError(f"{what}: response is not JSON", status_code=response.status_code) from e
    if not isinstance(body, dict):
        raise IdentityError(
            f"{what}: expected a JSON object, got {type(body).__name__}",
            status_code=response.status_code,
        )
    return body


def _parse_expiry(value: Any) -> Optional[datetime]:
    """Accept unix seconds or an ISO-8601 string."""
    if value in (None, "", 0):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str) and value.isdigit():
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    try:
        parsed = date_parser.isoparse(str(value))
    except (ValueError, OverflowError):
        logger.warning(f"Unparseable token expiry: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class OutboundAppIdentityClient:
    """
    Identity client for an outbound-app token management API.

    Example:
        identity = OutboundAppIdentityClient(
            base_url="https://api.descope.com",
            project_id="P123",
            management_key="K456",
        )
        token = await identity.get_token("u1", "google-calendar")
    """

    TOKEN_PATH = "/v1/mgmt/outbound/app/user/token"
    AUTHORIZATION_URL_PATH = "/v1/mgmt/outbound/app/authorization/url"
    REVOKE_PATH = "/v1/mgmt/outbound/user/tokens"

    def __init__(
        self,
        base_url: str,
        project_id: str,
        management_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not project_id or not management_key:
            raise ValueError("project_id and management_key are required")
        self.base_url = base_url.rstrip("/")
        self._project_id = project_id
        self._management_key = management_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._project_id}:{self._management_key}",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def get_token(self, user_id: str, provider: str) -> Optional[StoredToken]:
        try:
            async with self._client() as client:
                response = await client.post(
                    self.TOKEN_PATH,
                    headers=self._headers(),
                    json={"appId": provider, "userId": user_id},
                )
        except httpx.HTTPError as e:
            raise IdentityError(f"Identity service unreachable: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise IdentityError(
                f"Token lookup failed for {provider}: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        token = _json_object(response, f"Token lookup for {provider}").get("token") or {}
        if not isinstance(token, dict):
            raise IdentityError(f"Token lookup for {provider}: malformed token record")
        access_token = token.get("accessToken")
        if not access_token:
            return None

        return StoredToken(
            access_token=access_token,
            granted_scopes=scope_set(token.get("scopes") or []),
            expires_at=_parse_expiry(token.get("accessTokenExpiry")),
        )

    async def build_authorization_url(
        self,
        provider: str,
        user_id: str,
        required_scopes: Iterable[str],
        redirect_url: str,
        state: Optional[str] = None,
    ) -> str:
        body: Dict[str, Any] = {
            "appId": provider,
            "userId": user_id,
            "redirectUrl": redirect_url,
        }
        scopes = sorted(scope_set(required_scopes))
        if scopes:
            body["scopes"] = scopes
        if state:
            body["state"] = state

        try:
            async with self._client() as client:
                response = await client.post(
                    self.AUTHORIZATION_URL_PATH,
                    headers=self._headers(),
                    json=body,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise IdentityError(
                f"Authorization URL request failed: {e.response.status_code} {e.response.text}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise IdentityError(f"Identity service unreachable: {e}") from e

        url = _json_object(response, "Authorization URL request").get("url")
        if not url:
            raise IdentityError("Identity service returned no authorization URL")
        return url

    async def revoke_token(self, user_id: str, provider: str) -> bool:
        try:
            async with self._client() as client:
                response = await client.delete(
                    self.REVOKE_PATH,
                    headers=self._headers(),
                    params={"appId": provider, "userId": user_id},
                )
        except httpx.HTTPError as e:
            raise IdentityError(f"Identity service unreachable: {e}") from e

        if response.status_code == 404:
            return False
        if response.status_code >= 400:
            raise IdentityError(
                f"Token revocation failed for {provider}: {response.status_code} {response.text}",
                status_code=response.status_code,
            )
        return True


class MemoryIdentityClient:
    """
    In-memory identity service.

    Token state can be changed at any time (``put_token``), which is how
    tests simulate an OAuth completion happening out-of-band.

    Example:
        identity = MemoryIdentityClient()
        identity.put_token("u1", "custom-crm", "tok", scopes=["deals:read"])
    """

    def __init__(self, authorize_base_url: str = "https://auth.example.com/oauth/authorize"):
        self.authorize_base_url = authorize_base_url
        self._tokens: Dict[Tuple[str, str], StoredToken] = {}
        self.lookups = 0

    def put_token(
        self,
        user_id: str,
        provider: str,
        access_token: str,
        scopes: Iterable[str] = (),
        expires_in: Optional[int] = 3600,
    ) -> StoredToken:
        expires_at = None
        if expires_in is not None:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        token = StoredToken(
            access_token=access_token,
            granted_scopes=scope_set(scopes),
            expires_at=expires_at,
        )
        self._tokens[(user_id, provider)] = token
        return token

    async def get_token(self, user_id: str, provider: str) -> Optional[StoredToken]:
        self.lookups += 1
        return self._tokens.get((user_id, provider))

    async def build_authorization_url(
        self,
        provider: str,
        user_id: str,
        required_scopes: Iterable[str],
        redirect_url: str,
        state: Optional[str] = None,
    ) -> str:
        params = {
            "app_id": provider,
            "user_id": user_id,
            "redirect_url": redirect_url,
            "scope": " ".join(sorted(scope_set(required_scopes))),
        }
        if state:
            params["state"] = state
        return f"{self.authorize_base_url}?{urlencode(params)}"

    async def revoke_token(self, user_id: str, provider: str) -> bool:
        return self._tokens.pop((user_id, provider), None) is not None
