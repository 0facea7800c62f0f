"""
Provider HTTP plumbing shared by the built-in tools.

ProviderClient wraps httpx with the one rule every integration needs:
HTTP 401/403 raise ProviderAuthError (the user must reconnect), any
other error raises ProviderError with the provider's message preserved.
Tools translate both into ToolResults.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..auth.models import AccessToken
from ..constants import DEFAULT_HTTP_TIMEOUT

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Non-auth failure talking to an external provider"""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.message = message
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    """Provider rejected the token (HTTP 401/403): expired, revoked or under-scoped"""


@dataclass
class IntegrationConfig:
    """
    Endpoints and transport settings for the built-in integrations.

    ``transport`` is handed to every httpx client; tests pass an
    ``httpx.MockTransport`` here.
    """
    crm_api_url: str = ""
    google_calendar_api_url: str = "https://www.googleapis.com/calendar/v3"
    google_docs_api_url: str = "https://docs.googleapis.com/v1"
    google_drive_api_url: str = "https://www.googleapis.com/drive/v3"
    slack_api_url: str = "https://slack.com/api"
    timeout: float = DEFAULT_HTTP_TIMEOUT
    transport: Optional[httpx.AsyncBaseTransport] = None


def _error_message(response: httpx.Response) -> str:
    """Best-effort extraction of the provider's own error text."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        for key in ("message", "error_description", "error", "detail"):
            if body.get(key):
                return str(body[key])

    text = response.text.strip()
    return text[:500] if text else (response.reason_phrase or f"HTTP {response.status_code}")


class ProviderClient:
    """
    Authorized JSON client for one provider call.

    Usage:
        async with ProviderClient("custom-crm", base_url, token, timeout=30.0) as client:
            deals = await client.get("/deals", params={"stage": "proposal"})
    """

    def __init__(
        self,
        provider: str,
        base_url: str,
        token: AccessToken,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ProviderError(provider, f"{provider} API URL is not configured")
        self.provider = provider
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": token.authorization_header,
                "Accept": "application/json",
            },
        )

    async def __aenter__(self) -> "ProviderClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self._client.aclose()

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"{self.provider} {method} {path} timed out")
            raise ProviderError(self.provider, f"{self.provider} request timed out") from e
        except httpx.HTTPError as e:
            logger.warning(f"{self.provider} {method} {path} failed: {e}")
            raise ProviderError(self.provider, f"{self.provider} request failed: {e}") from e

        if response.status_code in (401, 403):
            message = _error_message(response)
            logger.info(f"{self.provider} rejected token: {response.status_code} {message}")
            raise ProviderAuthError(self.provider, message, status_code=response.status_code)

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error(f"{self.provider} API error: {response.status_code} - {message}")
            raise ProviderError(
                self.provider,
                f"{self.provider} API error {response.status_code}: {message}",
                status_code=response.status_code,
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.provider, f"{self.provider} returned invalid JSON") from e

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Optional[Any] = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, json=json, params=params)
