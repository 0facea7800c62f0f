"""
Slack Web API client.

Slack answers HTTP 200 for most failures and reports them in the body as
``{"ok": false, "error": "<code>"}``. Token problems (revoked, missing
scope, ...) raise ProviderAuthError so the tool asks the user to
reconnect; every other code raises SlackAPIError.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ...auth.models import AccessToken
from ...constants import PROVIDER_SLACK
from ..http import IntegrationConfig, ProviderAuthError, ProviderClient, ProviderError

logger = logging.getLogger(__name__)

AUTH_ERRORS = frozenset({
    "not_authed",
    "invalid_auth",
    "account_inactive",
    "token_revoked",
    "token_expired",
    "missing_scope",
    "no_permission",
})

ERROR_MESSAGES = {
    "channel_not_found": "Channel not found",
    "name_taken": "Channel already exists",
    "not_in_channel": "The Slack app is not a member of that channel",
    "ratelimited": "Slack rate limit reached, try again shortly",
}

CHANNEL_PAGE_SIZE = 200


class SlackAPIError(ProviderError):
    """Slack answered ``ok: false`` with a non-auth error code"""

    def __init__(self, code: str, message: str):
        super().__init__(PROVIDER_SLACK, message)
        self.code = code


def slack_timestamp(ts: Optional[str]) -> Optional[str]:
    """Slack message ts ("1712345678.000200") as ISO-8601 UTC."""
    if not ts:
        return None
    try:
        return datetime.fromtimestamp(float(ts), tz=timezone.utc).isoformat()
    except (TypeError, ValueError):
        return None


def normalize_channel_name(name: str) -> str:
    """Slack channel names: lowercase, no '#', spaces become dashes."""
    return re.sub(r"\s+", "-", name.strip().lstrip("#")).lower()


class SlackClient:
    """
    Slack operations used by the Slack tool.

    Usage:
        async with SlackClient(token, config) as slack:
            channel_id = await slack.resolve_channel(channel_name="general")
            await slack.send_message(channel_id, "Deal closed!")
    """

    def __init__(self, token: AccessToken, config: IntegrationConfig):
        self._http = ProviderClient(
            PROVIDER_SLACK,
            config.slack_api_url,
            token,
            timeout=config.timeout,
            transport=config.transport,
        )
        self._user_names: Dict[str, str] = {}

    async def __aenter__(self) -> "SlackClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self._http.__aexit__(*exc)

    async def _call(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if json is not None:
            payload = await self._http.post(f"/{method}", json=json)
        else:
            payload = await self._http.get(f"/{method}", params=params)

        if not isinstance(payload, dict):
            raise ProviderError(PROVIDER_SLACK, f"Unexpected response from Slack {method}")
        if payload.get("ok"):
            return payload

        code = payload.get("error") or "unknown_error"
        if code in AUTH_ERRORS:
            logger.info(f"Slack rejected token on {method}: {code}")
            raise ProviderAuthError(PROVIDER_SLACK, f"Slack {method} failed: {code}")
        logger.warning(f"Slack {method} failed: {code}")
        raise SlackAPIError(code, ERROR_MESSAGES.get(code, f"Slack {method} failed: {code}"))

    async def resolve_channel(
        self,
        channel_id: Optional[str] = None,
        channel_name: Optional[str] = None,
    ) -> str:
        """Channel id as given, or looked up by name across all pages."""
        if channel_id:
            return channel_id
        if not channel_name:
            raise ProviderError(PROVIDER_SLACK, "Either channel_id or channel_name is required")

        wanted = normalize_channel_name(channel_name)
        cursor = None
        while True:
            params: Dict[str, Any] = {"limit": CHANNEL_PAGE_SIZE, "exclude_archived": "true"}
            if cursor:
                params["cursor"] = cursor
            payload = await self._call("conversations.list", params=params)
            for channel in payload.get("channels") or []:
                if channel.get("name") == wanted:
                    return channel["id"]
            cursor = (payload.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                break
        raise ProviderError(PROVIDER_SLACK, f"Channel #{wanted} not found")

    async def send_message(self, channel_id: str, text: str) -> Dict[str, Any]:
        payload = await self._call("chat.postMessage", json={"channel": channel_id, "text": text})
        logger.info(f"Posted Slack message to {payload.get('channel')}")
        return {"message_ts": payload.get("ts"), "channel_id": payload.get("channel", channel_id)}

    async def create_channel(self, name: str, topic: Optional[str] = None) -> Dict[str, Any]:
        payload = await self._call(
            "conversations.create",
            json={"name": normalize_channel_name(name), "is_private": False},
        )
        channel = payload.get("channel") or {}
        if topic:
            await self._call("conversations.setTopic", json={"channel": channel.get("id"), "topic": topic})
        return {"channel_id": channel.get("id"), "channel_name": channel.get("name")}

    async def lookup_user_ids(self, emails: List[str]) -> List[str]:
        """Slack user ids for the given emails; unknown emails are skipped."""
        user_ids = []
        for email in emails:
            try:
                payload = await self._call("users.lookupByEmail", params={"email": email})
            except SlackAPIError:
                logger.info(f"No Slack user for {email}")
                continue
            user_id = (payload.get("user") or {}).get("id")
            if user_id:
                user_ids.append(user_id)
        return user_ids

    async def invite_users(self, channel_id: str, user_ids: List[str]) -> Dict[str, Any]:
        try:
            await self._call("conversations.invite", json={"channel": channel_id, "users": ",".join(user_ids)})
        except SlackAPIError as e:
            if e.code != "already_in_channel":
                raise
            return {"channel_id": channel_id, "users_invited": 0, "already_members": True}
        return {"channel_id": channel_id, "users_invited": len(user_ids), "already_members": False}

    async def _user_name(self, user_id: str) -> str:
        if user_id not in self._user_names:
            try:
                payload = await self._call("users.info", params={"user": user_id})
            except SlackAPIError:
                self._user_names[user_id] = "Unknown User"
            else:
                user = payload.get("user") or {}
                self._user_names[user_id] = user.get("real_name") or user.get("name") or "Unknown User"
        return self._user_names[user_id]

    async def get_messages(
        self,
        channel_id: str,
        limit: int = 10,
        oldest: Optional[str] = None,
        latest: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"channel": channel_id, "limit": limit}
        if oldest:
            params["oldest"] = oldest
        if latest:
            params["latest"] = latest
        payload = await self._call("conversations.history", params=params)

        messages = []
        for message in payload.get("messages") or []:
            user_id = message.get("user")
            messages.append({
                "ts": message.get("ts"),
                "text": message.get("text", ""),
                "user": await self._user_name(user_id) if user_id else "Unknown User",
                "timestamp": slack_timestamp(message.get("ts")),
            })
        return {"channel_id": channel_id, "messages": messages, "has_more": bool(payload.get("has_more"))}

    async def search(self, query: str, limit: Optional[int] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"query": query}
        if limit:
            params["count"] = limit
        payload = await self._call("search.messages", params=params)

        matches = (payload.get("messages") or {}).get("matches") or []
        results = [
            {
                "text": match.get("text", ""),
                "permalink": match.get("permalink"),
                "username": match.get("username"),
                "channel_name": (match.get("channel") or {}).get("name"),
                "timestamp": slack_timestamp(match.get("ts")),
            }
            for match in matches
        ]
        total = (payload.get("messages") or {}).get("total", len(results))
        return {"query": query, "total": total, "results": results}
