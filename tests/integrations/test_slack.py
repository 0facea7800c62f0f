"""Tests for the Slack tool against a fake Slack Web API"""

import json

import httpx
import pytest

from toolvalet.constants import PROVIDER_SLACK, SLACK_SCOPES
from toolvalet.integrations.slack.client import normalize_channel_name, slack_timestamp
from toolvalet.result import ConnectionRequired, ErrorKind, Failure, Success

SLACK_URL = "https://slack.com/api"


@pytest.fixture
def slack_user(identity):
    identity.put_token("u1", PROVIDER_SLACK, "xoxp-token", scopes=list(SLACK_SCOPES))
    return "u1"


def slack_ok(**fields):
    return {"ok": True, **fields}


class TestSendMessage:

    @pytest.mark.asyncio
    async def test_send_by_channel_id(self, dispatcher, providers, slack_user):
        providers.on("POST", f"{SLACK_URL}/chat.postMessage", json=slack_ok(ts="1712345678.000200", channel="C1"))

        result = await dispatcher.call(
            "slack", {"action": "send_message", "channel_id": "C1", "text": "Deal closed!"}, user_id=slack_user
        )

        assert result == Success(data={"message_ts": "1712345678.000200", "channel_id": "C1"})
        request = providers.requests[0]
        assert request.headers["Authorization"] == "Bearer xoxp-token"
        assert json.loads(request.content) == {"channel": "C1", "text": "Deal closed!"}

    @pytest.mark.asyncio
    async def test_channel_name_resolved_across_pages(self, dispatcher, providers, slack_user):
        pages = iter([
            slack_ok(channels=[{"id": "C0", "name": "random"}], response_metadata={"next_cursor": "page2"}),
            slack_ok(channels=[{"id": "C7", "name": "deal-room"}], response_metadata={"next_cursor": ""}),
        ])
        providers.on(
            "GET",
            f"{SLACK_URL}/conversations.list",
            handler=lambda request: httpx.Response(200, json=next(pages)),
        )
        providers.on("POST", f"{SLACK_URL}/chat.postMessage", json=slack_ok(ts="1.0", channel="C7"))

        result = await dispatcher.call(
            "slack", {"action": "send_message", "channel_name": "#Deal Room", "text": "hi"}, user_id=slack_user
        )

        assert result.data["channel_id"] == "C7"
        listed = providers.requested("GET", f"{SLACK_URL}/conversations.list")
        assert len(listed) == 2
        assert listed[1].url.params["cursor"] == "page2"

    @pytest.mark.asyncio
    async def test_unknown_channel_name(self, dispatcher, providers, slack_user):
        providers.on("GET", f"{SLACK_URL}/conversations.list", json=slack_ok(channels=[]))

        result = await dispatcher.call(
            "slack", {"action": "send_message", "channel_name": "nowhere", "text": "hi"}, user_id=slack_user
        )

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.PROVIDER_ERROR
        assert result.message == "Channel #nowhere not found"
        assert providers.requested("POST", f"{SLACK_URL}/chat.postMessage") == []

    @pytest.mark.asyncio
    async def test_text_and_channel_required(self, dispatcher, providers, slack_user):
        result = await dispatcher.call("slack", {"action": "send_message"}, user_id=slack_user)

        assert result.kind == ErrorKind.INVALID_ARGUMENTS
        assert {d["field"] for d in result.details} == {"channel_id", "text"}
        assert providers.requests == []

    @pytest.mark.asyncio
    async def test_slack_error_code_is_provider_error(self, dispatcher, providers, slack_user):
        providers.on("POST", f"{SLACK_URL}/chat.postMessage", json={"ok": False, "error": "channel_not_found"})

        result = await dispatcher.call(
            "slack", {"action": "send_message", "channel_id": "C404", "text": "hi"}, user_id=slack_user
        )

        assert result.kind == ErrorKind.PROVIDER_ERROR
        assert result.message == "Channel not found"

    @pytest.mark.asyncio
    async def test_revoked_token_requires_reconnect(self, dispatcher, providers, slack_user):
        providers.on("POST", f"{SLACK_URL}/chat.postMessage", json={"ok": False, "error": "token_revoked"})

        result = await dispatcher.call(
            "slack", {"action": "send_message", "channel_id": "C1", "text": "hi"}, user_id=slack_user
        )

        assert isinstance(result, ConnectionRequired)
        assert result.provider == PROVIDER_SLACK
        assert result.missing_scopes == set(SLACK_SCOPES)
        assert "token_revoked" in result.error


class TestSlackAccess:

    @pytest.mark.asyncio
    async def test_not_connected(self, dispatcher, providers):
        result = await dispatcher.call("slack", {"action": "search", "query": "renewal"}, user_id="u1")

        assert isinstance(result, ConnectionRequired)
        assert result.action == "connection://slack"
        assert result.message == "Slack access is required to use Slack features"
        assert providers.requests == []

    @pytest.mark.asyncio
    async def test_partial_grant(self, dispatcher, identity):
        identity.put_token("u1", PROVIDER_SLACK, "xoxp", scopes=["chat:write"])

        result = await dispatcher.call("slack", {"action": "search", "query": "renewal"}, user_id="u1")

        assert result.missing_scopes == {"channels:manage", "users:read"}

    @pytest.mark.asyncio
    async def test_unknown_action(self, dispatcher, slack_user):
        result = await dispatcher.call("slack", {"action": "archive_channel"}, user_id=slack_user)

        assert result.kind == ErrorKind.INVALID_ARGUMENTS
        assert result.details[0]["field"] == "action"


class TestChannels:

    @pytest.mark.asyncio
    async def test_create_channel_with_topic(self, dispatcher, providers, slack_user):
        providers.on(
            "POST", f"{SLACK_URL}/conversations.create", json=slack_ok(channel={"id": "C9", "name": "acme-renewal"})
        )
        providers.on("POST", f"{SLACK_URL}/conversations.setTopic", json=slack_ok())

        result = await dispatcher.call(
            "slack",
            {"action": "create_channel", "channel_name": "Acme Renewal", "topic": "Q2 renewal"},
            user_id=slack_user,
        )

        assert result.data == {"channel_id": "C9", "channel_name": "acme-renewal"}
        assert json.loads(providers.requests[0].content) == {"name": "acme-renewal", "is_private": False}
        assert json.loads(providers.requests[1].content) == {"channel": "C9", "topic": "Q2 renewal"}

    @pytest.mark.asyncio
    async def test_create_channel_name_taken(self, dispatcher, providers, slack_user):
        providers.on("POST", f"{SLACK_URL}/conversations.create", json={"ok": False, "error": "name_taken"})

        result = await dispatcher.call(
            "slack", {"action": "create_channel", "channel_name": "general"}, user_id=slack_user
        )

        assert result.message == "Channel already exists"
        assert providers.requested("POST", f"{SLACK_URL}/conversations.setTopic") == []

    @pytest.mark.asyncio
    async def test_invite_skips_unknown_emails(self, dispatcher, providers, slack_user):
        def lookup(request):
            if request.url.params["email"] == "jane@acme.com":
                return httpx.Response(200, json=slack_ok(user={"id": "U1"}))
            return httpx.Response(200, json={"ok": False, "error": "users_not_found"})

        providers.on("GET", f"{SLACK_URL}/users.lookupByEmail", handler=lookup)
        providers.on("POST", f"{SLACK_URL}/conversations.invite", json=slack_ok())

        result = await dispatcher.call(
            "slack",
            {"action": "invite_user", "channel_id": "C1", "user_emails": ["jane@acme.com", "ghost@acme.com"]},
            user_id=slack_user,
        )

        assert result.data == {"channel_id": "C1", "users_invited": 1, "already_members": False}
        invite = json.loads(providers.requested("POST", f"{SLACK_URL}/conversations.invite")[0].content)
        assert invite == {"channel": "C1", "users": "U1"}

    @pytest.mark.asyncio
    async def test_invite_already_in_channel(self, dispatcher, providers, slack_user):
        providers.on("GET", f"{SLACK_URL}/users.lookupByEmail", json=slack_ok(user={"id": "U1"}))
        providers.on("POST", f"{SLACK_URL}/conversations.invite", json={"ok": False, "error": "already_in_channel"})

        result = await dispatcher.call(
            "slack",
            {"action": "invite_user", "channel_id": "C1", "user_emails": ["jane@acme.com"]},
            user_id=slack_user,
        )

        assert isinstance(result, Success)
        assert result.data["already_members"] is True

    @pytest.mark.asyncio
    async def test_invite_needs_emails(self, dispatcher, slack_user):
        result = await dispatcher.call(
            "slack", {"action": "invite_user", "channel_id": "C1", "user_emails": []}, user_id=slack_user
        )

        assert result.kind == ErrorKind.INVALID_ARGUMENTS
        assert result.details[0]["field"] == "user_emails"


class TestReading:

    @pytest.mark.asyncio
    async def test_history_resolves_user_names_once(self, dispatcher, providers, slack_user):
        providers.on("GET", f"{SLACK_URL}/conversations.history", json=slack_ok(
            messages=[
                {"ts": "1712345678.000200", "text": "first", "user": "U1"},
                {"ts": "1712345679.000100", "text": "second", "user": "U1"},
                {"ts": "1712345680.000000", "text": "bot post"},
            ],
            has_more=True,
        ))
        providers.on("GET", f"{SLACK_URL}/users.info", json=slack_ok(user={"name": "jane", "real_name": "Jane Doe"}))

        result = await dispatcher.call(
            "slack", {"action": "get_messages", "channel_id": "C1", "limit": 3}, user_id=slack_user
        )

        messages = result.data["messages"]
        assert [m["user"] for m in messages] == ["Jane Doe", "Jane Doe", "Unknown User"]
        assert messages[0]["timestamp"].startswith("2024-04-05T")
        assert result.data["has_more"] is True
        assert len(providers.requested("GET", f"{SLACK_URL}/users.info")) == 1
        assert providers.requests[0].url.params["limit"] == "3"

    @pytest.mark.asyncio
    async def test_search(self, dispatcher, providers, slack_user):
        providers.on("GET", f"{SLACK_URL}/search.messages", json=slack_ok(messages={
            "total": 42,
            "matches": [{
                "text": "renewal signed",
                "permalink": "https://acme.slack.com/archives/C1/p1",
                "username": "jane",
                "channel": {"id": "C1", "name": "deals"},
                "ts": "1712345678.000200",
            }],
        }))

        result = await dispatcher.call(
            "slack", {"action": "search", "query": "renewal", "limit": 5}, user_id=slack_user
        )

        assert result.data["total"] == 42
        assert result.data["results"][0]["channel_name"] == "deals"
        assert providers.requests[0].url.params["count"] == "5"


class TestHelpers:

    def test_normalize_channel_name(self):
        assert normalize_channel_name("  #Deal  Room ") == "deal-room"

    def test_slack_timestamp(self):
        assert slack_timestamp("0.0") == "1970-01-01T00:00:00+00:00"
        assert slack_timestamp(None) is None
        assert slack_timestamp("not-a-ts") is None
