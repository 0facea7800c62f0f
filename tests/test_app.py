"""Tests for toolvalet.app.ToolValet wiring"""

from unittest.mock import AsyncMock

import pytest

from toolvalet import ToolValet
from toolvalet.app import build_identity_client
from toolvalet.auth.identity import IdentityError, MemoryIdentityClient, OutboundAppIdentityClient
from toolvalet.config import IdentitySettings, Settings
from toolvalet.result import ConnectionRequired, ErrorKind, Failure, Success
from toolvalet.workflow import UnknownWorkflowError

CRM_URL = "https://crm.test/api"


@pytest.fixture
def app(identity, providers):
    return ToolValet(Settings(crm_api_url=CRM_URL), identity=identity, transport=providers.transport)


class TestConstruction:

    def test_builds_frozen_registry_and_builtin_workflows(self, app):
        assert app.registry.frozen
        assert len(app.list_tools()) == 10
        assert [w["name"] for w in app.list_workflows()] == ["deal-summary"]
        assert app.list_workflows()[0]["steps"][0] == "fetch-deal"

    def test_loads_extra_workflows(self, identity, tmp_path):
        (tmp_path / "weather.yaml").write_text(
            "workflows:\n"
            "  weather-brief:\n"
            "    steps:\n"
            "      - name: weather\n"
            "        tool: get_weather\n"
            "        arguments:\n"
            "          location: \"{{input.city}}\"\n"
        )

        app = ToolValet(Settings(workflows_path=str(tmp_path)), identity=identity)

        assert "weather-brief" in app.workflows

    def test_identity_backend_selection(self):
        memory = build_identity_client(Settings())
        outbound = build_identity_client(Settings(identity=IdentitySettings(
            backend="outbound", project_id="P1", management_key="K1",
        )))

        assert isinstance(memory, MemoryIdentityClient)
        assert isinstance(outbound, OutboundAppIdentityClient)


class TestOperations:

    @pytest.mark.asyncio
    async def test_dispatch(self, app):
        result = await app.dispatch("get_weather", {"location": "Paris"}, user_id="u1")
        assert isinstance(result, Success)

    @pytest.mark.asyncio
    async def test_dispatch_wire(self, app):
        payload = await app.dispatch_wire("crm_deals", {}, user_id="u1")

        assert payload["success"] is False
        assert payload["ui"]["service"] == "custom-crm"
        assert payload["ui"]["requiredScopes"] == ["deals:read"]

    @pytest.mark.asyncio
    async def test_run_workflow(self, app):
        result = await app.run_workflow("deal-summary", {"deal_id": "d1"}, user_id="u1")

        assert isinstance(result.connection_required, ConnectionRequired)

    @pytest.mark.asyncio
    async def test_run_unknown_workflow(self, app):
        with pytest.raises(UnknownWorkflowError):
            await app.run_workflow("nope", {}, user_id="u1")

    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self, app, identity):
        url = await app.connect("u1", "google-docs")
        assert "redirect_url=http%3A%2F%2Flocalhost%3A8000%2Foauth%2Fcallback" in url

        identity.put_token("u1", "google-docs", "tok", scopes=["x"])
        statuses = {s.provider: s.connected for s in await app.connections("u1")}
        assert statuses == {"custom-crm": False, "google-calendar": False, "google-docs": True, "slack": False}

        assert await app.disconnect("u1", "google-docs") is True

    @pytest.mark.asyncio
    async def test_check_scopes_uses_tool_requirements(self, app, identity):
        identity.put_token("u1", "google-calendar", "tok", scopes=["https://www.googleapis.com/auth/calendar.readonly"])

        listing = await app.check_scopes("u1", "google-calendar", tool="calendar_list_events")
        assert isinstance(listing, Success)

        creating = await app.check_scopes("u1", "google-calendar", tool="calendar_create_event")
        assert isinstance(creating, ConnectionRequired)
        assert creating.missing_scopes == {"https://www.googleapis.com/auth/calendar"}
        assert creating.message == "Calendar write access is required to schedule events"

    @pytest.mark.asyncio
    async def test_check_scopes_identity_down(self, providers):
        identity = AsyncMock()
        identity.get_token.side_effect = IdentityError("connection refused")
        app = ToolValet(Settings(), identity=identity, transport=providers.transport)

        result = await app.check_scopes("u1", "slack")

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.PROVIDER_ERROR
        assert result.message.startswith("Could not check Slack access")
