"""Tests for the toolvalet HTTP API"""

import pytest
from fastapi.testclient import TestClient

from toolvalet import ToolValet
from toolvalet.config import Settings
from toolvalet.server import app as server_app
from toolvalet.server.app import api, set_app


@pytest.fixture
def toolvalet_app(identity, providers):
    app = ToolValet(Settings(crm_api_url="https://crm.test/api"), identity=identity, transport=providers.transport)
    set_app(app)
    yield app
    set_app(None)


@pytest.fixture
def client(toolvalet_app):
    return TestClient(api)


class TestToolRoutes:

    def test_list_tools(self, client):
        response = client.get("/api/tools")

        assert response.status_code == 200
        names = {t["name"] for t in response.json()}
        assert "crm_deals" in names
        assert all(set(t) == {"name", "description", "parameters"} for t in response.json())

    def test_call_tool_success(self, client):
        response = client.post("/api/tools/get_weather", json={"user_id": "u1", "args": {"location": "Rome"}})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["weather"]["location"] == "Rome"

    def test_call_tool_connection_required(self, client):
        response = client.post("/api/tools/crm_deals", json={"user_id": "u1", "args": {"deal_id": "d1"}})

        body = response.json()
        assert body["success"] is False
        assert body["error"] == "CRM is not connected"
        assert body["ui"] == {
            "type": "connection_required",
            "service": "custom-crm",
            "message": "CRM access is required to view deals data",
            "connectButton": {"text": "Connect CRM", "action": "connection://custom-crm"},
            "requiredScopes": ["deals:read"],
        }

    def test_unknown_tool_is_a_result(self, client):
        response = client.post("/api/tools/send_fax", json={"user_id": "u1"})

        assert response.status_code == 200
        assert response.json()["errorKind"] == "unknown_tool"

    def test_user_id_required(self, client):
        response = client.post("/api/tools/get_weather", json={"user_id": "", "args": {"location": "Rome"}})
        assert response.status_code == 400


class TestWorkflowRoutes:

    def test_list_workflows(self, client):
        assert client.get("/api/workflows").json()[0]["name"] == "deal-summary"

    def test_run_workflow_connection_required(self, client):
        response = client.post("/api/workflows/deal-summary", json={"user_id": "u1", "args": {"deal_id": "d1"}})

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is False
        assert body["steps"][0]["name"] == "fetch-deal"
        assert body["ui"]["service"] == "custom-crm"

    def test_unknown_workflow(self, client):
        response = client.post("/api/workflows/nope", json={"user_id": "u1"})
        assert response.status_code == 404


class TestOAuthRoutes:

    def test_connections(self, client, identity):
        identity.put_token("u1", "custom-crm", "tok", scopes=["deals:read"])

        response = client.get("/api/oauth/connections", params={"user_id": "u1"})

        connections = {c["provider"]: c for c in response.json()["connections"]}
        assert connections["custom-crm"]["connected"] is True
        assert connections["custom-crm"]["grantedScopes"] == ["deals:read"]
        assert connections["google-docs"]["connected"] is False

    def test_connect(self, client):
        response = client.post("/api/oauth/connect", json={
            "user_id": "u1",
            "provider": "google-calendar",
            "scopes": ["https://www.googleapis.com/auth/calendar"],
            "state": "abc",
        })

        assert response.status_code == 200
        assert "app_id=google-calendar" in response.json()["url"]

    def test_connect_unknown_provider(self, client):
        response = client.post("/api/oauth/connect", json={"user_id": "u1", "provider": "salesforce"})
        assert response.status_code == 404

    def test_disconnect(self, client, identity):
        identity.put_token("u1", "custom-crm", "tok")

        response = client.post("/api/oauth/disconnect", json={"user_id": "u1", "provider": "custom-crm"})

        assert response.json() == {"success": True, "disconnected": True}

    def test_validate_scopes_granted(self, client, identity):
        identity.put_token("u1", "custom-crm", "tok", scopes=["deals:read", "contacts:read"])

        response = client.post("/api/oauth/validate-scopes", json={
            "user_id": "u1",
            "provider": "custom-crm",
            "tool": "crm_deals",
        })

        assert response.status_code == 200
        assert response.json() == {"success": True, "scopes": ["contacts:read", "deals:read"]}

    def test_validate_scopes_missing(self, client, identity):
        identity.put_token("u1", "slack", "xoxp", scopes=["chat:write"])

        response = client.post("/api/oauth/validate-scopes", json={"user_id": "u1", "provider": "slack"})

        assert response.status_code == 403
        body = response.json()
        assert body["success"] is False
        assert body["ui"]["type"] == "connection_required"
        assert body["ui"]["connectButton"] == {"text": "Connect Slack", "action": "connection://slack"}
        assert body["ui"]["requiredScopes"] == ["channels:manage", "users:read"]

    def test_validate_explicit_scopes(self, client):
        response = client.post("/api/oauth/validate-scopes", json={
            "user_id": "u1",
            "provider": "google-calendar",
            "scopes": ["https://www.googleapis.com/auth/calendar"],
        })

        assert response.status_code == 403
        assert response.json()["ui"]["requiredScopes"] == ["https://www.googleapis.com/auth/calendar"]

    @pytest.mark.parametrize("body", [
        {"user_id": "u1", "provider": "salesforce"},
        {"user_id": "u1", "provider": "custom-crm", "tool": "send_fax"},
    ])
    def test_validate_scopes_unknown_names(self, client, body):
        response = client.post("/api/oauth/validate-scopes", json=body)
        assert response.status_code == 404

    def test_validate_scopes_needs_user(self, client):
        response = client.post("/api/oauth/validate-scopes", json={"user_id": "", "provider": "slack"})
        assert response.status_code == 400


class TestApiKey:

    def test_key_enforced_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(server_app, "_API_KEY", "s3cret")

        assert client.get("/api/tools").status_code == 401
        assert client.get("/api/tools", headers={"X-API-Key": "s3cret"}).status_code == 200
        assert client.get("/api/tools", headers={"Authorization": "Bearer s3cret"}).status_code == 200


class TestNotConfigured:

    def test_returns_503_when_app_cannot_load(self, monkeypatch, tmp_path):
        bad = tmp_path / "config.yaml"
        bad.write_text("http_timeout: -1\n")
        monkeypatch.setenv("TOOLVALET_CONFIG", str(bad))
        set_app(None)

        response = TestClient(api).get("/api/tools")

        assert response.status_code == 503
