"""Tests for toolvalet.result and toolvalet.connection

Tests cover:
- Result variants and exhaustive matching
- ConnectionRequired construction from broker failures
- The JSON wire shape, both directions, and malformed payloads
"""

import pytest

from toolvalet.auth.catalog import ProviderCatalog
from toolvalet.auth.models import AuthorizationFailure, FailureReason
from toolvalet.connection import (
    connection_action,
    connection_required,
    connection_ui,
    from_authorization_failure,
    from_wire,
    parse_action,
    to_wire,
)
from toolvalet.result import (
    ConnectionRequired,
    ErrorKind,
    Failure,
    Success,
    error_text,
    match_result,
)


class TestResults:
    def test_success_flags(self):
        assert Success(data=1).success
        assert not Failure(kind=ErrorKind.PROVIDER_ERROR).success
        assert not ConnectionRequired(provider="custom-crm").success

    def test_match_result_dispatches_on_variant(self):
        def label(result):
            return match_result(
                result,
                on_success=lambda r: "ok",
                on_connection_required=lambda r: f"connect {r.provider}",
                on_failure=lambda r: r.kind.value,
            )

        assert label(Success()) == "ok"
        assert label(ConnectionRequired(provider="google-docs")) == "connect google-docs"
        assert label(Failure(kind=ErrorKind.UNKNOWN_TOOL)) == "unknown_tool"

    def test_match_result_rejects_other_values(self):
        with pytest.raises(TypeError):
            match_result({"success": True}, lambda r: r, lambda r: r, lambda r: r)

    def test_error_text(self):
        assert error_text(Success()) is None
        assert error_text(Failure(kind=ErrorKind.TOOL_CRASHED)) == "tool_crashed"
        assert error_text(Failure(kind=ErrorKind.PROVIDER_ERROR, message="503")) == "503"
        assert error_text(connection_required("custom-crm", provider_name="CRM")) == "CRM access required"


class TestConnectionRequired:
    def test_defaults(self):
        result = connection_required("custom-crm", ["deals:read"], provider_name="CRM")

        assert result.action == "connection://custom-crm"
        assert result.message == "Please connect your CRM to continue."
        assert result.missing_scopes == {"deals:read"}

    def test_from_not_connected_failure(self):
        failure = AuthorizationFailure(
            provider="google-calendar",
            reason=FailureReason.NOT_CONNECTED,
            missing_scopes=frozenset({"cal"}),
        )

        result = from_authorization_failure(failure, catalog=ProviderCatalog.default())

        assert result.provider_name == "Google Calendar"
        assert result.message == "Please connect your Google Calendar to continue."
        assert result.missing_scopes == {"cal"}

    def test_from_insufficient_scope_failure(self):
        failure = AuthorizationFailure(
            provider="google-docs",
            reason=FailureReason.INSUFFICIENT_SCOPE,
            missing_scopes=frozenset({"drive"}),
        )

        result = from_authorization_failure(failure, catalog=ProviderCatalog.default())

        assert result.message == "Google Docs needs additional permissions. Please reconnect to grant them."

    def test_unavailable_is_not_a_connection_problem(self):
        failure = AuthorizationFailure(provider="custom-crm", reason=FailureReason.UNAVAILABLE)

        with pytest.raises(ValueError):
            from_authorization_failure(failure)

    def test_actions(self):
        assert connection_action("google-docs") == "connection://google-docs"
        assert parse_action("connection://google-docs") == "google-docs"
        with pytest.raises(ValueError):
            parse_action("https://example.com")
        with pytest.raises(ValueError):
            parse_action("connection://")


class TestWireFormat:
    def test_success(self):
        assert to_wire(Success(data={"id": 1})) == {"success": True, "data": {"id": 1}}

    def test_failure(self):
        payload = to_wire(Failure(
            kind=ErrorKind.INVALID_ARGUMENTS,
            message="bad",
            details=[{"field": "deal_id", "message": "is required"}],
        ))

        assert payload == {
            "success": False,
            "error": "bad",
            "errorKind": "invalid_arguments",
            "details": [{"field": "deal_id", "message": "is required"}],
        }

    def test_connection_required(self):
        result = connection_required(
            "custom-crm",
            ["deals:read", "contacts:read"],
            message="CRM access is required to view deals data",
            provider_name="CRM",
        )

        assert to_wire(result) == {
            "success": False,
            "error": "CRM access required",
            "ui": {
                "type": "connection_required",
                "service": "custom-crm",
                "message": "CRM access is required to view deals data",
                "connectButton": {"text": "Connect CRM", "action": "connection://custom-crm"},
                "requiredScopes": ["contacts:read", "deals:read"],
            },
        }

    def test_connection_required_parses_back(self):
        result = connection_required("google-docs", ["d"], provider_name="Google Docs")

        assert from_wire(to_wire(result)) == result

    def test_failure_without_kind_defaults_to_provider_error(self):
        result = from_wire({"success": False, "error": "upstream down"})

        assert result == Failure(kind=ErrorKind.PROVIDER_ERROR, message="upstream down")

    def test_ui_block_is_identical_for_tool_and_workflow(self):
        result = connection_required("custom-crm", ["deals:read"], provider_name="CRM")
        assert to_wire(result)["ui"] == connection_ui(result)

    @pytest.mark.parametrize("payload", [
        {},
        {"data": 1},
        {"success": "yes"},
        {"success": False, "errorKind": "no_such_kind"},
        {"success": False, "ui": {"type": "connection_required"}},
        ["success", True],
    ])
    def test_malformed_payloads(self, payload):
        with pytest.raises(ValueError):
            from_wire(payload)
