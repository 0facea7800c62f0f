"""Tests for toolvalet.tools.dispatcher

Tests cover:
- Unknown tools and invalid arguments never reach execute or the network
- Crashes and malformed returns become TOOL_CRASHED
- ConnectionRequired is forwarded unchanged
- Progress events and audit entries
"""

import json
import logging
from unittest.mock import MagicMock

import pytest

from toolvalet.audit_logger import AuditLogger
from toolvalet.connection import connection_required
from toolvalet.result import ErrorKind, Failure, Success
from toolvalet.streaming.models import ActivityRecorder, ActivityStep
from toolvalet.tools.dispatcher import Dispatcher
from toolvalet.tools.models import ParameterSpec, ToolInvocation, ValidationError
from toolvalet.tools.registry import ToolRegistry


def _dispatcher(*tools, audit=None) -> Dispatcher:
    registry = ToolRegistry()
    for tool in tools:
        registry.register(tool)
    registry.freeze()
    return Dispatcher(registry, audit=audit)


class TestDispatch:

    @pytest.mark.asyncio
    async def test_success(self, make_tool, value_param):
        tool = make_tool("echo", Success(data={"echo": "x"}), parameters=[value_param])

        result = await _dispatcher(tool).call("echo", {"value": "x"}, user_id="u1")

        assert result == Success(data={"echo": "x"})
        assert tool.calls == [{"value": "x"}]

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        result = await _dispatcher().call("missing", {}, user_id="u1")

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.UNKNOWN_TOOL
        assert "missing" in result.message

    @pytest.mark.asyncio
    async def test_invalid_arguments_never_execute(self, make_tool, value_param):
        tool = make_tool("echo", Success(), parameters=[value_param])

        result = await _dispatcher(tool).call("echo", {"value": 3, "extra": True}, user_id="u1")

        assert result.kind == ErrorKind.INVALID_ARGUMENTS
        assert [d["field"] for d in result.details] == ["value", "extra"]
        assert tool.calls == []

    @pytest.mark.asyncio
    async def test_invalid_arguments_make_no_provider_call(self, dispatcher, identity, providers):
        identity.put_token("u1", "custom-crm", "tok", scopes=["deals:read"])

        result = await dispatcher.call("crm_deals", {"stage": "won"}, user_id="u1")

        assert result.kind == ErrorKind.INVALID_ARGUMENTS
        assert identity.lookups == 0
        assert providers.requests == []

    @pytest.mark.parametrize("user_id", ["", "   "])
    @pytest.mark.asyncio
    async def test_blank_user_id_is_invalid_arguments(self, dispatcher, identity, user_id, caplog):
        with caplog.at_level(logging.ERROR, logger="toolvalet.tools.dispatcher"):
            provider_tool = await dispatcher.dispatch(ToolInvocation("crm_deals", user_id, {}))
            local_tool = await dispatcher.dispatch(ToolInvocation("get_weather", user_id, {"location": "Rome"}))

        for result in (provider_tool, local_tool):
            assert isinstance(result, Failure)
            assert result.kind == ErrorKind.INVALID_ARGUMENTS
            assert result.message == "user_id is required"
        assert identity.lookups == 0
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]

    @pytest.mark.asyncio
    async def test_tool_check_runs_after_schema(self, make_tool, value_param):
        tool = make_tool("echo", Success(), parameters=[value_param])
        tool.check = lambda args: ValidationError.single("value", "must not be 'bad'") if args.get("value") == "bad" else None

        result = await _dispatcher(tool).call("echo", {"value": "bad"}, user_id="u1")

        assert result.kind == ErrorKind.INVALID_ARGUMENTS
        assert result.message == "Invalid arguments for echo: value: must not be 'bad'"

    @pytest.mark.asyncio
    async def test_crash_becomes_tool_crashed(self, make_tool):
        tool = make_tool("boom", RuntimeError("kaput"))

        result = await _dispatcher(tool).call("boom", {}, user_id="u1")

        assert result.kind == ErrorKind.TOOL_CRASHED
        assert "kaput" in result.message

    @pytest.mark.asyncio
    async def test_validation_crash_becomes_tool_crashed(self, make_tool):
        tool = make_tool("fragile", Success())

        def broken_check(args):
            raise KeyError("deal")

        tool.check = broken_check

        result = await _dispatcher(tool).call("fragile", {}, user_id="u1")

        assert result.kind == ErrorKind.TOOL_CRASHED
        assert tool.calls == []

    @pytest.mark.asyncio
    async def test_non_result_return_becomes_tool_crashed(self, make_tool):
        tool = make_tool("sloppy", {"success": True})

        result = await _dispatcher(tool).call("sloppy", {}, user_id="u1")

        assert result.kind == ErrorKind.TOOL_CRASHED

    @pytest.mark.asyncio
    async def test_connection_required_forwarded_verbatim(self, make_tool):
        signal = connection_required("custom-crm", ["deals:read"], provider_name="CRM")
        tool = make_tool("needs_crm", signal)

        result = await _dispatcher(tool).call("needs_crm", {}, user_id="u1")

        assert result is signal

    @pytest.mark.asyncio
    async def test_dispatch_takes_an_invocation(self, make_tool):
        tool = make_tool("echo", Success(data=1))
        invocation = ToolInvocation(tool_name="echo", user_id="u1", correlation_id="c-1")

        assert await _dispatcher(tool).dispatch(invocation) == Success(data=1)


class TestProgress:

    @pytest.mark.asyncio
    async def test_success_events(self, make_tool):
        recorder = ActivityRecorder()
        tool = make_tool("echo", Success())

        await _dispatcher(tool).call("echo", {}, user_id="u1", correlation_id="msg-7", progress=recorder)

        assert recorder.steps() == [ActivityStep.STARTING, ActivityStep.COMPLETED]
        assert {e.correlation_id for e in recorder.events} == {"msg-7"}
        assert recorder.events[0].to_dict()["toolActivity"]["tool"] == "echo"

    @pytest.mark.asyncio
    async def test_connection_required_event_carries_ui(self, make_tool):
        recorder = ActivityRecorder()
        tool = make_tool("needs_docs", connection_required("google-docs", ["d"], provider_name="Google Docs"))

        await _dispatcher(tool).call("needs_docs", {}, user_id="u1", progress=recorder)

        final = recorder.events[-1]
        assert final.step == ActivityStep.CONNECTION_REQUIRED
        assert final.title == "Google Docs Connection Required"
        assert final.data["service"] == "google-docs"

    @pytest.mark.asyncio
    async def test_invalid_arguments_only_report_error(self, make_tool):
        recorder = ActivityRecorder()
        tool = make_tool("echo", Success())

        await _dispatcher(tool).call("echo", {"nope": 1}, user_id="u1", progress=recorder)

        assert recorder.steps() == [ActivityStep.ERROR]

    @pytest.mark.asyncio
    async def test_broken_sink_does_not_change_outcome(self, make_tool):
        class BrokenSink:
            async def emit(self, activity):
                raise ConnectionResetError("client went away")

        tool = make_tool("echo", Success(data="ok"))

        result = await _dispatcher(tool).call("echo", {}, user_id="u1", progress=BrokenSink())

        assert result == Success(data="ok")


class TestAudit:

    @pytest.mark.asyncio
    async def test_outcomes_are_audited(self, make_tool):
        audit = MagicMock(spec=AuditLogger)
        dispatcher = _dispatcher(
            make_tool("ok", Success()),
            make_tool("needs_crm", connection_required("custom-crm", ["deals:read"])),
            audit=audit,
        )

        await dispatcher.call("ok", {}, user_id="u1")
        await dispatcher.call("needs_crm", {}, user_id="u1")
        await dispatcher.call("missing", {}, user_id="u1")

        outcomes = [c.kwargs["outcome"] for c in audit.log_dispatch.call_args_list]
        assert outcomes == ["success", "connection_required", "unknown_tool"]
        assert audit.log_dispatch.call_args_list[1].kwargs["missing_scopes"] == ["deals:read"]

    @pytest.mark.asyncio
    async def test_audit_entry_logs_argument_keys_not_values(self, make_tool, caplog):
        tool = make_tool("echo", Success(), parameters=[ParameterSpec("value", "string")])

        with caplog.at_level(logging.INFO, logger="toolvalet.audit"):
            await _dispatcher(tool).call("echo", {"value": "secret-text"}, user_id="u1")

        entries = [json.loads(r.getMessage()) for r in caplog.records if r.name == "toolvalet.audit"]
        assert entries[0]["event_type"] == "tool_dispatch"
        assert entries[0]["arg_keys"] == ["value"]
        assert "secret-text" not in caplog.text
