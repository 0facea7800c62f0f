"""
toolvalet Dispatcher - Runs one model-issued tool call

Flow per invocation:
1. registry lookup         -> Failure(UNKNOWN_TOOL) on miss
2. blank user_id or
   tool.validate(args)     -> Failure(INVALID_ARGUMENTS), execute never called
3. tool.execute(user, args)-> any exception becomes Failure(TOOL_CRASHED)
4. result returned as-is; ConnectionRequired is forwarded verbatim

No retries happen here. ConnectionRequired needs the user; a provider
Failure is for the caller (workflow or UI) to retry or not.
"""

import logging
import time
from typing import Any, Mapping, Optional

from ..audit_logger import AuditLogger
from ..connection import connection_ui
from ..result import (
    ConnectionRequired,
    ErrorKind,
    Failure,
    Success,
    ToolResult,
    is_tool_result,
)
from ..streaming.models import ActivityStep, ProgressSink, ToolActivity, safe_emit
from .models import ToolInvocation
from .registry import ToolRegistry

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Resolves, validates and executes tool invocations.

    Usage:
        dispatcher = Dispatcher(registry)
        result = await dispatcher.dispatch(
            ToolInvocation(tool_name="crm_deals", user_id="u1", arguments={"deal_id": "d1"})
        )
    """

    def __init__(self, registry: ToolRegistry, audit: Optional[AuditLogger] = None):
        self.registry = registry
        self.audit = audit or AuditLogger()

    async def dispatch(
        self,
        invocation: ToolInvocation,
        progress: Optional[ProgressSink] = None,
    ) -> ToolResult:
        """
        Execute one invocation and normalize its outcome.

        Never raises for anything a tool does; the returned ToolResult is
        the only channel for outcomes.
        """
        started = time.monotonic()
        result = await self._run(invocation, progress)
        duration_ms = int((time.monotonic() - started) * 1000)
        self._audit(invocation, result, duration_ms)
        await safe_emit(progress, self._finished_activity(invocation, result))
        return result

    async def call(
        self,
        tool_name: str,
        arguments: Optional[Mapping[str, Any]],
        user_id: str,
        correlation_id: Optional[str] = None,
        progress: Optional[ProgressSink] = None,
    ) -> ToolResult:
        """Convenience wrapper building the ToolInvocation."""
        invocation = ToolInvocation.from_call(tool_name, arguments, user_id, correlation_id)
        return await self.dispatch(invocation, progress=progress)

    async def _run(
        self,
        invocation: ToolInvocation,
        progress: Optional[ProgressSink],
    ) -> ToolResult:
        tool = self.registry.find(invocation.tool_name)
        if tool is None:
            logger.warning(f"Unknown tool requested: {invocation.tool_name}")
            return Failure(
                kind=ErrorKind.UNKNOWN_TOOL,
                message=f"Unknown tool '{invocation.tool_name}'",
            )

        if not (invocation.user_id or "").strip():
            logger.warning(f"Tool '{tool.name}' called without a user_id")
            return Failure(
                kind=ErrorKind.INVALID_ARGUMENTS,
                message="user_id is required",
                details=[{"field": "user_id", "message": "is required"}],
            )

        arguments = invocation.arguments
        try:
            validation_error = tool.validate(arguments)
        except Exception as e:
            logger.error(f"Tool '{tool.name}' validation crashed: {e}", exc_info=True)
            return Failure(kind=ErrorKind.TOOL_CRASHED, message=f"Error validating {tool.name}: {e}")

        if validation_error is not None:
            logger.info(f"Invalid arguments for '{tool.name}': {validation_error.message}")
            return Failure(
                kind=ErrorKind.INVALID_ARGUMENTS,
                message=f"Invalid arguments for {tool.name}: {validation_error.message}",
                details=list(validation_error.details),
            )

        await safe_emit(progress, ToolActivity(
            correlation_id=invocation.correlation_id,
            tool=tool.name,
            step=ActivityStep.STARTING,
            title=f"Running {tool.name}",
            description=tool.descriptor.description,
        ))

        try:
            result = await tool.execute(invocation.user_id, dict(arguments))
        except Exception as e:
            logger.error(f"Tool '{tool.name}' execution failed: {e}", exc_info=True)
            return Failure(kind=ErrorKind.TOOL_CRASHED, message=f"Error executing {tool.name}: {e}")

        if not is_tool_result(result):
            logger.error(f"Tool '{tool.name}' returned {type(result).__name__}, not a ToolResult")
            return Failure(
                kind=ErrorKind.TOOL_CRASHED,
                message=f"Tool {tool.name} returned an invalid result",
            )
        return result

    def _audit(self, invocation: ToolInvocation, result: ToolResult, duration_ms: int) -> None:
        arg_keys = list(invocation.arguments.keys()) if isinstance(invocation.arguments, Mapping) else []
        if isinstance(result, Success):
            self.audit.log_dispatch(
                tool_name=invocation.tool_name,
                user_id=invocation.user_id,
                correlation_id=invocation.correlation_id,
                outcome="success",
                duration_ms=duration_ms,
                arg_keys=arg_keys,
            )
        elif isinstance(result, ConnectionRequired):
            self.audit.log_dispatch(
                tool_name=invocation.tool_name,
                user_id=invocation.user_id,
                correlation_id=invocation.correlation_id,
                outcome="connection_required",
                duration_ms=duration_ms,
                arg_keys=arg_keys,
                provider=result.provider,
                missing_scopes=sorted(result.missing_scopes),
            )
        else:
            self.audit.log_dispatch(
                tool_name=invocation.tool_name,
                user_id=invocation.user_id,
                correlation_id=invocation.correlation_id,
                outcome=result.kind.value,
                duration_ms=duration_ms,
                arg_keys=arg_keys,
                error=result.message,
            )

    def _finished_activity(self, invocation: ToolInvocation, result: ToolResult) -> ToolActivity:
        if isinstance(result, Success):
            return ToolActivity(
                correlation_id=invocation.correlation_id,
                tool=invocation.tool_name,
                step=ActivityStep.COMPLETED,
                title=f"{invocation.tool_name} completed",
            )
        if isinstance(result, ConnectionRequired):
            return ToolActivity(
                correlation_id=invocation.correlation_id,
                tool=invocation.tool_name,
                step=ActivityStep.CONNECTION_REQUIRED,
                title=f"{result.display_name} Connection Required",
                description=result.message,
                data=connection_ui(result),
            )
        return ToolActivity(
            correlation_id=invocation.correlation_id,
            tool=invocation.tool_name,
            step=ActivityStep.ERROR,
            title=f"{invocation.tool_name} failed",
            description=result.message,
        )
