"""
Structured audit logging for tool dispatch and workflow runs.

Produces JSON log entries via Python's standard logging module under
the ``toolvalet.audit`` logger name. Each entry includes a timestamp,
event_type, user_id, and event-specific fields. Argument values are
never logged, only their keys.

Usage::

    audit = AuditLogger()
    audit.log_dispatch(
        tool_name="crm_deals",
        user_id="u1",
        correlation_id="c0ffee",
        outcome="connection_required",
        duration_ms=12,
        arg_keys=["deal_id"],
        provider="custom-crm",
    )
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

_audit_logger = logging.getLogger("toolvalet.audit")


class AuditLogger:
    """Structured audit logger for tool and workflow outcomes."""

    def _emit(self, event_type: str, fields: Dict[str, Any]) -> None:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
        }
        entry.update(fields)
        _audit_logger.info(json.dumps(entry, default=str))

    def log_dispatch(
        self,
        tool_name: str,
        user_id: str,
        correlation_id: str,
        outcome: str,
        duration_ms: int,
        arg_keys: Iterable[str] = (),
        error: Optional[str] = None,
        provider: Optional[str] = None,
        missing_scopes: Optional[List[str]] = None,
    ) -> None:
        """Log one dispatch outcome: success, connection_required or an ErrorKind value."""
        fields: Dict[str, Any] = {
            "user_id": user_id,
            "tool_name": tool_name,
            "correlation_id": correlation_id,
            "outcome": outcome,
            "duration_ms": duration_ms,
            "arg_keys": sorted(arg_keys),
        }
        if error is not None:
            fields["error"] = error
        if provider is not None:
            fields["provider"] = provider
        if missing_scopes is not None:
            fields["missing_scopes"] = missing_scopes
        self._emit("tool_dispatch", fields)

    def log_workflow_step(
        self,
        workflow: str,
        run_id: str,
        step: str,
        user_id: str,
        success: bool,
        critical: bool,
        duration_ms: int,
        error: Optional[str] = None,
    ) -> None:
        """Log a single workflow step outcome."""
        fields: Dict[str, Any] = {
            "user_id": user_id,
            "workflow": workflow,
            "run_id": run_id,
            "step": step,
            "success": success,
            "critical": critical,
            "duration_ms": duration_ms,
        }
        if error is not None:
            fields["error"] = error
        self._emit("workflow_step", fields)

    def log_workflow_result(
        self,
        workflow: str,
        run_id: str,
        user_id: str,
        success: bool,
        steps_run: int,
        duration_ms: int,
        error: Optional[str] = None,
    ) -> None:
        """Log the end of a workflow run."""
        fields: Dict[str, Any] = {
            "user_id": user_id,
            "workflow": workflow,
            "run_id": run_id,
            "success": success,
            "steps_run": steps_run,
            "duration_ms": duration_ms,
        }
        if error is not None:
            fields["error"] = error
        self._emit("workflow_result", fields)
