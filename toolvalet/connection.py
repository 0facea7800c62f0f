"""
Connection Signal Protocol

Builds ConnectionRequired results and converts every ToolResult to and
from the JSON shape the conversation layer consumes:

    {"success": true, "data": ...}

    {"success": false, "error": "...",
     "ui": {"type": "connection_required",
            "service": "<provider id>",
            "message": "...",
            "connectButton": {"text": "Connect <Name>", "action": "connection://<provider id>"},
            "requiredScopes": [...]}}

    {"success": false, "error": "...", "errorKind": "..."}

The same ``ui`` block is emitted whether the signal came from a single
tool call or was propagated by the workflow engine.
"""

from typing import Any, Dict, Iterable, Mapping, Optional

from .auth.catalog import ProviderCatalog
from .auth.models import AuthorizationFailure, FailureReason, scope_set
from .constants import CONNECTION_ACTION_SCHEME, CONNECTION_REQUIRED_TYPE
from .result import ConnectionRequired, ErrorKind, Failure, Success, ToolResult, match_result

CONNECT_BUTTON_PREFIX = "Connect "


def connection_action(provider: str) -> str:
    """Machine-actionable re-authorization reference for ``provider``."""
    return f"{CONNECTION_ACTION_SCHEME}{provider}"


def parse_action(action: str) -> str:
    """
    Provider id from a connection action URI.

    Raises:
        ValueError: ``action`` is not a connection URI
    """
    if not action or not action.startswith(CONNECTION_ACTION_SCHEME):
        raise ValueError(f"Not a connection action: {action!r}")
    provider = action[len(CONNECTION_ACTION_SCHEME):].strip("/")
    if not provider:
        raise ValueError(f"Connection action has no provider: {action!r}")
    return provider


def connection_required(
    provider: str,
    missing_scopes: Optional[Iterable[str]] = None,
    message: Optional[str] = None,
    provider_name: Optional[str] = None,
    error: Optional[str] = None,
) -> ConnectionRequired:
    """Build a ConnectionRequired with the standard message and action."""
    name = provider_name or provider
    return ConnectionRequired(
        provider=provider,
        missing_scopes=scope_set(missing_scopes),
        message=message or f"Please connect your {name} to continue.",
        action=connection_action(provider),
        provider_name=name,
        error=error or f"{name} access required",
    )


def from_authorization_failure(
    failure: AuthorizationFailure,
    catalog: Optional[ProviderCatalog] = None,
    message: Optional[str] = None,
) -> ConnectionRequired:
    """
    Translate a broker failure into the connection signal.

    Only NOT_CONNECTED and INSUFFICIENT_SCOPE are user-remediable;
    callers must route UNAVAILABLE elsewhere.
    """
    if not failure.needs_user_action:
        raise ValueError(f"{failure.reason.value} is not remediated by connecting")

    name = catalog.display_name(failure.provider) if catalog else failure.provider
    if message is None:
        if failure.reason == FailureReason.INSUFFICIENT_SCOPE:
            message = f"{name} needs additional permissions. Please reconnect to grant them."
        else:
            message = f"Please connect your {name} to continue."
    return connection_required(
        provider=failure.provider,
        missing_scopes=failure.missing_scopes,
        message=message,
        provider_name=name,
        error=failure.message or None,
    )


# ─── Wire format ───


def _success_wire(result: Success) -> Dict[str, Any]:
    return {"success": True, "data": result.data}


def _connection_wire(result: ConnectionRequired) -> Dict[str, Any]:
    return {
        "success": False,
        "error": result.error or result.message,
        "ui": connection_ui(result),
    }


def _failure_wire(result: Failure) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "success": False,
        "error": result.message or result.kind.value,
        "errorKind": result.kind.value,
    }
    if result.details:
        payload["details"] = result.details
    return payload


def connection_ui(result: ConnectionRequired) -> Dict[str, Any]:
    """The ``ui`` block for a ConnectionRequired result."""
    return {
        "type": CONNECTION_REQUIRED_TYPE,
        "service": result.provider,
        "message": result.message,
        "connectButton": {
            "text": f"{CONNECT_BUTTON_PREFIX}{result.display_name}",
            "action": result.action or connection_action(result.provider),
        },
        "requiredScopes": sorted(result.missing_scopes),
    }


def to_wire(result: ToolResult) -> Dict[str, Any]:
    """JSON-serializable form of any ToolResult."""
    return match_result(
        result,
        on_success=_success_wire,
        on_connection_required=_connection_wire,
        on_failure=_failure_wire,
    )


def from_wire(payload: Mapping[str, Any]) -> ToolResult:
    """
    Parse the wire shape back into a ToolResult.

    Raises:
        ValueError: payload matches none of the three shapes
    """
    if not isinstance(payload, Mapping) or "success" not in payload:
        raise ValueError("Tool result payload must be an object with a 'success' field")

    if payload["success"] is True:
        return Success(data=payload.get("data"))

    ui = payload.get("ui")
    if isinstance(ui, Mapping) and ui.get("type") == CONNECTION_REQUIRED_TYPE:
        provider = ui.get("service")
        if not provider:
            raise ValueError("connection_required payload has no 'service'")
        button = ui.get("connectButton") or {}
        text = button.get("text") or ""
        name = text[len(CONNECT_BUTTON_PREFIX):] if text.startswith(CONNECT_BUTTON_PREFIX) else ""
        return ConnectionRequired(
            provider=provider,
            missing_scopes=scope_set(ui.get("requiredScopes") or []),
            message=ui.get("message") or "",
            action=button.get("action") or connection_action(provider),
            provider_name=name,
            error=payload.get("error") or "",
        )

    if payload["success"] is False:
        kind_value = payload.get("errorKind", ErrorKind.PROVIDER_ERROR.value)
        try:
            kind = ErrorKind(kind_value)
        except ValueError:
            raise ValueError(f"Unknown errorKind: {kind_value!r}") from None
        return Failure(
            kind=kind,
            message=payload.get("error") or "",
            details=payload.get("details"),
        )

    raise ValueError(f"Invalid 'success' value: {payload['success']!r}")
