"""
toolvalet Result - The outcome vocabulary of tool execution

A ToolResult is exactly one of:
- Success(data)
- ConnectionRequired(provider, missing_scopes, message, action)
- Failure(kind, message)

Nothing else crosses the Tool -> Dispatcher -> Workflow boundaries:
tools translate their exceptions into one of these variants and the
dispatcher catches whatever a tool forgot to translate.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure categories surfaced to the conversation layer"""
    INVALID_ARGUMENTS = "invalid_arguments"  # caller/schema mismatch, never retried
    UNKNOWN_TOOL = "unknown_tool"            # registry miss, integration bug
    TOOL_CRASHED = "tool_crashed"            # unexpected defect inside a tool
    PROVIDER_ERROR = "provider_error"        # non-auth error from the external API


@dataclass(frozen=True)
class Success:
    """Tool completed; ``data`` is the JSON-serializable payload."""
    data: Any = None

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True)
class ConnectionRequired:
    """
    The operation cannot proceed until the user grants provider scopes.

    Attributes:
        provider: Provider id (e.g. "custom-crm")
        missing_scopes: Exactly the scopes to request; empty means
            "reconnect, scopes unknown"
        message: User-facing explanation
        action: Provider-scoped URI ("connection://custom-crm") the UI
            uses to start re-authorization
        provider_name: Human provider name for the connect button
        error: Short machine-ish error string for logs and the wire ``error`` field
    """
    provider: str
    missing_scopes: FrozenSet[str] = frozenset()
    message: str = ""
    action: str = ""
    provider_name: str = ""
    error: str = ""

    @property
    def success(self) -> bool:
        return False

    @property
    def display_name(self) -> str:
        return self.provider_name or self.provider


@dataclass(frozen=True)
class Failure:
    """Tool did not complete for a reason reconnecting would not fix."""
    kind: ErrorKind
    message: str = ""
    details: Optional[List[Dict[str, Any]]] = field(default=None, compare=False)

    @property
    def success(self) -> bool:
        return False


ToolResult = Union[Success, ConnectionRequired, Failure]

RESULT_TYPES = (Success, ConnectionRequired, Failure)


def is_tool_result(value: Any) -> bool:
    return isinstance(value, RESULT_TYPES)


def match_result(
    result: ToolResult,
    on_success: Callable[[Success], T],
    on_connection_required: Callable[[ConnectionRequired], T],
    on_failure: Callable[[Failure], T],
) -> T:
    """
    Exhaustive dispatch over the three variants.

    Raises:
        TypeError: ``result`` is not a ToolResult
    """
    if isinstance(result, Success):
        return on_success(result)
    if isinstance(result, ConnectionRequired):
        return on_connection_required(result)
    if isinstance(result, Failure):
        return on_failure(result)
    raise TypeError(f"Not a ToolResult: {type(result).__name__}")


def error_text(result: ToolResult) -> Optional[str]:
    """Single-line error description, None for Success."""
    return match_result(
        result,
        on_success=lambda r: None,
        on_connection_required=lambda r: r.error or r.message,
        on_failure=lambda r: r.message or r.kind.value,
    )
