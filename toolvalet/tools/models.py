"""
toolvalet Tool Models - Data structures for the tool system
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from ..auth.models import scope_set


class ToolCategory(str, Enum):
    """Tool categories used to group capabilities"""
    CRM = "crm"
    CALENDAR = "calendar"
    DOCUMENTS = "documents"
    MESSAGING = "messaging"
    UTILITY = "utility"


PARAMETER_TYPES = ("string", "integer", "number", "boolean", "array", "object")


@dataclass(frozen=True)
class ParameterSpec:
    """
    One named argument of a tool.

    Attributes:
        name: Argument name as the model sends it
        type: JSON type (string, integer, number, boolean, array, object)
        description: Shown to the model
        required: Whether the argument must be present
        enum: Allowed values
        minimum / maximum: Numeric bounds (inclusive)
        min_length / max_length: String length bounds
        items: Element JSON type for arrays
        format: "date-time" or "email" for strings
    """
    name: str
    type: str = "string"
    description: str = ""
    required: bool = False
    enum: Optional[Tuple[Any, ...]] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    items: Optional[str] = None
    format: Optional[str] = None

    def __post_init__(self):
        if self.type not in PARAMETER_TYPES:
            raise ValueError(f"Parameter '{self.name}' has unsupported type '{self.type}'")
        if self.items is not None and self.items not in PARAMETER_TYPES:
            raise ValueError(f"Parameter '{self.name}' has unsupported item type '{self.items}'")

    def json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.minimum is not None:
            schema["minimum"] = self.minimum
        if self.maximum is not None:
            schema["maximum"] = self.maximum
        if self.min_length is not None:
            schema["minLength"] = self.min_length
        if self.max_length is not None:
            schema["maxLength"] = self.max_length
        if self.items is not None:
            schema["items"] = {"type": self.items}
        if self.format is not None:
            schema["format"] = self.format
        return schema


@dataclass(frozen=True)
class ToolDescriptor:
    """
    Immutable description of a tool, created once at registration.

    Attributes:
        name: Unique tool identifier (e.g. "crm_deals")
        description: What the tool does (shown to the model)
        parameters: Argument specs
        scopes: provider id -> scopes the tool needs from that provider
            (empty when no delegated access is needed)
        category: Tool category for organization

    Example:
        ToolDescriptor(
            name="crm_deals",
            description="Get all deals or a specific deal by ID",
            parameters=(ParameterSpec("deal_id", "string", "Deal to fetch"),),
            scopes={"custom-crm": {"deals:read"}},
            category=ToolCategory.CRM,
        )
    """
    name: str
    description: str
    parameters: Tuple[ParameterSpec, ...] = ()
    scopes: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    category: ToolCategory = ToolCategory.UTILITY

    def __post_init__(self):
        if not self.name:
            raise ValueError("Tool name is required")
        params = tuple(self.parameters)
        names = [p.name for p in params]
        if len(names) != len(set(names)):
            raise ValueError(f"Tool '{self.name}' declares a parameter twice")
        frozen_scopes = MappingProxyType({
            provider: scope_set(scopes) for provider, scopes in dict(self.scopes).items()
        })
        object.__setattr__(self, "parameters", params)
        object.__setattr__(self, "scopes", frozen_scopes)

    @property
    def providers(self) -> List[str]:
        return list(self.scopes.keys())

    def scopes_for(self, provider: str) -> FrozenSet[str]:
        return self.scopes.get(provider, frozenset())

    def parameter(self, name: str) -> Optional[ParameterSpec]:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    def json_schema(self) -> Dict[str, Any]:
        """JSON Schema of the arguments object"""
        return {
            "type": "object",
            "properties": {p.name: p.json_schema() for p in self.parameters},
            "required": [p.name for p in self.parameters if p.required],
            "additionalProperties": False,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Capability advertisement entry: {name, description, parameters}"""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.json_schema(),
        }

    def to_openai_schema(self) -> Dict[str, Any]:
        """Convert to OpenAI function calling format"""
        return {
            "type": "function",
            "function": self.to_dict(),
        }


def _new_correlation_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ToolInvocation:
    """
    One model-issued tool call, alive for the duration of one dispatch.

    Attributes:
        tool_name: Registered tool name
        user_id: Caller identity
        arguments: Raw arguments object from the model
        correlation_id: Ties progress events to the UI element showing them
    """
    tool_name: str
    user_id: str
    arguments: Mapping[str, Any] = field(default_factory=dict)
    correlation_id: str = field(default_factory=_new_correlation_id)

    @classmethod
    def from_call(
        cls,
        tool_name: str,
        arguments: Optional[Mapping[str, Any]],
        user_id: str,
        correlation_id: Optional[str] = None,
    ) -> "ToolInvocation":
        return cls(
            tool_name=tool_name,
            user_id=user_id,
            arguments=dict(arguments or {}),
            correlation_id=correlation_id or _new_correlation_id(),
        )


@dataclass(frozen=True)
class ValidationError:
    """Argument validation result; ``details`` lists one entry per bad field."""
    details: Tuple[Dict[str, str], ...]

    @property
    def message(self) -> str:
        return "; ".join(f"{d['field']}: {d['message']}" for d in self.details)

    @property
    def fields(self) -> List[str]:
        return [d["field"] for d in self.details]

    @classmethod
    def single(cls, field_name: str, message: str) -> "ValidationError":
        return cls(details=({"field": field_name, "message": message},))

    @classmethod
    def collect(cls, problems: Iterable[Tuple[str, str]]) -> Optional["ValidationError"]:
        details = tuple({"field": f, "message": m} for f, m in problems)
        return cls(details=details) if details else None
