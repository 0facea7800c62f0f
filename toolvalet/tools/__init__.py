"""
toolvalet Tools - Tool contract, registry and dispatch

Provides:
- ToolDescriptor / ParameterSpec: Describe a tool and its arguments
- BaseTool: Contract every integration implements
- ToolRegistry: Register and look up tools
- Dispatcher: Validate and execute model-issued tool calls
"""

from .models import (
    ParameterSpec,
    ToolCategory,
    ToolDescriptor,
    ToolInvocation,
    ValidationError,
)
from .validation import validate_arguments
from .base import BaseTool
from .registry import (
    DuplicateToolError,
    RegistryFrozenError,
    ToolNotFoundError,
    ToolRegistry,
)
from .dispatcher import Dispatcher

__all__ = [
    # Models
    "ParameterSpec",
    "ToolCategory",
    "ToolDescriptor",
    "ToolInvocation",
    "ValidationError",
    "validate_arguments",
    # Contract
    "BaseTool",
    # Registry
    "DuplicateToolError",
    "RegistryFrozenError",
    "ToolNotFoundError",
    "ToolRegistry",
    # Dispatch
    "Dispatcher",
]
