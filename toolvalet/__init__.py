"""
toolvalet - Authorization-aware tool dispatch and workflows for chat assistants

Example:
    from toolvalet import ToolValet

    app = ToolValet("config.yaml")
    result = await app.dispatch("crm_deals", {"deal_id": "d1"}, user_id="u1")
"""

__version__ = "0.1.0"

from .result import (
    ConnectionRequired,
    ErrorKind,
    Failure,
    Success,
    ToolResult,
    match_result,
)
from .connection import from_wire, to_wire
from .auth import MemoryIdentityClient, ProviderCatalog, TokenBroker
from .tools import BaseTool, Dispatcher, ParameterSpec, ToolDescriptor, ToolRegistry
from .workflow import WorkflowDefinition, WorkflowEngine, WorkflowResult, WorkflowStepSpec
from .config import ConfigError, Settings, load_settings
from .app import ToolValet

__all__ = [
    "__version__",
    # Application
    "ToolValet",
    "Settings",
    "load_settings",
    "ConfigError",
    # Results
    "ToolResult",
    "Success",
    "ConnectionRequired",
    "Failure",
    "ErrorKind",
    "match_result",
    "to_wire",
    "from_wire",
    # Auth
    "TokenBroker",
    "ProviderCatalog",
    "MemoryIdentityClient",
    # Tools
    "BaseTool",
    "ToolDescriptor",
    "ParameterSpec",
    "ToolRegistry",
    "Dispatcher",
    # Workflows
    "WorkflowEngine",
    "WorkflowDefinition",
    "WorkflowStepSpec",
    "WorkflowResult",
]
