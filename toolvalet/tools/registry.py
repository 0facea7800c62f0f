"""
toolvalet Tool Registry - Catalog of every tool the model can call

Populated once during process initialization, then frozen. Request
handling only reads it, so lookups need no locking. The registry is
passed explicitly to whatever needs it; tests build their own.
"""

import logging
from typing import Dict, Iterator, List, Optional

from .base import BaseTool
from .models import ToolCategory, ToolDescriptor

logger = logging.getLogger(__name__)


class DuplicateToolError(ValueError):
    """Raised when two tools are registered under the same name"""


class RegistryFrozenError(RuntimeError):
    """Raised when registering after initialization finished"""


class ToolNotFoundError(KeyError):
    """Raised by ToolRegistry.get for an unregistered name"""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown tool '{self.name}'"


class ToolRegistry:
    """
    Maps tool name -> tool instance.

    Usage:
        registry = ToolRegistry()
        registry.register(CRMDealsTool(broker=broker, config=config))
        registry.freeze()

        tool = registry.get("crm_deals")
        schemas = registry.schemas()
    """

    def __init__(self):
        self._tools: Dict[str, BaseTool] = {}
        self._frozen = False

    def register(self, tool: BaseTool) -> None:
        """
        Register a tool.

        Raises:
            DuplicateToolError: A tool with the same name is already registered
            RegistryFrozenError: The registry has been frozen
        """
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register '{tool.name}': registry is frozen")
        if tool.name in self._tools:
            raise DuplicateToolError(
                f"Tool '{tool.name}' already registered by {type(self._tools[tool.name]).__name__}"
            )
        self._tools[tool.name] = tool
        logger.info(f"Registered tool: {tool.name} ({tool.descriptor.category.value})")

    def freeze(self) -> None:
        """End of initialization; the registry is read-only afterwards."""
        self._frozen = True
        logger.info(f"Tool registry frozen with {len(self._tools)} tools")

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> BaseTool:
        """
        Raises:
            ToolNotFoundError: No tool with that name
        """
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def find(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(name)

    def list(self) -> List[ToolDescriptor]:
        """Descriptors in registration order"""
        return [tool.descriptor for tool in self._tools.values()]

    def schemas(self) -> List[Dict]:
        """Capability advertisement: [{name, description, parameters}]"""
        return [tool.descriptor.to_dict() for tool in self._tools.values()]

    def openai_schemas(self) -> List[Dict]:
        return [tool.descriptor.to_openai_schema() for tool in self._tools.values()]

    def by_category(self, category: ToolCategory) -> List[ToolDescriptor]:
        return [t.descriptor for t in self._tools.values() if t.descriptor.category == category]

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[BaseTool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __repr__(self) -> str:
        return f"<ToolRegistry tools={len(self._tools)} frozen={self._frozen}>"
