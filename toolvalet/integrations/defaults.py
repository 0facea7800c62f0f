"""
Default tool registry: every built-in integration, registered and frozen.
"""

import logging
from typing import Optional

from ..auth.broker import TokenBroker
from ..tools.registry import ToolRegistry
from .calendar import CalendarCreateEventTool, CalendarListEventsTool
from .crm import CRMContactsTool, CRMDealsTool, DealStakeholdersTool
from .documents import CreateDocumentTool
from .http import IntegrationConfig
from .slack import SlackTool
from .utility import ComposeDealSummaryTool, ParseDateTool, WeatherTool

logger = logging.getLogger(__name__)

PROVIDER_TOOLS = (
    CRMContactsTool,
    CRMDealsTool,
    DealStakeholdersTool,
    CalendarListEventsTool,
    CalendarCreateEventTool,
    CreateDocumentTool,
    SlackTool,
)

LOCAL_TOOLS = (
    WeatherTool,
    ParseDateTool,
    ComposeDealSummaryTool,
)


def build_default_registry(
    broker: TokenBroker,
    config: Optional[IntegrationConfig] = None,
    freeze: bool = True,
) -> ToolRegistry:
    """
    Register every built-in tool.

    Pass ``freeze=False`` to add more tools before freezing the registry
    yourself.
    """
    config = config or IntegrationConfig()
    registry = ToolRegistry()
    for tool_class in PROVIDER_TOOLS:
        registry.register(tool_class(broker=broker, config=config))
    for tool_class in LOCAL_TOOLS:
        registry.register(tool_class(config=config))
    if freeze:
        registry.freeze()
    logger.info(f"Built default tool registry with {len(registry)} tools")
    return registry
