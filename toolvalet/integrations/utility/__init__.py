"""Local tools with no provider access"""

from .tools import ComposeDealSummaryTool, ParseDateTool, WeatherTool

__all__ = ["WeatherTool", "ParseDateTool", "ComposeDealSummaryTool"]
