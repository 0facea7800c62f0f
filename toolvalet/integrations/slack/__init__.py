"""Slack integration"""

from .client import SlackAPIError, SlackClient
from .tools import SlackTool

__all__ = [
    "SlackAPIError",
    "SlackClient",
    "SlackTool",
]
