"""Google Calendar integration"""

from .google import GoogleCalendarClient
from .tools import CalendarCreateEventTool, CalendarListEventsTool

__all__ = [
    "GoogleCalendarClient",
    "CalendarListEventsTool",
    "CalendarCreateEventTool",
]
