"""
Calendar tools backed by Google Calendar.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from dateutil import parser as date_parser

from ...auth.models import AccessToken
from ...constants import PROVIDER_GOOGLE_CALENDAR, SCOPE_CALENDAR, SCOPE_CALENDAR_READONLY
from ...result import ToolResult
from ...tools.base import BaseTool
from ...tools.models import ParameterSpec, ToolCategory, ToolDescriptor, ValidationError
from .google import GoogleCalendarClient

logger = logging.getLogger(__name__)


def _parse_datetime(value: str) -> datetime:
    """ISO-8601 to an aware datetime; naive values are taken as UTC."""
    parsed = date_parser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CalendarListEventsTool(BaseTool):
    """Upcoming events, defaulting to the next seven days."""

    descriptor = ToolDescriptor(
        name="calendar_list_events",
        description="List events from the user's Google Calendar within a time range.",
        parameters=(
            ParameterSpec("time_min", "string", "Start of the range (ISO-8601). Defaults to now.", format="date-time"),
            ParameterSpec("time_max", "string", "End of the range (ISO-8601). Defaults to seven days after start.", format="date-time"),
            ParameterSpec("max_results", "integer", "Maximum number of events to return", minimum=1, maximum=50),
            ParameterSpec("query", "string", "Free text filter on event fields"),
        ),
        scopes={PROVIDER_GOOGLE_CALENDAR: {SCOPE_CALENDAR_READONLY}},
        category=ToolCategory.CALENDAR,
    )
    connect_message = "Calendar access is required to view your events"

    def check(self, args: Mapping[str, Any]) -> Optional[ValidationError]:
        if args.get("time_min") and args.get("time_max"):
            if _parse_datetime(args["time_max"]) <= _parse_datetime(args["time_min"]):
                return ValidationError.single("time_max", "must be after time_min")
        return None

    async def execute(self, user_id: str, args: Mapping[str, Any]) -> ToolResult:
        time_min = _parse_datetime(args["time_min"]) if args.get("time_min") else None
        time_max = _parse_datetime(args["time_max"]) if args.get("time_max") else None

        async def operation(token: AccessToken):
            async with GoogleCalendarClient(token, self.config) as calendar:
                events = await calendar.list_events(
                    time_min=time_min,
                    time_max=time_max,
                    max_results=args.get("max_results", 10),
                    query=args.get("query"),
                )
            return {"events": events, "count": len(events)}

        return await self.with_token(user_id, PROVIDER_GOOGLE_CALENDAR, operation)


class CalendarCreateEventTool(BaseTool):
    """Create an event, optionally with a Google Meet link."""

    descriptor = ToolDescriptor(
        name="calendar_create_event",
        description="Create an event on the user's Google Calendar, optionally with a Google Meet link.",
        parameters=(
            ParameterSpec("summary", "string", "Event title", required=True, min_length=1, max_length=1024),
            ParameterSpec("start", "string", "Start time (ISO-8601)", required=True, format="date-time"),
            ParameterSpec("end", "string", "End time (ISO-8601)", required=True, format="date-time"),
            ParameterSpec("description", "string", "Event description"),
            ParameterSpec("location", "string", "Event location"),
            ParameterSpec("attendees", "array", "Attendee email addresses", items="string", format="email"),
            ParameterSpec("time_zone", "string", "IANA time zone for start and end, e.g. Europe/Berlin"),
            ParameterSpec("add_google_meet", "boolean", "Attach a Google Meet conference"),
        ),
        scopes={PROVIDER_GOOGLE_CALENDAR: {SCOPE_CALENDAR}},
        category=ToolCategory.CALENDAR,
    )
    connect_message = "Calendar write access is required to schedule events"

    def check(self, args: Mapping[str, Any]) -> Optional[ValidationError]:
        if _parse_datetime(args["end"]) <= _parse_datetime(args["start"]):
            return ValidationError.single("end", "must be after start")
        return None

    async def execute(self, user_id: str, args: Mapping[str, Any]) -> ToolResult:
        async def operation(token: AccessToken):
            async with GoogleCalendarClient(token, self.config) as calendar:
                event = await calendar.create_event(
                    summary=args["summary"],
                    start=_parse_datetime(args["start"]),
                    end=_parse_datetime(args["end"]),
                    description=args.get("description"),
                    location=args.get("location"),
                    attendees=args.get("attendees"),
                    time_zone=args.get("time_zone") or "UTC",
                    add_meet=bool(args.get("add_google_meet")),
                )
            return {"event": event}

        return await self.with_token(user_id, PROVIDER_GOOGLE_CALENDAR, operation)
