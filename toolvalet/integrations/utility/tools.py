"""
Local tools that need no provider access.
"""

import hashlib
import logging
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from dateutil import parser as date_parser

from ...result import ErrorKind, Failure, Success, ToolResult
from ...tools.base import BaseTool
from ...tools.models import ParameterSpec, ToolCategory, ToolDescriptor, ValidationError
from .dates import DateParseError, parse_relative_date, resolve_timezone

logger = logging.getLogger(__name__)

WEATHER_CONDITIONS = ("Sunny", "Partly Cloudy", "Cloudy", "Rainy")


class WeatherTool(BaseTool):
    """
    Sample weather report.

    No weather provider is wired in; readings are derived from a hash of
    the location so the same place always reports the same weather.
    """

    descriptor = ToolDescriptor(
        name="get_weather",
        description="Get the current weather for a location",
        parameters=(
            ParameterSpec("location", "string", "The city and/or country to get the weather for", required=True, min_length=1),
            ParameterSpec("units", "string", "Temperature units", enum=("celsius", "fahrenheit")),
        ),
        category=ToolCategory.UTILITY,
    )

    async def execute(self, user_id: str, args: Mapping[str, Any]) -> ToolResult:
        location = args["location"].strip()
        seed = hashlib.sha256(location.lower().encode("utf-8")).hexdigest()
        rng = random.Random(seed)

        celsius = 15 + rng.randint(0, 15)
        weather = {
            "location": location,
            "temperature": celsius,
            "units": "celsius",
            "condition": rng.choice(WEATHER_CONDITIONS),
            "humidity": 60 + rng.randint(0, 30),
            "wind": 5 + rng.randint(0, 20),
        }
        if args.get("units") == "fahrenheit":
            weather["temperature"] = round(celsius * 9 / 5 + 32)
            weather["units"] = "fahrenheit"
        return Success(data={"weather": weather})


class ParseDateTool(BaseTool):
    descriptor = ToolDescriptor(
        name="parse_date",
        description='Parse a relative date (e.g. "tomorrow", "next Friday") and time into an exact date and time',
        parameters=(
            ParameterSpec("date_string", "string", 'The date to parse, e.g. "tomorrow", "next Friday"', required=True, min_length=1),
            ParameterSpec("time_string", "string", 'The time to parse, e.g. "3pm", "15:00". Defaults to noon.'),
            ParameterSpec("timezone", "string", "IANA time zone, e.g. America/New_York. Defaults to UTC."),
            ParameterSpec("base_date", "string", "Reference date-time for relative expressions. Defaults to now.", format="date-time"),
        ),
        category=ToolCategory.UTILITY,
    )

    def check(self, args: Mapping[str, Any]) -> Optional[ValidationError]:
        try:
            resolve_timezone(args.get("timezone"))
        except DateParseError as e:
            return ValidationError.single("timezone", str(e))
        return None

    async def execute(self, user_id: str, args: Mapping[str, Any]) -> ToolResult:
        zone = resolve_timezone(args.get("timezone"))
        base = date_parser.isoparse(args["base_date"]) if args.get("base_date") else None
        try:
            parsed = parse_relative_date(args["date_string"], args.get("time_string"), base=base, zone=zone)
        except DateParseError as e:
            logger.info(f"parse_date could not resolve '{args['date_string']}': {e}")
            return Failure(kind=ErrorKind.INVALID_ARGUMENTS, message=str(e))

        return Success(data={
            "iso": parsed.isoformat(),
            "date": parsed.strftime("%Y-%m-%d"),
            "time": parsed.strftime("%H:%M"),
            "weekday": parsed.strftime("%A"),
            "formatted": parsed.strftime("%A, %B %d, %Y at %I:%M %p"),
            "timezone": args.get("timezone") or "UTC",
        })


def _format_amount(amount: Any) -> str:
    if isinstance(amount, bool):
        return str(amount)
    if isinstance(amount, int):
        return f"${amount:,}"
    if isinstance(amount, float):
        return f"${amount:,.2f}"
    return str(amount) if amount is not None else "n/a"


def _format_date(value: Any) -> str:
    if not value:
        return "n/a"
    try:
        return date_parser.parse(str(value)).strftime("%B %d, %Y")
    except (ValueError, OverflowError):
        return str(value)


class ComposeDealSummaryTool(BaseTool):
    """Render a CRM deal (and optionally its stakeholders) as a summary document body."""

    descriptor = ToolDescriptor(
        name="compose_deal_summary",
        description="Compose a written summary of a CRM deal, ready to be saved as a document",
        parameters=(
            ParameterSpec("deal", "object", "The deal record as returned by crm_deals", required=True),
            ParameterSpec("stakeholders", "array", "Stakeholders as returned by crm_deal_stakeholders", items="object"),
            ParameterSpec("title", "string", "Document title. Defaults to '<deal name> - Deal Summary'."),
        ),
        category=ToolCategory.UTILITY,
    )

    def check(self, args: Mapping[str, Any]) -> Optional[ValidationError]:
        if not args["deal"].get("name"):
            return ValidationError.single("deal", "must include a name")
        return None

    async def execute(self, user_id: str, args: Mapping[str, Any]) -> ToolResult:
        deal: Mapping[str, Any] = args["deal"]
        stakeholders: List[Mapping[str, Any]] = list(args.get("stakeholders") or [])
        title = args.get("title") or f"{deal['name']} - Deal Summary"

        lines: List[str] = [
            f"# Deal Summary: {deal['name']}",
            "",
            "## Deal Overview",
            f"**Amount**: {_format_amount(deal.get('amount'))}",
            f"**Stage**: {deal.get('stage', 'n/a')}",
            f"**Probability**: {deal.get('probability', 'n/a')}%",
            f"**Close Date**: {_format_date(deal.get('closeDate') or deal.get('close_date'))}",
            "",
            "## Description",
            deal.get("description") or "No description provided.",
            "",
        ]

        if stakeholders:
            lines.append("## Stakeholders")
            for person in stakeholders:
                detail = person.get("company") or person.get("position") or ""
                suffix = f", {detail}" if detail else ""
                lines.append(f"- **{person.get('name', 'Unknown')}** ({person.get('role', 'Contact')}{suffix})")
            lines.append("")

        activities = deal.get("activities") or []
        if activities:
            lines.append("## Recent Activities")
            for activity in activities:
                lines.append(f"- **{activity.get('type', 'activity')}** ({_format_date(activity.get('date'))})")
                if activity.get("description"):
                    lines.append(f"  {activity['description']}")
            lines.append("")

        lines.extend([
            "## Notes",
            deal.get("notes") or "No additional notes.",
            "",
            "## Summary Generated",
            f"This summary was automatically generated on {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}",
        ])

        summary: Dict[str, Any] = {
            "title": title,
            "content": "\n".join(lines),
            "deal_id": deal.get("id"),
            "stakeholder_count": len(stakeholders),
        }
        return Success(data=summary)
