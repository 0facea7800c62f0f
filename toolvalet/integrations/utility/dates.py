"""
Relative date parsing for scheduling requests.

Understands "today", "tomorrow", "yesterday", "next week", "in 3 days",
weekday names ("friday", "next Friday") and anything python-dateutil
can parse. Times accept "3pm", "15:00", "2:30 PM" and the words
morning/afternoon/evening/night.
"""

import re
from datetime import datetime, tzinfo
from typing import Optional, Tuple

from dateutil import parser as date_parser
from dateutil import tz
from dateutil.relativedelta import FR, MO, SA, SU, TH, TU, WE, relativedelta

WEEKDAYS = {
    "monday": MO,
    "tuesday": TU,
    "wednesday": WE,
    "thursday": TH,
    "friday": FR,
    "saturday": SA,
    "sunday": SU,
}

TIME_OF_DAY = {
    "morning": (9, 0),
    "noon": (12, 0),
    "afternoon": (14, 0),
    "evening": (18, 0),
    "night": (20, 0),
}

_IN_N_UNITS = re.compile(r"\bin\s+(\d+)\s+(day|week|month)s?\b")


class DateParseError(ValueError):
    """The date or time text could not be understood"""


def resolve_timezone(name: Optional[str]) -> tzinfo:
    if not name or name.upper() == "UTC":
        return tz.UTC
    zone = tz.gettz(name)
    if zone is None:
        raise DateParseError(f"Unknown time zone '{name}'")
    return zone


def parse_time(text: Optional[str]) -> Tuple[int, int]:
    """(hour, minute) for a time expression; noon when empty."""
    if not text:
        return 12, 0
    lowered = text.strip().lower()
    if lowered in TIME_OF_DAY:
        return TIME_OF_DAY[lowered]
    try:
        parsed = date_parser.parse(lowered, default=datetime(2000, 1, 1, 0, 0))
    except (ValueError, OverflowError) as e:
        raise DateParseError(f"Could not parse time: {text}") from e
    return parsed.hour, parsed.minute


def parse_relative_date(
    date_text: str,
    time_text: Optional[str] = None,
    base: Optional[datetime] = None,
    zone: Optional[tzinfo] = None,
) -> datetime:
    """
    Resolve ``date_text`` against ``base`` (now, in ``zone``) and set the
    time of day from ``time_text``.

    Raises:
        DateParseError: Neither the relative rules nor dateutil understood the text
    """
    zone = zone or tz.UTC
    if base is None:
        base = datetime.now(zone)
    elif base.tzinfo is None:
        base = base.replace(tzinfo=zone)
    else:
        base = base.astimezone(zone)
    lowered = date_text.strip().lower()

    match = _IN_N_UNITS.search(lowered)
    if "today" in lowered:
        day = base
    elif "tomorrow" in lowered:
        day = base + relativedelta(days=1)
    elif "yesterday" in lowered:
        day = base - relativedelta(days=1)
    elif "next week" in lowered:
        day = base + relativedelta(weeks=1)
    elif match:
        amount, unit = int(match.group(1)), match.group(2)
        day = base + relativedelta(**{f"{unit}s": amount})
    else:
        weekday = next((WEEKDAYS[name] for name in WEEKDAYS if name in lowered), None)
        if weekday is not None:
            # Always a future day; "friday" on a Friday means next week
            day = base + relativedelta(days=1, weekday=weekday)
        else:
            try:
                day = date_parser.parse(date_text, default=base.replace(tzinfo=None))
            except (ValueError, OverflowError) as e:
                raise DateParseError(f"Could not parse date: {date_text}") from e
            day = day.replace(tzinfo=zone) if day.tzinfo is None else day.astimezone(zone)

    hour, minute = parse_time(time_text)
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)
