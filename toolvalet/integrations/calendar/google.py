"""
Google Calendar client - Calendar API v3 over ProviderClient.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

from ...auth.models import AccessToken
from ...constants import PROVIDER_GOOGLE_CALENDAR
from ..http import IntegrationConfig, ProviderClient

logger = logging.getLogger(__name__)


def _event_time(value: Dict[str, Any]) -> Optional[str]:
    raw = value.get("dateTime") or value.get("date")
    if not raw:
        return None
    return date_parser.parse(raw).isoformat()


def _normalize_event(item: Dict[str, Any]) -> Dict[str, Any]:
    conference = item.get("conferenceData") or {}
    meet_link = item.get("hangoutLink") or next(
        (
            ep.get("uri") for ep in conference.get("entryPoints", [])
            if ep.get("entryPointType") == "video"
        ),
        None,
    )
    return {
        "event_id": item.get("id"),
        "summary": item.get("summary", "No title"),
        "description": item.get("description", ""),
        "start": _event_time(item.get("start", {})),
        "end": _event_time(item.get("end", {})),
        "location": item.get("location", ""),
        "attendees": [a.get("email", "") for a in item.get("attendees", [])],
        "organizer": item.get("organizer", {}).get("email", ""),
        "status": item.get("status", "confirmed"),
        "html_link": item.get("htmlLink", ""),
        "meet_link": meet_link,
    }


class GoogleCalendarClient:
    """Lists and creates events on a user's Google Calendar."""

    def __init__(self, token: AccessToken, config: IntegrationConfig):
        self._http = ProviderClient(
            PROVIDER_GOOGLE_CALENDAR,
            config.google_calendar_api_url,
            token,
            timeout=config.timeout,
            transport=config.transport,
        )

    async def __aenter__(self) -> "GoogleCalendarClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self._http.__aexit__(*exc)

    async def list_events(
        self,
        time_min: Optional[datetime] = None,
        time_max: Optional[datetime] = None,
        max_results: int = 10,
        query: Optional[str] = None,
        calendar_id: str = "primary",
    ) -> List[Dict[str, Any]]:
        if not time_min:
            time_min = datetime.now(timezone.utc)
        if not time_max:
            time_max = time_min + timedelta(days=7)

        params: Dict[str, Any] = {
            "timeMin": time_min.isoformat(),
            "timeMax": time_max.isoformat(),
            "maxResults": max_results,
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        if query:
            params["q"] = query

        data = await self._http.get(f"/calendars/{calendar_id}/events", params=params) or {}
        events = [_normalize_event(item) for item in data.get("items", [])]
        logger.info(f"Retrieved {len(events)} events from Google Calendar")
        return events

    async def create_event(
        self,
        summary: str,
        start: datetime,
        end: datetime,
        description: Optional[str] = None,
        location: Optional[str] = None,
        attendees: Optional[List[str]] = None,
        time_zone: str = "UTC",
        add_meet: bool = False,
        request_id: Optional[str] = None,
        calendar_id: str = "primary",
    ) -> Dict[str, Any]:
        event_body: Dict[str, Any] = {
            "summary": summary,
            "start": {"dateTime": start.isoformat(), "timeZone": time_zone},
            "end": {"dateTime": end.isoformat(), "timeZone": time_zone},
        }
        if description:
            event_body["description"] = description
        if location:
            event_body["location"] = location
        if attendees:
            event_body["attendees"] = [{"email": email} for email in attendees]

        params = None
        if add_meet:
            event_body["conferenceData"] = {
                "createRequest": {
                    "requestId": request_id or f"meet-{int(start.timestamp())}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            }
            params = {"conferenceDataVersion": 1}

        data = await self._http.post(f"/calendars/{calendar_id}/events", json=event_body, params=params) or {}
        logger.info(f"Created event: {summary}")
        return _normalize_event(data)
