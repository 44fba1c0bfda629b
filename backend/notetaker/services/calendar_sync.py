"""Outlook calendar sync through Microsoft Graph.

The MSAL application is owned by a ``CalendarSession`` value the caller keeps
and passes in; it is created on first use and reused afterwards.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import msal
import requests

from notetaker.errors import ConfigurationError, PermanentServiceError, TransientServiceError, classify_http_error
from notetaker.models.meeting import MeetingStatus, as_utc, utc_now
from notetaker.models.schemas import MeetingUpdate

logger = logging.getLogger("notetaker.calendar")

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
CALENDAR_SCOPES = ["Calendars.Read", "User.Read"]


class CalendarSession:
    def __init__(
        self,
        client_id: Optional[str],
        authority: str = "https://login.microsoftonline.com/common",
        scopes: Optional[List[str]] = None,
        app_factory: Callable[..., Any] = msal.PublicClientApplication,
    ) -> None:
        if not client_id:
            raise ConfigurationError("Client ID required")
        self.client_id = client_id
        self.authority = authority
        self.scopes = list(scopes or CALENDAR_SCOPES)
        self._app_factory = app_factory
        self._app: Any = None

    @property
    def app(self) -> Any:
        if self._app is None:
            self._app = self._app_factory(self.client_id, authority=self.authority)
        return self._app

    def acquire_token(self) -> str:
        """Silent acquisition for the first cached account, interactive otherwise."""
        result: Optional[Dict[str, Any]] = None
        accounts = self.app.get_accounts()
        if accounts:
            result = self.app.acquire_token_silent(self.scopes, account=accounts[0])
        if not result or "access_token" not in result:
            result = self.app.acquire_token_interactive(scopes=self.scopes)
        if not result or "access_token" not in result:
            detail = (result or {}).get("error_description") or "no token returned"
            raise PermanentServiceError(f"Failed to acquire access token: {detail}")
        return str(result["access_token"])


def _parse_graph_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    # Graph returns 7 fractional digits; fromisoformat accepts at most 6
    text = value.rstrip("Z")
    if "." in text:
        head, frac = text.split(".", 1)
        text = f"{head}.{frac[:6]}"
    try:
        # calendarview returns UTC unless a Prefer: outlook.timezone header is sent
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        logger.warning("Unparseable event start %r", value)
        return None


def event_to_meeting(event: Dict[str, Any], now: datetime) -> MeetingUpdate:
    start = event.get("start") or {}
    return MeetingUpdate(
        id=str(event["id"]),
        title=str(event.get("subject") or "Untitled Meeting"),
        created_at=now,
        scheduled_at=_parse_graph_datetime(start.get("dateTime")),
        duration_sec=0,
        status=MeetingStatus.SCHEDULED,
    )


def fetch_outlook_events(
    session: CalendarSession,
    lookahead_days: int = 7,
    http: Optional[requests.Session] = None,
    timeout: float = 30.0,
    now: Optional[datetime] = None,
) -> List[MeetingUpdate]:
    token = session.acquire_token()
    http = http or requests.Session()
    start = now or utc_now()
    end = start + timedelta(days=lookahead_days)
    params = {
        "startDateTime": start.isoformat(),
        "endDateTime": end.isoformat(),
        "$select": "subject,start,end,location",
    }
    try:
        response = http.get(
            f"{GRAPH_BASE_URL}/me/calendarview",
            params=params,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise TransientServiceError(f"Network error fetching calendar events: {exc}") from exc
    if not response.ok:
        raise classify_http_error(response.status_code, response.text, service="Microsoft Graph")

    created = utc_now()
    events = response.json().get("value") or []
    meetings = [event_to_meeting(e, created) for e in events if isinstance(e, dict) and e.get("id")]
    logger.info("Fetched %d calendar event(s)", len(meetings))
    return meetings
