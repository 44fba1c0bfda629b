from __future__ import annotations

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from notetaker.config import Settings
from notetaker.deps import get_session, get_settings
from notetaker.models.schemas import MeetingDetail
from notetaker.repositories.meetings import MeetingsRepository
from notetaker.repositories.settings import resolve_outlook_client_id
from notetaker.services.calendar_sync import CalendarSession, fetch_outlook_events

logger = logging.getLogger("notetaker.api")


router = APIRouter(prefix="/calendar", tags=["calendar"])


def get_calendar_session(
    request: Request,
    settings: Settings = Depends(get_settings),
    session: Session = Depends(get_session),
) -> CalendarSession:
    """One CalendarSession per client id, owned by the application instance."""
    client_id = resolve_outlook_client_id(settings, session)
    cache: Dict[str, CalendarSession] = request.app.state.calendar_sessions
    if client_id and client_id in cache:
        return cache[client_id]
    calendar = CalendarSession(client_id, authority=settings.calendar_authority)
    cache[calendar.client_id] = calendar
    return calendar


@router.post("/sync")
def sync_calendar(
    settings: Settings = Depends(get_settings),
    session: Session = Depends(get_session),
    calendar: CalendarSession = Depends(get_calendar_session),
) -> List[MeetingDetail]:
    events = fetch_outlook_events(calendar, lookahead_days=settings.calendar_lookahead_days)
    added = MeetingsRepository(session).insert_missing(events)
    logger.info("Calendar sync added %d meeting(s)", len(added))
    return added
