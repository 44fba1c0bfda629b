from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from notetaker.deps import get_session
from notetaker.models.app_settings import CalendarSettings, GeminiSettings, GroqSettings
from notetaker.repositories.settings import get_app_settings, save_app_settings


router = APIRouter(prefix="/settings", tags=["settings"])


class SettingsUpdate(BaseModel):
    groq: GroqSettings | None = None
    gemini: GeminiSettings | None = None
    calendar: CalendarSettings | None = None
    provider: str | None = None
    language: str | None = None


@router.get("")
def read_settings(session: Session = Depends(get_session)) -> Dict[str, Any]:
    return get_app_settings(session)


@router.post("")
def update_settings(body: SettingsUpdate, session: Session = Depends(get_session)) -> Dict[str, Any]:
    # Partial update: only sections present in the request body are touched
    patch = body.model_dump(exclude_unset=True)
    return save_app_settings(session, patch)
