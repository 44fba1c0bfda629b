"""Pydantic shapes exchanged between the pipeline, the store and the API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from notetaker.models.meeting import MeetingStatus


class Segment(BaseModel):
    start: float
    end: float
    speaker: str
    text: str


class Notes(BaseModel):
    summary: str = ""
    action_items: List[str] = Field(default_factory=list)
    decisions: List[str] = Field(default_factory=list)
    key_points: List[str] = Field(default_factory=list)
    language: str = "en"


class MeetingUpdate(BaseModel):
    """Partial meeting record.

    Only fields explicitly set are merged into the stored record; ``audio`` is
    accepted for convenience but never persisted with the metadata.
    """

    id: str
    title: Optional[str] = None
    created_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    duration_sec: Optional[int] = None
    status: Optional[MeetingStatus] = None
    audio_id: Optional[str] = None
    language: Optional[str] = None
    error: Optional[str] = None
    transcript: Optional[List[Segment]] = None
    notes: Optional[Notes] = None
    audio: Optional[bytes] = None


class MeetingDetail(BaseModel):
    id: str
    title: str
    created_at: datetime
    scheduled_at: Optional[datetime] = None
    duration_sec: int = 0
    status: MeetingStatus
    audio_id: Optional[str] = None
    language: Optional[str] = None
    error: Optional[str] = None
    transcript: Optional[List[Segment]] = None
    notes: Optional[Notes] = None
