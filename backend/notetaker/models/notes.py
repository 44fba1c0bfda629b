from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from notetaker.models.meeting import utc_now


class MeetingNotes(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: str = Field(index=True, unique=True, foreign_key="meeting.id")
    summary: str = ""
    action_items: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    decisions: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    key_points: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    language: str = "en"
    created_at: datetime = Field(default_factory=utc_now)
