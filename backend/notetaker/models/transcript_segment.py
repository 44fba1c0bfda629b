from __future__ import annotations

from typing import Optional
from sqlmodel import SQLModel, Field


class TranscriptSegment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: str = Field(index=True, foreign_key="meeting.id")
    position: int = Field(default=0)
    start: float = Field(index=True)  # seconds
    end: float
    speaker: str  # free-form label, e.g. "Speaker 1"
    text: str
