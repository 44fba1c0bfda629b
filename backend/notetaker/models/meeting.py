from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops the offset on write; stored timestamps are always UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class MeetingStatus(str, Enum):
    SCHEDULED = "scheduled"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Meeting(SQLModel, table=True):
    id: str = Field(primary_key=True)
    title: str = Field(default="Untitled Meeting")
    created_at: datetime = Field(default_factory=utc_now, index=True)
    scheduled_at: Optional[datetime] = None
    duration_sec: int = Field(default=0)
    status: str = Field(default=MeetingStatus.PROCESSING.value)  # scheduled|processing|completed|failed
    audio_id: Optional[str] = None  # meeting id of the stored audio, if any
    language: Optional[str] = None
    error: Optional[str] = None
