from __future__ import annotations

from typing import Optional
from sqlmodel import SQLModel, Field


class AudioFile(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: str = Field(index=True, unique=True)
    kind: str  # recording|upload
    path: str
    content_type: str
    sample_rate: int = 0  # 0 when unknown (compressed uploads)
    duration_ms: int = 0
    bytes: int
