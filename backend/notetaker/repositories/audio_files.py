from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from notetaker.models.audio_file import AudioFile


class AudioFilesRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def upsert(self, audio_file: AudioFile) -> AudioFile:
        existing = self.get_by_meeting(audio_file.meeting_id)
        if existing is not None:
            self.session.delete(existing)
            self.session.flush()
        self.session.add(audio_file)
        self.session.commit()
        self.session.refresh(audio_file)
        return audio_file

    def get_by_meeting(self, meeting_id: str) -> Optional[AudioFile]:
        statement = select(AudioFile).where(AudioFile.meeting_id == meeting_id)
        return self.session.exec(statement).first()

    def delete_for_meeting(self, meeting_id: str) -> Optional[str]:
        """Remove the row and return the path it pointed at, if any."""
        existing = self.get_by_meeting(meeting_id)
        if existing is None:
            return None
        path = existing.path
        self.session.delete(existing)
        self.session.commit()
        return path
