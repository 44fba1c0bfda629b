from __future__ import annotations

from typing import Optional
from sqlmodel import Session, select

from notetaker.models.notes import MeetingNotes
from notetaker.models.schemas import Notes


class NotesRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def upsert_for_meeting(self, meeting_id: str, notes: Notes, commit: bool = True) -> MeetingNotes:
        existing = self.get_by_meeting(meeting_id)
        row = existing or MeetingNotes(meeting_id=meeting_id)
        row.summary = notes.summary
        row.action_items = list(notes.action_items)
        row.decisions = list(notes.decisions)
        row.key_points = list(notes.key_points)
        row.language = notes.language
        self.session.add(row)
        if commit:
            self.session.commit()
            self.session.refresh(row)
        return row

    def get_by_meeting(self, meeting_id: str) -> Optional[MeetingNotes]:
        statement = select(MeetingNotes).where(MeetingNotes.meeting_id == meeting_id)
        return self.session.exec(statement).first()

    def delete_for_meeting(self, meeting_id: str, commit: bool = True) -> None:
        existing = self.get_by_meeting(meeting_id)
        if existing is not None:
            self.session.delete(existing)
            if commit:
                self.session.commit()
