from __future__ import annotations

from typing import Iterable
from sqlmodel import Session, select

from notetaker.models.transcript_segment import TranscriptSegment


class TranscriptsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def replace_for_meeting(self, meeting_id: str, segments: Iterable[TranscriptSegment], commit: bool = True) -> None:
        for seg in self.list_by_meeting(meeting_id):
            self.session.delete(seg)
        for position, seg in enumerate(segments):
            seg.meeting_id = meeting_id
            seg.position = position
            self.session.add(seg)
        if commit:
            self.session.commit()

    def delete_for_meeting(self, meeting_id: str, commit: bool = True) -> int:
        to_delete = self.list_by_meeting(meeting_id)
        for seg in to_delete:
            self.session.delete(seg)
        if commit:
            self.session.commit()
        return len(to_delete)

    def list_by_meeting(self, meeting_id: str) -> list[TranscriptSegment]:
        statement = (
            select(TranscriptSegment)
            .where(TranscriptSegment.meeting_id == meeting_id)
            .order_by(TranscriptSegment.start.asc(), TranscriptSegment.position.asc())
        )
        return list(self.session.exec(statement))
