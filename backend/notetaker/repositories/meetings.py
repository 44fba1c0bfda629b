from __future__ import annotations

from typing import Iterable, List, Optional
from sqlmodel import Session, select

from notetaker.models.meeting import Meeting, MeetingStatus, as_utc
from notetaker.models.schemas import MeetingDetail, MeetingUpdate, Notes, Segment
from notetaker.models.transcript_segment import TranscriptSegment
from notetaker.repositories.notes import NotesRepository
from notetaker.repositories.transcripts import TranscriptsRepository

# Fields never written to the metadata store
_STRIPPED_FIELDS = {"audio"}
_CHILD_FIELDS = {"transcript", "notes"}


class MeetingsRepository:
    """Meeting record store: field-level merge upserts keyed by meeting id."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self._transcripts = TranscriptsRepository(session)
        self._notes = NotesRepository(session)

    def get_row(self, meeting_id: str) -> Optional[Meeting]:
        return self.session.get(Meeting, meeting_id)

    def get(self, meeting_id: str) -> Optional[MeetingDetail]:
        row = self.get_row(meeting_id)
        if row is None:
            return None
        return self._to_detail(row)

    def list_all(self) -> List[MeetingDetail]:
        statement = select(Meeting).order_by(Meeting.created_at.desc())
        return [self._to_detail(row) for row in self.session.exec(statement)]

    def list_by_status(self, status: MeetingStatus) -> List[Meeting]:
        statement = select(Meeting).where(Meeting.status == status.value)
        return list(self.session.exec(statement))

    def upsert(self, update: MeetingUpdate) -> MeetingDetail:
        """Merge the fields set on ``update`` into the stored record.

        Fields not set on the update keep their stored values. ``transcript``
        and ``notes`` explicitly set to None are cleared. The meeting row and
        its child rows are committed together or not at all.
        """
        changes = update.model_dump(exclude_unset=True, exclude=_STRIPPED_FIELDS)
        changes.pop("id", None)
        row = self.get_row(update.id) or Meeting(id=update.id)
        try:
            for field, value in changes.items():
                if field in _CHILD_FIELDS:
                    continue
                if field == "status" and value is not None:
                    value = MeetingStatus(value).value
                if value is None and field in {"title", "created_at", "duration_sec", "status"}:
                    # Required columns: an explicit None leaves the stored value alone
                    continue
                setattr(row, field, value)
            self.session.add(row)

            if "transcript" in changes:
                if update.transcript is None:
                    self._transcripts.delete_for_meeting(update.id, commit=False)
                else:
                    self._transcripts.replace_for_meeting(
                        update.id,
                        [
                            TranscriptSegment(meeting_id=update.id, start=s.start, end=s.end, speaker=s.speaker, text=s.text)
                            for s in update.transcript
                        ],
                        commit=False,
                    )
            if "notes" in changes:
                if update.notes is None:
                    self._notes.delete_for_meeting(update.id, commit=False)
                else:
                    self._notes.upsert_for_meeting(update.id, update.notes, commit=False)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(row)
        return self._to_detail(row)

    def insert_missing(self, updates: Iterable[MeetingUpdate]) -> List[MeetingDetail]:
        """Insert only meetings whose id is not stored yet; existing ones are untouched."""
        inserted: List[MeetingDetail] = []
        for update in updates:
            if self.get_row(update.id) is not None:
                continue
            inserted.append(self.upsert(update))
        return inserted

    def delete(self, meeting_id: str) -> bool:
        row = self.get_row(meeting_id)
        if row is None:
            return False
        self._transcripts.delete_for_meeting(meeting_id, commit=False)
        self._notes.delete_for_meeting(meeting_id, commit=False)
        self.session.delete(row)
        self.session.commit()
        return True

    def _to_detail(self, row: Meeting) -> MeetingDetail:
        segments = self._transcripts.list_by_meeting(row.id)
        notes_row = self._notes.get_by_meeting(row.id)
        transcript = (
            [Segment(start=s.start, end=s.end, speaker=s.speaker, text=s.text) for s in segments]
            if segments
            else None
        )
        notes = None
        if notes_row is not None:
            notes = Notes(
                summary=notes_row.summary,
                action_items=list(notes_row.action_items or []),
                decisions=list(notes_row.decisions or []),
                key_points=list(notes_row.key_points or []),
                language=notes_row.language,
            )
        if transcript is None and notes is not None:
            # A completed meeting with a silent recording still has a (empty) transcript
            transcript = []
        return MeetingDetail(
            id=row.id,
            title=row.title,
            created_at=as_utc(row.created_at),
            scheduled_at=as_utc(row.scheduled_at),
            duration_sec=row.duration_sec,
            status=MeetingStatus(row.status),
            audio_id=row.audio_id,
            language=row.language,
            error=row.error,
            transcript=transcript,
            notes=notes,
        )
