"""Tests for the meeting record store: merge semantics, children, deletion."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from notetaker.models.meeting import MeetingStatus
from notetaker.models.schemas import MeetingUpdate, Notes, Segment
from notetaker.repositories.meetings import MeetingsRepository

CREATED = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def _seed(repo: MeetingsRepository, meeting_id: str = "m1", **fields) -> None:
    base = dict(title="Standup", created_at=CREATED, status=MeetingStatus.PROCESSING)
    base.update(fields)
    repo.upsert(MeetingUpdate(id=meeting_id, **base))


class TestUpsert:
    def test_insert_then_get(self, session):
        repo = MeetingsRepository(session)
        _seed(repo, duration_sec=42)
        meeting = repo.get("m1")
        assert meeting.title == "Standup"
        assert meeting.duration_sec == 42
        assert meeting.status == MeetingStatus.PROCESSING
        assert meeting.transcript is None
        assert meeting.notes is None

    def test_partial_update_keeps_unset_fields(self, session):
        repo = MeetingsRepository(session)
        _seed(repo, duration_sec=42, language="en")
        repo.upsert(MeetingUpdate(id="m1", status=MeetingStatus.FAILED, error="boom"))
        meeting = repo.get("m1")
        assert meeting.title == "Standup"
        assert meeting.duration_sec == 42
        assert meeting.language == "en"
        assert meeting.status == MeetingStatus.FAILED
        assert meeting.error == "boom"

    def test_explicit_none_clears_optional_field(self, session):
        repo = MeetingsRepository(session)
        _seed(repo, error="old")
        repo.upsert(MeetingUpdate(id="m1", error=None))
        assert repo.get("m1").error is None

    def test_audio_bytes_are_not_persisted(self, session):
        repo = MeetingsRepository(session)
        _seed(repo, audio=b"RIFF....")
        row = repo.get_row("m1")
        assert not hasattr(row, "audio")
        assert "audio" not in repo.get("m1").model_dump()

    def test_transcript_and_notes_replace_and_clear(self, session):
        repo = MeetingsRepository(session)
        _seed(repo)
        repo.upsert(
            MeetingUpdate(
                id="m1",
                status=MeetingStatus.COMPLETED,
                transcript=[
                    Segment(start=5.0, end=9.0, speaker="B", text="second"),
                    Segment(start=0.0, end=5.0, speaker="A", text="first"),
                ],
                notes=Notes(summary="s", action_items=["a"], decisions=["d"], key_points=["k"]),
            )
        )
        meeting = repo.get("m1")
        assert [s.text for s in meeting.transcript] == ["first", "second"]
        assert meeting.notes.action_items == ["a"]

        repo.upsert(MeetingUpdate(id="m1", transcript=[Segment(start=0, end=1, speaker="C", text="only")]))
        meeting = repo.get("m1")
        assert [s.text for s in meeting.transcript] == ["only"]
        assert meeting.notes.summary == "s"

        repo.upsert(MeetingUpdate(id="m1", transcript=None, notes=None))
        meeting = repo.get("m1")
        assert meeting.transcript is None
        assert meeting.notes is None

    def test_timestamps_round_trip_as_utc(self, session):
        repo = MeetingsRepository(session)
        scheduled = datetime(2024, 5, 3, 14, 0, tzinfo=timezone.utc)
        _seed(repo, scheduled_at=scheduled)
        session.expire_all()
        meeting = repo.get("m1")
        assert meeting.created_at == CREATED
        assert meeting.created_at.tzinfo is not None
        assert meeting.scheduled_at == scheduled

    def test_default_created_at_is_aware(self, session):
        repo = MeetingsRepository(session)
        repo.upsert(MeetingUpdate(id="m2", title="t", status=MeetingStatus.PROCESSING))
        session.expire_all()
        assert repo.get("m2").created_at.tzinfo is not None

    def test_failed_child_write_leaves_record_untouched(self, session, monkeypatch):
        repo = MeetingsRepository(session)
        _seed(repo)

        def broken(self, meeting_id, notes, commit=True):
            raise RuntimeError("disk I/O error")

        monkeypatch.setattr("notetaker.repositories.notes.NotesRepository.upsert_for_meeting", broken)
        with pytest.raises(RuntimeError):
            repo.upsert(
                MeetingUpdate(
                    id="m1",
                    status=MeetingStatus.COMPLETED,
                    transcript=[Segment(start=0, end=1, speaker="A", text="hi")],
                    notes=Notes(summary="s"),
                )
            )
        meeting = repo.get("m1")
        assert meeting.status == MeetingStatus.PROCESSING
        assert meeting.transcript is None
        assert meeting.notes is None

    def test_notes_with_empty_transcript_reads_as_empty_list(self, session):
        repo = MeetingsRepository(session)
        _seed(repo)
        repo.upsert(MeetingUpdate(id="m1", transcript=[], notes=Notes(summary="quiet meeting")))
        assert repo.get("m1").transcript == []


class TestQueries:
    def test_list_all_newest_first(self, session):
        repo = MeetingsRepository(session)
        _seed(repo, "old", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        _seed(repo, "new", created_at=datetime(2024, 6, 1, tzinfo=timezone.utc))
        assert [m.id for m in repo.list_all()] == ["new", "old"]

    def test_list_by_status(self, session):
        repo = MeetingsRepository(session)
        _seed(repo, "a")
        _seed(repo, "b", status=MeetingStatus.COMPLETED)
        assert [r.id for r in repo.list_by_status(MeetingStatus.PROCESSING)] == ["a"]

    def test_get_unknown_is_none(self, session):
        assert MeetingsRepository(session).get("missing") is None


class TestInsertMissingAndDelete:
    def test_insert_missing_skips_existing_ids(self, session):
        repo = MeetingsRepository(session)
        _seed(repo, "evt-1", title="Edited locally", status=MeetingStatus.COMPLETED)
        remote = datetime(2024, 5, 2, tzinfo=timezone.utc)
        incoming = [
            MeetingUpdate(id="evt-1", title="Remote title", created_at=remote, status=MeetingStatus.SCHEDULED),
            MeetingUpdate(id="evt-2", title="Planning", created_at=remote, status=MeetingStatus.SCHEDULED),
        ]
        inserted = repo.insert_missing(incoming)
        assert [m.id for m in inserted] == ["evt-2"]
        assert repo.get("evt-1").title == "Edited locally"
        assert repo.get("evt-2").status == MeetingStatus.SCHEDULED

    def test_delete_removes_children(self, session):
        repo = MeetingsRepository(session)
        _seed(repo, transcript=[Segment(start=0, end=1, speaker="A", text="hi")], notes=Notes(summary="x"))
        assert repo.delete("m1") is True
        assert repo.get("m1") is None
        assert repo.delete("m1") is False
