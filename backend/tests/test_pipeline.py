"""End-to-end pipeline runs against an in-memory store and a fake speech/chat client."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import numpy as np
import pytest

from notetaker.errors import (
    FileTooLarge,
    MeetingConflict,
    PermanentServiceError,
    PermissionDenied,
    TransientServiceError,
)
from notetaker.models.meeting import MeetingStatus
from notetaker.models.schemas import MeetingUpdate, Notes, Segment
from notetaker.repositories.audio_files import AudioFilesRepository
from notetaker.repositories.meetings import MeetingsRepository
from notetaker.services.audio_capture import AudioRecorder
from notetaker.services.audio_store import AudioStore
from notetaker.services.audio_transcoder import AudioTranscoder
from notetaker.services.gemini_client import GeminiNotesProvider
from notetaker.services.pipeline import INTERRUPTED_MESSAGE, MeetingPipeline, default_title, fail_interrupted
from notetaker.services.summarization_service import NotesSynthesizer
from notetaker.services.transcription_service import TranscriptionClient

MiB = 1024 * 1024


@pytest.fixture
def make_pipeline(session_factory, tmp_path):
    def _make(fake, **kwargs) -> MeetingPipeline:
        no_sleep = lambda _: None  # noqa: E731
        return MeetingPipeline(
            session_factory=session_factory,
            transcoder=AudioTranscoder(),
            transcriber=TranscriptionClient(fake, sleep=no_sleep),
            synthesizer=NotesSynthesizer(fake, sleep=no_sleep),
            audio_store=AudioStore(tmp_path / "audio"),
            id_factory=lambda: "1700000000000",
            **kwargs,
        )

    return _make


class TestUpload:
    def test_ten_mib_wav_upload_completes(self, make_pipeline, groq_factory, wav_factory, session):
        data = wav_factory(10 * MiB / 32000 + 1)
        assert len(data) > 10 * MiB
        fake = groq_factory()

        meeting = make_pipeline(fake).run_upload(data, "standup.wav", "audio/wav")

        assert meeting.id == "1700000000000"
        assert meeting.status == MeetingStatus.COMPLETED
        assert meeting.error is None
        assert meeting.title.startswith("Meeting ")
        assert meeting.duration_sec == 0
        assert meeting.notes.action_items == ["Alice to update the changelog", "Bob to tag the release"]
        assert [s.speaker for s in meeting.transcript] == ["Alice", "Bob"]
        assert meeting.audio_id == meeting.id
        # WAV input is sent as-is
        assert fake.transcribe_calls[0]["audio"].data is data

        stored = AudioFilesRepository(session).get_by_meeting(meeting.id)
        assert stored.kind == "upload"
        assert Path(stored.path).read_bytes() == data

    def test_sixty_mib_upload_is_rejected_before_any_record(self, make_pipeline, groq_factory, session):
        fake = groq_factory()
        with pytest.raises(FileTooLarge) as info:
            make_pipeline(fake).run_upload(b"\0" * (60 * MiB), "long.wav", "audio/wav")
        assert "File size too large" in str(info.value)
        assert MeetingsRepository(session).list_all() == []
        assert fake.transcribe_calls == []

    def test_non_wav_upload_is_transcoded(self, make_pipeline, groq_factory):
        import io

        import soundfile as sf

        buf = io.BytesIO()
        sf.write(buf, np.zeros((8000, 1), dtype=np.float32), 8000, format="FLAC")
        fake = groq_factory()
        make_pipeline(fake).run_upload(buf.getvalue(), "memo.flac", "audio/flac")
        sent = fake.transcribe_calls[0]["audio"]
        assert sent.content_type == "audio/wav"
        assert sent.data[:4] == b"RIFF"

    def test_language_and_title_are_kept(self, make_pipeline, groq_factory, wav_bytes):
        fake = groq_factory()
        meeting = make_pipeline(fake).run_upload(wav_bytes, "a.wav", "audio/wav", title="Board sync", language="ur")
        assert meeting.title == "Board sync"
        assert meeting.language == "ur"


class TestFailures:
    def test_permanent_transcription_error_marks_failed(self, make_pipeline, groq_factory, wav_bytes, session):
        fake = groq_factory(transcribe_errors=[PermanentServiceError("Groq API error: 400 - bad audio")])
        meeting = make_pipeline(fake).run_upload(wav_bytes, "a.wav", "audio/wav")
        assert meeting.status == MeetingStatus.FAILED
        assert meeting.error == "Groq API error: 400 - bad audio"
        assert meeting.transcript is None
        assert meeting.notes is None
        # Audio is still stored for playback / retry
        assert AudioFilesRepository(session).get_by_meeting(meeting.id) is not None

    def test_exhausted_retries_mark_failed(self, make_pipeline, groq_factory, wav_bytes):
        fake = groq_factory(chat_errors=[TransientServiceError("429")] * 3)
        meeting = make_pipeline(fake).run_upload(wav_bytes, "a.wav", "audio/wav")
        assert meeting.status == MeetingStatus.FAILED
        assert "429" in meeting.error
        assert len(fake.chat_calls) == 3

    def test_undecodable_audio_marks_failed(self, make_pipeline, groq_factory, monkeypatch):
        monkeypatch.setattr("notetaker.services.audio_transcoder.shutil.which", lambda _: None)
        fake = groq_factory()
        meeting = make_pipeline(fake).run_upload(b"not audio at all", "a.webm", "audio/webm")
        assert meeting.status == MeetingStatus.FAILED
        assert "Cannot decode" in meeting.error
        assert fake.transcribe_calls == []

    def test_record_is_processing_while_stages_run(self, make_pipeline, groq_factory, wav_bytes, session_factory):
        fake = groq_factory()
        seen = []
        original = fake.transcribe

        def transcribe(audio, model, language=None):
            with session_factory() as s:
                seen.append(MeetingsRepository(s).get("1700000000000").status)
            return original(audio, model, language)

        fake.transcribe = transcribe
        make_pipeline(fake).run_upload(wav_bytes, "a.wav", "audio/wav")
        assert seen == [MeetingStatus.PROCESSING]


class TestExistingMeeting:
    @pytest.mark.parametrize("status", [MeetingStatus.COMPLETED, MeetingStatus.FAILED, MeetingStatus.PROCESSING])
    def test_only_scheduled_meetings_accept_audio(self, make_pipeline, groq_factory, wav_bytes, session, status):
        repo = MeetingsRepository(session)
        repo.upsert(
            MeetingUpdate(
                id="done",
                title="Finished",
                status=status,
                transcript=[Segment(start=0, end=1, speaker="A", text="kept")],
                notes=Notes(summary="precious"),
            )
        )
        fake = groq_factory(transcribe_errors=[PermanentServiceError("Groq API error: 400 - bad audio")])

        with pytest.raises(MeetingConflict):
            make_pipeline(fake).run_upload(wav_bytes, "a.wav", "audio/wav", meeting_id="done")

        session.expire_all()
        stored = repo.get("done")
        assert stored.status == status
        assert stored.notes.summary == "precious"
        assert [s.text for s in stored.transcript] == ["kept"]
        assert fake.transcribe_calls == []
        assert AudioFilesRepository(session).get_by_meeting("done") is None


class TestPersistFailures:
    def test_failed_final_write_marks_failed(self, make_pipeline, groq_factory, wav_bytes, session, monkeypatch):
        def broken(self, meeting_id, notes, commit=True):
            raise RuntimeError("disk I/O error")

        monkeypatch.setattr("notetaker.repositories.notes.NotesRepository.upsert_for_meeting", broken)

        meeting = make_pipeline(groq_factory()).run_upload(wav_bytes, "a.wav", "audio/wav")

        assert meeting.status == MeetingStatus.FAILED
        assert meeting.error == "disk I/O error"
        assert meeting.transcript is None
        assert meeting.notes is None
        stored = MeetingsRepository(session).get(meeting.id)
        assert stored.status == MeetingStatus.FAILED
        assert stored.transcript is None

    def test_audio_store_failure_does_not_stop_the_run(self, make_pipeline, groq_factory, wav_bytes, monkeypatch):
        def broken(self, session, meeting_id, captured):
            raise RuntimeError("database is locked")

        monkeypatch.setattr("notetaker.services.audio_store.AudioStore.save", broken)

        meeting = make_pipeline(groq_factory()).run_upload(wav_bytes, "a.wav", "audio/wav")

        assert meeting.status == MeetingStatus.COMPLETED
        assert meeting.audio_id is None


class TestAnalyzer:
    @pytest.fixture
    def make_gemini_pipeline(self, session_factory, tmp_path):
        def _make(client) -> MeetingPipeline:
            return MeetingPipeline(
                session_factory=session_factory,
                transcoder=AudioTranscoder(),
                analyzer=GeminiNotesProvider(client=client, sleep=lambda _: None),
                audio_store=AudioStore(tmp_path / "audio"),
                id_factory=lambda: "1700000000001",
            )

        return _make

    def test_single_call_produces_transcript_and_notes(self, make_gemini_pipeline, gemini_factory, wav_bytes):
        client = gemini_factory()
        meeting = make_gemini_pipeline(client).run_upload(wav_bytes, "a.wav", "audio/wav", title="Release")

        assert meeting.status == MeetingStatus.COMPLETED
        assert meeting.title == "Release"
        assert meeting.notes.decisions == ["Ship on Friday"]
        assert [s.speaker for s in meeting.transcript] == ["Alice", "Bob"]
        assert len(client.calls) == 1

    def test_rejected_request_marks_failed(self, make_gemini_pipeline, gemini_factory, wav_bytes):
        client = gemini_factory(errors=[PermanentServiceError("Gemini API error: 403 - permission denied")])
        meeting = make_gemini_pipeline(client).run_upload(wav_bytes, "a.wav", "audio/wav")

        assert meeting.status == MeetingStatus.FAILED
        assert meeting.error == "Gemini API error: 403 - permission denied"
        assert meeting.notes is None

    def test_pipeline_needs_a_backend(self, session_factory):
        with pytest.raises(ValueError):
            MeetingPipeline(session_factory=session_factory, transcoder=AudioTranscoder())


class TestSegments:
    def test_missing_segment_section_falls_back_to_recogniser_segments(self, make_pipeline, groq_factory, wav_bytes):
        fake = groq_factory(notes_text="SUMMARY:\nShort.\n\nKEY POINTS:\n- one\n")
        meeting = make_pipeline(fake).run_upload(wav_bytes, "a.wav", "audio/wav")
        assert meeting.status == MeetingStatus.COMPLETED
        assert [(s.speaker, s.start, s.text) for s in meeting.transcript] == [
            ("Speaker 1", 0.0, "Let's go over the release."),
            ("Speaker 1", 2.5, "QA is done, we can ship Friday."),
        ]


class TestRecording:
    def test_recording_into_scheduled_meeting(
        self, make_pipeline, groq_factory, session, fake_stream_factory, device_query
    ):
        repo = MeetingsRepository(session)
        created = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)
        repo.upsert(
            MeetingUpdate(
                id="evt-42",
                title="Quarterly review",
                created_at=created,
                scheduled_at=datetime(2024, 5, 3, 14, 0, tzinfo=timezone.utc),
                duration_sec=0,
                status=MeetingStatus.SCHEDULED,
            )
        )
        recorder = AudioRecorder(tick_interval=3600, stream_factory=fake_stream_factory, device_query=device_query)
        handle = recorder.start(meeting_id="evt-42")
        stream = fake_stream_factory.instances[0]
        stream.feed(np.full((16000, 1), 0.1, dtype=np.float32))
        for _ in range(5):
            recorder._tick(handle)

        meeting = make_pipeline(groq_factory()).finish_recording(recorder, handle, meeting_id="evt-42")

        assert meeting.id == "evt-42"
        assert meeting.status == MeetingStatus.COMPLETED
        assert meeting.title == "Quarterly review"
        assert meeting.created_at == created
        assert meeting.duration_sec == 5
        assert stream.closed
        assert recorder.active() == []

    def test_permission_denied_creates_no_record(self, session, fake_stream_factory):
        def denied(device):
            raise OSError("Permission denied")

        recorder = AudioRecorder(stream_factory=fake_stream_factory, device_query=denied)
        with pytest.raises(PermissionDenied):
            recorder.start()
        assert MeetingsRepository(session).list_all() == []
        assert fake_stream_factory.instances == []


class TestInterrupted:
    def test_processing_meetings_fail_on_startup(self, session):
        repo = MeetingsRepository(session)
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        repo.upsert(MeetingUpdate(id="a", title="t", created_at=created, status=MeetingStatus.PROCESSING))
        repo.upsert(MeetingUpdate(id="b", title="t", created_at=created, status=MeetingStatus.COMPLETED))
        assert fail_interrupted(session) == ["a"]
        assert repo.get("a").status == MeetingStatus.FAILED
        assert repo.get("a").error == INTERRUPTED_MESSAGE
        assert repo.get("b").status == MeetingStatus.COMPLETED


def test_default_title_uses_timestamp():
    assert default_title(datetime(2024, 5, 1, 9, 30, 5)) == "Meeting 2024-05-01 09:30:05"
