"""Capture → transcode → transcribe → synthesize → persist, one run per meeting."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from sqlmodel import Session

from notetaker.errors import MeetingConflict
from notetaker.models.audio import CapturedAudio
from notetaker.models.meeting import MeetingStatus, utc_now
from notetaker.models.schemas import MeetingDetail, MeetingUpdate, Segment
from notetaker.repositories.meetings import MeetingsRepository
from notetaker.services.audio_capture import AudioRecorder, RecordingHandle, accept_upload
from notetaker.services.audio_store import AudioStore
from notetaker.services.audio_transcoder import AudioTranscoder
from notetaker.services.gemini_client import GeminiNotesProvider
from notetaker.services.summarization_service import NotesSynthesizer
from notetaker.services.transcription_service import TranscriptionClient

logger = logging.getLogger("notetaker.pipeline")

INTERRUPTED_MESSAGE = "interrupted: processing did not finish"


class PipelineStage(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    TRANSCODING = "transcoding"
    TRANSCRIBING = "transcribing"
    SYNTHESIZING = "synthesizing"
    # Transcript and notes from one multimodal call
    ANALYZING = "analyzing"
    PERSISTED = "persisted"


def new_meeting_id() -> str:
    return str(int(time.time() * 1000))


def default_title(now: datetime) -> str:
    return f"Meeting {now:%Y-%m-%d %H:%M:%S}"


class MeetingPipeline:
    """Runs the processing pipeline for one captured or uploaded recording.

    A ``processing`` record is written before any work starts; every run ends
    with the record in ``completed`` or ``failed``. Stage errors, including a
    failed final write, are never re-raised: they are stored on the record
    (``error``) and the record is returned. Only a meeting that cannot take
    new audio (``MeetingConflict``) or an oversized upload is rejected up
    front, before anything is written.

    With an ``analyzer`` the transcribe and synthesize stages collapse into a
    single call that returns both transcript and notes.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        transcoder: AudioTranscoder,
        transcriber: Optional[TranscriptionClient] = None,
        synthesizer: Optional[NotesSynthesizer] = None,
        audio_store: Optional[AudioStore] = None,
        max_upload_bytes: int = 50 * 1024 * 1024,
        default_language: str = "en",
        id_factory: Callable[[], str] = new_meeting_id,
        analyzer: Optional[GeminiNotesProvider] = None,
    ) -> None:
        if analyzer is None and (transcriber is None or synthesizer is None):
            raise ValueError("A transcriber and a synthesizer are required without an analyzer")
        self._session_factory = session_factory
        self.transcoder = transcoder
        self.transcriber = transcriber
        self.synthesizer = synthesizer
        self.analyzer = analyzer
        self.audio_store = audio_store
        self.max_upload_bytes = max_upload_bytes
        self.default_language = default_language
        self._id_factory = id_factory

    def run_upload(
        self,
        data: bytes,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        *,
        meeting_id: Optional[str] = None,
        title: Optional[str] = None,
        language: Optional[str] = None,
    ) -> MeetingDetail:
        # FileTooLarge propagates here, before any record exists
        captured = accept_upload(data, filename, content_type, self.max_upload_bytes)
        return self.run(captured, meeting_id=meeting_id, title=title, language=language)

    def finish_recording(
        self,
        recorder: AudioRecorder,
        handle: RecordingHandle,
        *,
        meeting_id: Optional[str] = None,
        title: Optional[str] = None,
        language: Optional[str] = None,
    ) -> MeetingDetail:
        captured = recorder.stop(handle)
        return self.run(captured, meeting_id=meeting_id, title=title, language=language)

    def run(
        self,
        captured: CapturedAudio,
        *,
        meeting_id: Optional[str] = None,
        title: Optional[str] = None,
        language: Optional[str] = None,
    ) -> MeetingDetail:
        meeting_id = meeting_id or self._id_factory()
        language = language or self.default_language

        stage = PipelineStage.TRANSCODING
        self._enter(meeting_id, stage)
        # MeetingConflict propagates here, before anything is written
        self._persist_processing(meeting_id, captured, title, language)
        self._store_audio(meeting_id, captured)

        try:
            wav = self.transcoder.transcode(captured.blob)

            if self.analyzer is not None:
                stage = PipelineStage.ANALYZING
                self._enter(meeting_id, stage)
                result = self.analyzer.analyze(wav, language)
                segments = result.segments
            else:
                stage = PipelineStage.TRANSCRIBING
                self._enter(meeting_id, stage)
                transcription = self.transcriber.transcribe(wav, language)

                stage = PipelineStage.SYNTHESIZING
                self._enter(meeting_id, stage)
                result = self.synthesizer.synthesize(transcription.text, language, transcription.segments)
                segments = result.segments or [
                    Segment(start=s.start, end=s.end, speaker="Speaker 1", text=s.text)
                    for s in transcription.segments
                ]

            stage = PipelineStage.PERSISTED
            self._enter(meeting_id, stage)
            return self._persist(
                MeetingUpdate(
                    id=meeting_id,
                    status=MeetingStatus.COMPLETED,
                    error=None,
                    transcript=segments,
                    notes=result.notes,
                )
            )
        except Exception as exc:
            logger.exception("Pipeline failed", extra={"meeting_id": meeting_id, "stage": stage.value})
            return self._persist(
                MeetingUpdate(
                    id=meeting_id,
                    status=MeetingStatus.FAILED,
                    error=str(exc) or exc.__class__.__name__,
                    transcript=None,
                    notes=None,
                )
            )

    def _enter(self, meeting_id: str, stage: PipelineStage) -> None:
        logger.info("Pipeline stage %s", stage.value, extra={"meeting_id": meeting_id})

    def _persist(self, update: MeetingUpdate) -> MeetingDetail:
        with self._session_factory() as session:
            return MeetingsRepository(session).upsert(update)

    def _persist_processing(
        self, meeting_id: str, captured: CapturedAudio, title: Optional[str], language: str
    ) -> MeetingDetail:
        with self._session_factory() as session:
            repo = MeetingsRepository(session)
            existing = repo.get_row(meeting_id)
            # Only scheduled -> processing; completed and failed records are final
            if existing is not None and existing.status != MeetingStatus.SCHEDULED.value:
                raise MeetingConflict(meeting_id, existing.status)
            update = MeetingUpdate(
                id=meeting_id,
                status=MeetingStatus.PROCESSING,
                duration_sec=captured.duration_sec,
                language=language,
                error=None,
                transcript=None,
                notes=None,
                audio=captured.blob.data,
            )
            if title:
                update.title = title
            if existing is None:
                now = utc_now()
                update.created_at = now
                update.title = title or default_title(now)
            else:
                logger.info("Recording scheduled meeting", extra={"meeting_id": meeting_id})
            return repo.upsert(update)

    def _store_audio(self, meeting_id: str, captured: CapturedAudio) -> None:
        if self.audio_store is None:
            return
        # A failed audio write only loses the playback copy; the run goes on
        try:
            with self._session_factory() as session:
                self.audio_store.save(session, meeting_id, captured)
            self._persist(MeetingUpdate(id=meeting_id, audio_id=meeting_id))
        except Exception:
            logger.warning("Could not store audio", exc_info=True, extra={"meeting_id": meeting_id})


def fail_interrupted(session: Session) -> List[str]:
    """Mark meetings left in ``processing`` by a previous process as failed."""
    repo = MeetingsRepository(session)
    ids = [row.id for row in repo.list_by_status(MeetingStatus.PROCESSING)]
    for meeting_id in ids:
        repo.upsert(MeetingUpdate(id=meeting_id, status=MeetingStatus.FAILED, error=INTERRUPTED_MESSAGE))
    if ids:
        logger.warning("Marked %d interrupted meeting(s) as failed", len(ids))
    return ids
