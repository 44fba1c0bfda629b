from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from notetaker.deps import get_pipeline, get_recorder, get_session
from notetaker.errors import MeetingConflict
from notetaker.models.meeting import MeetingStatus
from notetaker.models.schemas import MeetingDetail
from notetaker.repositories.meetings import MeetingsRepository
from notetaker.services.audio_capture import AudioRecorder, RecordingHandle
from notetaker.services.pipeline import MeetingPipeline


router = APIRouter(prefix="/recordings", tags=["recordings"])


class StartRecordingRequest(BaseModel):
    device_id: Optional[str] = None
    # Attach the recording to an existing (e.g. scheduled) meeting
    meeting_id: Optional[str] = None
    title: Optional[str] = None
    language: Optional[str] = None


class RecordingStatus(BaseModel):
    handle: str
    elapsed_sec: int
    paused: bool
    meeting_id: Optional[str] = None


def _status(handle: RecordingHandle) -> RecordingStatus:
    return RecordingStatus(
        handle=handle.id,
        elapsed_sec=handle.elapsed_sec,
        paused=handle.paused,
        meeting_id=handle.meta.get("meeting_id"),
    )


@router.post("/start")
def start_recording(
    body: StartRecordingRequest,
    recorder: AudioRecorder = Depends(get_recorder),
    session: Session = Depends(get_session),
) -> RecordingStatus:
    if body.meeting_id:
        existing = MeetingsRepository(session).get_row(body.meeting_id)
        if existing is None:
            raise HTTPException(status_code=404, detail="Meeting not found")
        if existing.status != MeetingStatus.SCHEDULED.value:
            raise MeetingConflict(body.meeting_id, existing.status)
    handle = recorder.start(
        body.device_id,
        meeting_id=body.meeting_id,
        title=body.title,
        language=body.language,
    )
    return _status(handle)


@router.get("/{handle_id}")
def get_recording(handle_id: str, recorder: AudioRecorder = Depends(get_recorder)) -> RecordingStatus:
    return _status(recorder.get(handle_id))


@router.post("/{handle_id}/pause")
def pause_recording(handle_id: str, recorder: AudioRecorder = Depends(get_recorder)) -> RecordingStatus:
    return _status(recorder.pause(handle_id))


@router.post("/{handle_id}/resume")
def resume_recording(handle_id: str, recorder: AudioRecorder = Depends(get_recorder)) -> RecordingStatus:
    return _status(recorder.resume(handle_id))


@router.post("/{handle_id}/stop")
def stop_recording(
    handle_id: str,
    recorder: AudioRecorder = Depends(get_recorder),
    pipeline: MeetingPipeline = Depends(get_pipeline),
) -> MeetingDetail:
    handle = recorder.get(handle_id)
    return pipeline.finish_recording(
        recorder,
        handle,
        meeting_id=handle.meta.get("meeting_id"),
        title=handle.meta.get("title"),
        language=handle.meta.get("language"),
    )
