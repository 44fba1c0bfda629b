from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse, PlainTextResponse
from pydantic import BaseModel
from sqlmodel import Session

from notetaker.config import Settings
from notetaker.deps import get_audio_store, get_pipeline, get_session, get_settings
from notetaker.errors import FileTooLarge
from notetaker.models.schemas import MeetingDetail, MeetingUpdate
from notetaker.repositories.audio_files import AudioFilesRepository
from notetaker.repositories.meetings import MeetingsRepository
from notetaker.services.audio_store import AudioStore
from notetaker.services.export import render_export
from notetaker.services.pipeline import MeetingPipeline

logger = logging.getLogger("notetaker.api")


router = APIRouter(prefix="/meetings", tags=["meetings"])


class UpdateMeetingRequest(BaseModel):
    title: Optional[str] = None


def _get_or_404(repo: MeetingsRepository, meeting_id: str) -> MeetingDetail:
    meeting = repo.get(meeting_id)
    if meeting is None:
        raise HTTPException(status_code=404, detail="Meeting not found")
    return meeting


@router.get("")
def list_meetings(session: Session = Depends(get_session)) -> List[MeetingDetail]:
    return MeetingsRepository(session).list_all()


@router.post("/upload")
def upload_meeting(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    language: Optional[str] = Form(None),
    meeting_id: Optional[str] = Form(None),
    settings: Settings = Depends(get_settings),
    pipeline: MeetingPipeline = Depends(get_pipeline),
) -> MeetingDetail:
    # Reject by declared size before reading the body into memory
    if file.size is not None and file.size > settings.max_upload_bytes:
        raise FileTooLarge(file.size, settings.max_upload_bytes)
    data = file.file.read(settings.max_upload_bytes + 1)
    logger.info("Upload received", extra={"upload_name": file.filename, "bytes": len(data)})
    return pipeline.run_upload(
        data,
        filename=file.filename,
        content_type=file.content_type,
        meeting_id=meeting_id,
        title=title,
        language=language,
    )


@router.get("/{meeting_id}")
def get_meeting_detail(meeting_id: str, session: Session = Depends(get_session)) -> MeetingDetail:
    return _get_or_404(MeetingsRepository(session), meeting_id)


@router.put("/{meeting_id}")
def update_meeting(
    meeting_id: str, body: UpdateMeetingRequest, session: Session = Depends(get_session)
) -> MeetingDetail:
    repo = MeetingsRepository(session)
    meeting = _get_or_404(repo, meeting_id)
    if body.title is not None:
        meeting = repo.upsert(MeetingUpdate(id=meeting_id, title=body.title))
    return meeting


@router.delete("/{meeting_id}")
def delete_meeting(
    meeting_id: str,
    session: Session = Depends(get_session),
    audio_store: AudioStore = Depends(get_audio_store),
) -> Dict[str, bool]:
    repo = MeetingsRepository(session)
    _get_or_404(repo, meeting_id)
    audio_store.delete(session, meeting_id)
    repo.delete(meeting_id)
    return {"ok": True}


@router.get("/{meeting_id}/export")
def export_meeting(meeting_id: str, kind: str = "notes", session: Session = Depends(get_session)) -> PlainTextResponse:
    if kind not in {"notes", "transcript"}:
        raise HTTPException(status_code=400, detail="kind must be 'notes' or 'transcript'")
    meeting = _get_or_404(MeetingsRepository(session), meeting_id)
    exported = render_export(meeting, kind)
    if exported is None:
        raise HTTPException(status_code=404, detail=f"No {kind} available")
    filename, text = exported
    return PlainTextResponse(text, headers={"Content-Disposition": f'attachment; filename="{filename}"'})


@router.get("/{meeting_id}/audio")
def get_meeting_audio(meeting_id: str, session: Session = Depends(get_session)) -> FileResponse:
    row = AudioFilesRepository(session).get_by_meeting(meeting_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Audio not found")
    return FileResponse(row.path, media_type=row.content_type)
