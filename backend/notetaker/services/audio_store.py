from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

from sqlmodel import Session

from notetaker.models.audio import AudioBlob, CapturedAudio
from notetaker.models.audio_file import AudioFile
from notetaker.repositories.audio_files import AudioFilesRepository
from notetaker.services.audio_transcoder import is_canonical_wav, wav_duration_sec, wav_sample_rate

logger = logging.getLogger("notetaker.audio_store")


class AudioStore:
    """Raw audio kept on disk under ``<audio_dir>/<meeting_id>/``, indexed by meeting id."""

    def __init__(self, audio_dir: Path) -> None:
        self.audio_dir = Path(audio_dir)

    def save(self, session: Session, meeting_id: str, captured: CapturedAudio) -> AudioFile:
        blob = captured.blob
        meeting_dir = self.audio_dir / meeting_id
        meeting_dir.mkdir(parents=True, exist_ok=True)
        path = meeting_dir / f"{captured.source}.{blob.extension}"
        path.write_bytes(blob.data)

        sample_rate = 0
        duration_ms = int(captured.duration_sec * 1000)
        if is_canonical_wav(blob.data):
            sample_rate = wav_sample_rate(blob.data)
            duration_ms = int(wav_duration_sec(blob.data) * 1000)

        audio = AudioFile(
            meeting_id=meeting_id,
            kind=captured.source,
            path=str(path),
            content_type=blob.content_type,
            sample_rate=sample_rate,
            duration_ms=duration_ms,
            bytes=blob.size,
        )
        return AudioFilesRepository(session).upsert(audio)

    def load(self, session: Session, meeting_id: str) -> Optional[AudioBlob]:
        row = AudioFilesRepository(session).get_by_meeting(meeting_id)
        if row is None:
            return None
        path = Path(row.path)
        if not path.exists():
            return None
        return AudioBlob(data=path.read_bytes(), content_type=row.content_type, filename=path.name)

    def delete(self, session: Session, meeting_id: str) -> None:
        AudioFilesRepository(session).delete_for_meeting(meeting_id)
        meeting_dir = self.audio_dir / meeting_id
        if meeting_dir.exists():
            shutil.rmtree(meeting_dir)
            logger.info("Deleted stored audio", extra={"meeting_id": meeting_id})
