from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

WAV_CONTENT_TYPE = "audio/wav"

_EXTENSIONS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
    "audio/flac": "flac",
}


@dataclass(frozen=True)
class AudioBlob:
    """A finite audio payload plus the media type it is encoded in."""

    data: bytes
    content_type: str
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        base = (self.content_type or "").split(";")[0].strip().lower()
        if base in _EXTENSIONS:
            return _EXTENSIONS[base]
        if self.filename and "." in self.filename:
            return self.filename.rsplit(".", 1)[1].lower()
        return base.split("/")[-1] or "bin"


@dataclass(frozen=True)
class CapturedAudio:
    blob: AudioBlob
    duration_sec: int  # 0 when unknown (uploads)
    source: str = "recording"  # recording|upload
