from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from notetaker.models.audio import AudioBlob
from notetaker.services.audio_transcoder import is_canonical_wav, wav_duration_sec
from notetaker.services.groq_client import GroqClient
from notetaker.services.retry import call_with_retry

logger = logging.getLogger("notetaker.transcription")


@dataclass
class TimedSegment:
    start: float
    end: float
    text: str = ""


@dataclass
class TranscriptionResult:
    text: str
    segments: List[TimedSegment] = field(default_factory=list)
    duration_sec: Optional[float] = None
    long_audio: bool = False


class TranscriptionClient:
    """Speech-to-text via the hosted Whisper endpoint, with transient-error retry.

    Audio longer than ``long_audio_threshold_sec`` is flagged but still sent
    as a single request.
    """

    def __init__(
        self,
        client: GroqClient,
        model: str = "whisper-large-v3",
        max_attempts: int = 3,
        base_delay: float = 1.0,
        long_audio_threshold_sec: float = 900.0,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._client = client
        self.model = model
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.long_audio_threshold_sec = long_audio_threshold_sec
        self._sleep = sleep

    def transcribe(self, audio: AudioBlob, language_hint: Optional[str] = None) -> TranscriptionResult:
        duration = wav_duration_sec(audio.data) if is_canonical_wav(audio.data) else None
        long_audio = duration is not None and duration > self.long_audio_threshold_sec
        if long_audio:
            logger.warning(
                "Audio duration %.0fs exceeds %.0fs; chunking not implemented, sending as one request",
                duration, self.long_audio_threshold_sec,
            )

        kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
        data = call_with_retry(
            lambda: self._client.transcribe(audio, model=self.model, language=language_hint),
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            description="transcription",
            **kwargs,
        )

        segments: List[TimedSegment] = []
        for raw in data.get("segments") or []:
            if not isinstance(raw, dict):
                continue
            try:
                segments.append(
                    TimedSegment(
                        start=float(raw.get("start", 0.0)),
                        end=float(raw.get("end", 0.0)),
                        text=str(raw.get("text", "")).strip(),
                    )
                )
            except (TypeError, ValueError):
                logger.debug("Skipping malformed segment: %r", raw)
        segments.sort(key=lambda s: (s.start, s.end))
        text = str(data.get("text") or "").strip()
        logger.info("Transcription finished", extra={"chars": len(text), "segments": len(segments)})
        return TranscriptionResult(text=text, segments=segments, duration_sec=duration, long_audio=long_audio)
