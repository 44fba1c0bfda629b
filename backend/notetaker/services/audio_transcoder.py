"""Convert arbitrary audio payloads into 16-bit PCM WAV for the speech service."""

from __future__ import annotations

import io
import logging
import shutil
import subprocess
import tempfile
import wave
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import soundfile as sf
import soxr

from notetaker.errors import AudioDecodeError
from notetaker.models.audio import AudioBlob, WAV_CONTENT_TYPE

logger = logging.getLogger("notetaker.transcoder")


def is_canonical_wav(data: bytes) -> bool:
    """True for a RIFF/WAVE container holding 16-bit PCM samples."""
    if len(data) < 44 or data[0:4] != b"RIFF" or data[8:12] != b"WAVE":
        return False
    try:
        with wave.open(io.BytesIO(data), "rb") as wf:
            return wf.getsampwidth() == 2
    except (wave.Error, EOFError):
        # wave only accepts PCM; float and compressed WAVs land here
        return False


def wav_duration_sec(data: bytes) -> float:
    with wave.open(io.BytesIO(data), "rb") as wf:
        rate = wf.getframerate()
        return wf.getnframes() / float(rate) if rate else 0.0


def wav_sample_rate(data: bytes) -> int:
    with wave.open(io.BytesIO(data), "rb") as wf:
        return wf.getframerate()


def encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    """Write float samples shaped (frames, channels) as interleaved int16 WAV."""
    data = np.asarray(samples, dtype=np.float32)
    if data.ndim == 1:
        data = data[:, np.newaxis]
    clipped = np.clip(data, -1.0, 1.0)
    pcm = np.clip(clipped * 32767.0, -32768, 32767).astype("<i2")
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(int(data.shape[1]))
        wf.setsampwidth(2)  # int16
        wf.setframerate(int(sample_rate))
        wf.writeframes(pcm.tobytes())
    return buf.getvalue()


class AudioTranscoder:
    def __init__(self, target_sample_rate: Optional[int] = None, ffmpeg_path: Optional[str] = None) -> None:
        self.target_sample_rate = target_sample_rate
        self._ffmpeg_path = ffmpeg_path

    def transcode(self, blob: AudioBlob) -> AudioBlob:
        if is_canonical_wav(blob.data):
            return blob

        samples, rate = self._decode(blob)
        if self.target_sample_rate and rate != self.target_sample_rate:
            samples = soxr.resample(samples, rate, self.target_sample_rate)
            rate = self.target_sample_rate
        out = encode_wav(samples, rate)
        logger.info(
            "Transcoded audio",
            extra={"source_type": blob.content_type, "source_bytes": blob.size, "wav_bytes": len(out), "rate": rate},
        )
        stem = Path(blob.filename).stem if blob.filename else "audio"
        return AudioBlob(data=out, content_type=WAV_CONTENT_TYPE, filename=f"{stem}.wav")

    def _decode(self, blob: AudioBlob) -> Tuple[np.ndarray, int]:
        try:
            samples, rate = sf.read(io.BytesIO(blob.data), dtype="float32", always_2d=True)
            return samples, int(rate)
        except RuntimeError as exc:
            # libsndfile cannot read containers like WebM; fall back to ffmpeg
            ffmpeg = self._ffmpeg_path or shutil.which("ffmpeg")
            if ffmpeg is None:
                raise AudioDecodeError(f"Cannot decode {blob.content_type or 'audio'}: {exc}") from exc
            return self._decode_with_ffmpeg(ffmpeg, blob)

    def _decode_with_ffmpeg(self, ffmpeg: str, blob: AudioBlob) -> Tuple[np.ndarray, int]:
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / f"input.{blob.extension}"
            dst = Path(tmp) / "decoded.wav"
            src.write_bytes(blob.data)
            cmd = [ffmpeg, "-hide_banner", "-loglevel", "error", "-y", "-i", str(src), "-c:a", "pcm_s16le", str(dst)]
            result = subprocess.run(cmd, capture_output=True, text=True)
            if result.returncode != 0 or not dst.exists():
                raise AudioDecodeError(f"ffmpeg decode failed: {result.stderr[-1200:]}")
            samples, rate = sf.read(str(dst), dtype="float32", always_2d=True)
            return samples, int(rate)
