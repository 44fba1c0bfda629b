from __future__ import annotations

import itertools
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np
import logging
import soxr

try:
    import sounddevice as sd
except Exception:  # pragma: no cover - allow import on systems without PortAudio
    sd = None

from notetaker.errors import CaptureNotFound, FileTooLarge, PermissionDenied
from notetaker.models.audio import AudioBlob, CapturedAudio, WAV_CONTENT_TYPE
from notetaker.services.audio_transcoder import encode_wav


logger = logging.getLogger("notetaker.audio")

DEFAULT_BLOCKSIZE = 4096  # frames; larger buffers reduce discontinuity
PERMISSION_MESSAGE = "Could not access microphone. Please allow permissions."

_OPEN_ERRORS: tuple = (OSError, ValueError, RuntimeError)
if sd is not None:
    _OPEN_ERRORS = _OPEN_ERRORS + (sd.PortAudioError,)

_handle_ids = itertools.count(1)


@dataclass
class RecordingHandle:
    id: str
    device: Optional[int]
    device_rate: int
    device_channels: int
    target_rate: int
    stream: Any = None
    chunks: List[np.ndarray] = field(default_factory=list)
    elapsed_sec: int = 0
    paused: bool = False
    started_at: float = field(default_factory=time.time)
    # Caller context carried from start to stop (meeting id, title, language)
    meta: Dict[str, Optional[str]] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)
    ticker_stop: threading.Event = field(default_factory=threading.Event)
    ticker: Optional[threading.Thread] = None


def _to_mono_float32(data: np.ndarray) -> np.ndarray:
    data_f32 = np.asarray(data, dtype=np.float32)
    if data_f32.ndim == 2 and data_f32.shape[1] > 1:
        data_f32 = data_f32.mean(axis=1)
    return data_f32.reshape(-1)


def _default_device_query(device: Optional[int]) -> Dict[str, Any]:
    if sd is None:
        raise PermissionDenied("Audio input unavailable: sounddevice/PortAudio is not installed")
    return dict(sd.query_devices(device, "input"))


class AudioRecorder:
    """Microphone capture with pause/resume and a 1-second elapsed-time tick.

    Every open stream is tracked by handle id so it can be released on stop,
    on error and on ``close_all()`` at shutdown.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        blocksize: int = DEFAULT_BLOCKSIZE,
        tick_interval: float = 1.0,
        stream_factory: Optional[Callable[..., Any]] = None,
        device_query: Optional[Callable[[Optional[int]], Dict[str, Any]]] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.blocksize = blocksize
        self.tick_interval = tick_interval
        self._stream_factory = stream_factory
        self._device_query = device_query or _default_device_query
        self._recordings: Dict[str, RecordingHandle] = {}
        self._lock = threading.Lock()

    def start(self, device_id: Optional[str] = None, **meta: Optional[str]) -> RecordingHandle:
        factory = self._stream_factory
        if factory is None:
            if sd is None:
                raise PermissionDenied("Audio input unavailable: sounddevice/PortAudio is not installed")
            factory = sd.InputStream

        device = int(device_id) if device_id not in (None, "") else None
        try:
            info = self._device_query(device)
        except _OPEN_ERRORS as exc:
            raise PermissionDenied(PERMISSION_MESSAGE) from exc
        rate = int(info.get("default_samplerate", 48000) or 48000)
        channels = max(1, min(2, int(info.get("max_input_channels", 1) or 1)))

        handle = RecordingHandle(
            id=f"rec-{next(_handle_ids)}-{int(time.time() * 1000)}",
            device=device,
            device_rate=rate,
            device_channels=channels,
            target_rate=self.sample_rate,
            meta=dict(meta),
        )

        def _mic_cb(indata, frames, time_info, status):  # noqa: ANN001 - external callback signature
            if status:  # pragma: no cover
                logger.debug("Input stream status: %s", status)
            self._on_audio(handle, indata)

        try:
            handle.stream = factory(
                device=device,
                channels=channels,
                dtype="float32",
                samplerate=rate,
                blocksize=self.blocksize,
                callback=_mic_cb,
            )
            handle.stream.start()
        except _OPEN_ERRORS as exc:
            self._release(handle)
            raise PermissionDenied(PERMISSION_MESSAGE) from exc

        handle.ticker = threading.Thread(target=self._run_ticker, args=(handle,), daemon=True)
        handle.ticker.start()
        with self._lock:
            self._recordings[handle.id] = handle
        logger.info("Mic capture started", extra={"handle": handle.id, "device": info.get("name"), "rate": rate, "channels": channels})
        return handle

    def get(self, handle: Union[RecordingHandle, str]) -> RecordingHandle:
        handle_id = handle.id if isinstance(handle, RecordingHandle) else handle
        with self._lock:
            found = self._recordings.get(handle_id)
        if found is None:
            raise CaptureNotFound(f"No active recording {handle_id!r}")
        return found

    def active(self) -> List[RecordingHandle]:
        with self._lock:
            return list(self._recordings.values())

    def pause(self, handle: Union[RecordingHandle, str]) -> RecordingHandle:
        h = self.get(handle)
        with h.lock:
            if h.paused:
                return h
            h.paused = True
        h.stream.stop()
        logger.info("Mic capture paused", extra={"handle": h.id, "elapsed_sec": h.elapsed_sec})
        return h

    def resume(self, handle: Union[RecordingHandle, str]) -> RecordingHandle:
        h = self.get(handle)
        with h.lock:
            if not h.paused:
                return h
            h.paused = False
        h.stream.start()
        logger.info("Mic capture resumed", extra={"handle": h.id})
        return h

    def stop(self, handle: Union[RecordingHandle, str]) -> CapturedAudio:
        h = self.get(handle)
        with self._lock:
            self._recordings.pop(h.id, None)
        self._release(h)
        with h.lock:
            chunks = list(h.chunks)
            h.chunks.clear()
        samples = np.concatenate(chunks) if chunks else np.zeros(0, dtype=np.float32)
        data = encode_wav(samples, h.target_rate)
        logger.info("Mic capture stopped", extra={"handle": h.id, "frames": int(samples.shape[0]), "elapsed_sec": h.elapsed_sec})
        blob = AudioBlob(data=data, content_type=WAV_CONTENT_TYPE, filename="recording.wav")
        return CapturedAudio(blob=blob, duration_sec=h.elapsed_sec, source="recording")

    def close_all(self) -> None:
        with self._lock:
            handles = list(self._recordings.values())
            self._recordings.clear()
        for h in handles:
            self._release(h)
            logger.info("Mic capture released on shutdown", extra={"handle": h.id})

    def _on_audio(self, handle: RecordingHandle, indata: np.ndarray) -> None:
        if handle.paused:
            return
        f32 = _to_mono_float32(indata)
        if handle.device_rate != handle.target_rate:
            f32 = soxr.resample(f32, handle.device_rate, handle.target_rate)
        with handle.lock:
            handle.chunks.append(np.array(f32, dtype=np.float32, copy=True))

    def _tick(self, handle: RecordingHandle) -> None:
        with handle.lock:
            if not handle.paused:
                handle.elapsed_sec += 1

    def _run_ticker(self, handle: RecordingHandle) -> None:
        while not handle.ticker_stop.wait(self.tick_interval):
            self._tick(handle)

    def _release(self, handle: RecordingHandle) -> None:
        handle.ticker_stop.set()
        if handle.ticker is not None and handle.ticker is not threading.current_thread():
            handle.ticker.join(timeout=1.0)
        stream = handle.stream
        if stream is None:
            return
        try:
            stream.stop()
        except _OPEN_ERRORS:
            logger.debug("Stream already stopped", extra={"handle": handle.id})
        finally:
            stream.close()


def accept_upload(
    data: bytes,
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
    max_bytes: int = 50 * 1024 * 1024,
) -> CapturedAudio:
    """Wrap an uploaded file as captured audio; duration is unknown (0)."""
    if len(data) > max_bytes:
        raise FileTooLarge(len(data), max_bytes)
    blob = AudioBlob(data=data, content_type=content_type or "application/octet-stream", filename=filename)
    return CapturedAudio(blob=blob, duration_sec=0, source="upload")
