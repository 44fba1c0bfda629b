"""Shared fixtures: in-memory database, fake speech/chat client, fake input stream."""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import numpy as np
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from notetaker.config import Settings
from notetaker.models.base import init_db
from notetaker.services.audio_transcoder import encode_wav


NOTES_TEXT = """SUMMARY:
The team reviewed the release plan and agreed on a date.

ACTION ITEMS:
- Alice to update the changelog
- Bob to tag the release

DECISIONS:
- Ship on Friday

KEY POINTS:
- QA sign-off is complete
- Docs need one more pass

TRANSCRIPT SEGMENTS:
- Alice: Let's go over the release.
- Bob: QA is done, we can ship Friday.
"""

TRANSCRIPTION = {
    "text": "Let's go over the release. QA is done, we can ship Friday.",
    "segments": [
        {"start": 0.0, "end": 2.5, "text": " Let's go over the release."},
        {"start": 2.5, "end": 6.0, "text": " QA is done, we can ship Friday."},
    ],
}


class FakeGroqClient:
    """Stands in for GroqClient; queued errors are raised before any canned response."""

    def __init__(
        self,
        transcription: Optional[Dict[str, Any]] = None,
        notes_text: str = NOTES_TEXT,
        models: Optional[List[str]] = None,
        transcribe_errors: Optional[List[Exception]] = None,
        chat_errors: Optional[List[Exception]] = None,
    ) -> None:
        self.transcription = transcription if transcription is not None else dict(TRANSCRIPTION)
        self.notes_text = notes_text
        self.models = models if models is not None else ["whisper-large-v3", "llama3-8b-8192"]
        self.transcribe_errors = list(transcribe_errors or [])
        self.chat_errors = list(chat_errors or [])
        self.transcribe_calls: List[Dict[str, Any]] = []
        self.chat_calls: List[Dict[str, Any]] = []

    def list_models(self) -> List[str]:
        return list(self.models)

    def transcribe(self, audio, model, language=None):
        self.transcribe_calls.append({"audio": audio, "model": model, "language": language})
        if self.transcribe_errors:
            raise self.transcribe_errors.pop(0)
        return dict(self.transcription)

    def chat_completion(self, model, messages, temperature=0.1):
        self.chat_calls.append({"model": model, "messages": messages, "temperature": temperature})
        if self.chat_errors:
            raise self.chat_errors.pop(0)
        return self.notes_text


ANALYSIS = {
    "transcript": [
        {"speaker": "Bob", "text": "QA is done, we can ship Friday.", "start": 2.5},
        {"speaker": "Alice", "text": "Let's go over the release.", "start": 0.0},
    ],
    "notes": {
        "summary": "The team reviewed the release plan and agreed on a date.",
        "action_items": ["Alice to update the changelog"],
        "decisions": ["Ship on Friday"],
        "key_points": ["QA sign-off is complete"],
    },
}


class FakeGeminiClient:
    """Stands in for ``genai.Client``; only ``models.generate_content`` is used."""

    def __init__(self, payload: Optional[str] = None, errors: Optional[List[Exception]] = None) -> None:
        self.payload = payload if payload is not None else json.dumps(ANALYSIS)
        self.errors = list(errors or [])
        self.calls: List[Dict[str, Any]] = []
        self.models = SimpleNamespace(generate_content=self.generate_content)

    def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.errors:
            raise self.errors.pop(0)
        return SimpleNamespace(text=self.payload)


class FakeInputStream:
    """Mimics sounddevice.InputStream; ``feed`` pushes a block through the callback."""

    instances: List["FakeInputStream"] = []

    def __init__(self, device=None, channels=1, dtype="float32", samplerate=16000, blocksize=4096, callback=None):
        self.device = device
        self.channels = channels
        self.samplerate = samplerate
        self.callback = callback
        self.started = 0
        self.stopped = 0
        self.closed = False
        FakeInputStream.instances.append(self)

    def start(self) -> None:
        self.started += 1

    def stop(self) -> None:
        self.stopped += 1

    def close(self) -> None:
        self.closed = True

    def feed(self, block: np.ndarray) -> None:
        self.callback(block, len(block), None, None)


def make_wav(seconds: float = 1.0, sample_rate: int = 16000) -> bytes:
    frames = int(seconds * sample_rate)
    t = np.arange(frames, dtype=np.float32) / sample_rate
    return encode_wav(0.2 * np.sin(2 * np.pi * 440.0 * t), sample_rate)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def session_factory(engine):
    return lambda: Session(engine)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        appdata_dir=tmp_path,
        data_dir=tmp_path / "data",
        audio_dir=tmp_path / "audio",
        logs_dir=tmp_path / "logs",
        database_path=tmp_path / "data" / "test.db",
        groq_api_key=None,
        outlook_client_id=None,
        gemini_api_key=None,
        notes_provider=None,
        retry_base_delay=0.0,
    )


@pytest.fixture
def fake_groq() -> FakeGroqClient:
    return FakeGroqClient()


@pytest.fixture
def wav_bytes() -> bytes:
    return make_wav(1.0)


@pytest.fixture
def fake_stream_factory():
    FakeInputStream.instances = []
    return FakeInputStream


@pytest.fixture
def device_query():
    return lambda device: {"name": "Fake Mic", "default_samplerate": 16000, "max_input_channels": 1}


@pytest.fixture
def groq_factory():
    return FakeGroqClient


@pytest.fixture
def wav_factory():
    return make_wav


@pytest.fixture
def gemini_factory():
    return FakeGeminiClient
