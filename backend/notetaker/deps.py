from __future__ import annotations

from functools import lru_cache
from typing import Callable, Iterator

from fastapi import Depends, Request
from sqlmodel import Session

from notetaker.config import Settings
from notetaker.errors import ConfigurationError
from notetaker.models.app_settings import DEFAULT_NOTES_PROVIDER
from notetaker.models.base import engine
from notetaker.repositories.settings import (
    resolve_api_key,
    resolve_gemini_api_key,
    resolve_language,
    resolve_provider,
)
from notetaker.services.audio_capture import AudioRecorder
from notetaker.services.audio_store import AudioStore
from notetaker.services.audio_transcoder import AudioTranscoder
from notetaker.services.gemini_client import GeminiNotesProvider
from notetaker.services.groq_client import GroqClient
from notetaker.services.pipeline import MeetingPipeline
from notetaker.services.summarization_service import NotesSynthesizer
from notetaker.services.transcription_service import TranscriptionClient


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def get_session_factory() -> Callable[[], Session]:
    return lambda: Session(engine)


def get_session(factory: Callable[[], Session] = Depends(get_session_factory)) -> Iterator[Session]:
    with factory() as session:
        yield session


def get_recorder(request: Request) -> AudioRecorder:
    return request.app.state.recorder


def get_audio_store(settings: Settings = Depends(get_settings)) -> AudioStore:
    return AudioStore(settings.audio_dir)


def build_pipeline(
    settings: Settings,
    api_key: str | None,
    session_factory: Callable[[], Session],
    default_language: str | None = None,
    provider: str = DEFAULT_NOTES_PROVIDER,
) -> MeetingPipeline:
    common = dict(
        session_factory=session_factory,
        transcoder=AudioTranscoder(),
        audio_store=AudioStore(settings.audio_dir),
        max_upload_bytes=settings.max_upload_bytes,
        default_language=default_language or settings.default_language,
    )
    if provider == "gemini":
        analyzer = GeminiNotesProvider(
            api_key,
            model=settings.gemini_model,
            temperature=settings.chat_temperature,
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
        )
        return MeetingPipeline(analyzer=analyzer, **common)

    if not api_key:
        raise ConfigurationError("API Key missing. Please enter your key in settings.")
    client = GroqClient(api_key, base_url=settings.groq_base_url, timeout=settings.request_timeout)
    return MeetingPipeline(
        transcriber=TranscriptionClient(
            client,
            model=settings.transcription_model,
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            long_audio_threshold_sec=settings.long_audio_threshold_sec,
        ),
        synthesizer=NotesSynthesizer(
            client,
            preferred_models=settings.preferred_chat_models,
            default_model=settings.default_chat_model,
            temperature=settings.chat_temperature,
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            segment_stride_sec=settings.segment_stride_sec,
        ),
        **common,
    )


def get_pipeline(
    settings: Settings = Depends(get_settings),
    session: Session = Depends(get_session),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> MeetingPipeline:
    provider = resolve_provider(settings, session)
    api_key = resolve_gemini_api_key(settings, session) if provider == "gemini" else resolve_api_key(settings, session)
    return build_pipeline(
        settings,
        api_key,
        session_factory,
        default_language=resolve_language(settings, session),
        provider=provider,
    )
