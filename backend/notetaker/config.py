from __future__ import annotations

from pathlib import Path
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings
import os


def _appdata_root() -> Path:
    base = os.getenv("APPDATA") or str(Path.home() / ".local" / "share")
    return Path(base) / "MeetingNotetaker"


class Settings(BaseSettings):
    app_name: str = "Meeting Notetaker"

    # Base roaming app data dir (e.g., %APPDATA%\MeetingNotetaker)
    appdata_dir: Path = Field(default_factory=_appdata_root)
    data_dir: Path = Field(default_factory=lambda: _appdata_root() / "data")
    audio_dir: Path = Field(default_factory=lambda: _appdata_root() / "audio")
    logs_dir: Path = Field(default_factory=lambda: _appdata_root() / "logs")

    database_path: Path = Field(default_factory=lambda: _appdata_root() / "data" / "notetaker.db")

    # Speech + chat service (OpenAI-compatible Groq endpoints)
    groq_api_key: Optional[str] = None
    groq_base_url: str = "https://api.groq.com/openai/v1"
    transcription_model: str = "whisper-large-v3"
    default_language: str = "en"
    preferred_chat_models: List[str] = Field(
        default_factory=lambda: ["llama3-8b-8192", "llama3-70b-8192", "mixtral-8x7b-32768", "gemma-7b-it"]
    )
    default_chat_model: str = "llama3-8b-8192"
    chat_temperature: float = 0.1

    # "groq" (Whisper + chat model) or "gemini" (one multimodal call); unset defers to stored settings
    notes_provider: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"

    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0  # seconds, doubled on every retry
    request_timeout: float = 300.0  # seconds per HTTP call

    # Capture
    capture_sample_rate: int = 16000
    capture_blocksize: int = 4096
    capture_tick_interval: float = 1.0

    max_upload_bytes: int = 50 * 1024 * 1024
    long_audio_threshold_sec: float = 900.0
    segment_stride_sec: float = 10.0

    # Outlook calendar
    outlook_client_id: Optional[str] = None
    calendar_authority: str = "https://login.microsoftonline.com/common"
    calendar_lookahead_days: int = 7

    class Config:
        env_prefix = "NT_"
        case_sensitive = False

    def ensure_dirs(self) -> None:
        for d in [self.appdata_dir, self.data_dir, self.audio_dir, self.logs_dir]:
            d.mkdir(parents=True, exist_ok=True)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
