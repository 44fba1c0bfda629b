from __future__ import annotations

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

NOTES_PROVIDERS = ("groq", "gemini")
DEFAULT_NOTES_PROVIDER = "groq"


class GroqSettings(BaseModel):
    """Credentials for the hosted speech + chat service."""

    api_key: Optional[str] = Field(default=None)


class GeminiSettings(BaseModel):
    api_key: Optional[str] = Field(default=None)


class CalendarSettings(BaseModel):
    # Azure app registration used for Outlook calendar sync
    outlook_client_id: Optional[str] = Field(default=None)


class AppSettingsModel(BaseModel):
    groq: GroqSettings = Field(default_factory=GroqSettings)
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    calendar: CalendarSettings = Field(default_factory=CalendarSettings)
    # "groq" or "gemini"; None → config default
    provider: Optional[str] = Field(default=None)
    # Optional fixed language hint (e.g. "en", "ur"); None → config default
    language: Optional[str] = Field(default=None)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


def deep_merge_dict(dst: Dict[str, Any], src: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            dst[k] = deep_merge_dict(dict(dst.get(k, {})), v)
        else:
            dst[k] = v
    return dst


def _clean_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def normalize_settings_dict(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only the supported sections of a settings payload.

    Unknown keys are dropped; blank strings become None. Sections absent from
    ``raw`` are left out so a partial update does not reset them.
    """
    result: Dict[str, Any] = {}
    if not isinstance(raw, dict):
        return result

    groq_in = raw.get("groq")
    if isinstance(groq_in, dict) and "api_key" in groq_in:
        result["groq"] = {"api_key": _clean_str(groq_in.get("api_key"))}

    gemini_in = raw.get("gemini")
    if isinstance(gemini_in, dict) and "api_key" in gemini_in:
        result["gemini"] = {"api_key": _clean_str(gemini_in.get("api_key"))}

    cal_in = raw.get("calendar")
    if isinstance(cal_in, dict) and "outlook_client_id" in cal_in:
        result["calendar"] = {"outlook_client_id": _clean_str(cal_in.get("outlook_client_id"))}

    if "provider" in raw:
        provider = (_clean_str(raw.get("provider")) or "").lower()
        result["provider"] = provider if provider in NOTES_PROVIDERS else None

    if "language" in raw:
        result["language"] = _clean_str(raw.get("language"))
    return result
