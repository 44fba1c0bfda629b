from __future__ import annotations

from typing import Any, Dict, Optional
import json
import logging

from pydantic import ValidationError
from sqlmodel import Session, select

from notetaker.config import Settings
from notetaker.models.setting import Setting
from notetaker.models.app_settings import (
    DEFAULT_NOTES_PROVIDER,
    NOTES_PROVIDERS,
    AppSettingsModel,
    normalize_settings_dict,
    deep_merge_dict,
)

logger = logging.getLogger("notetaker.settings")

DEFAULT_SETTINGS: Dict[str, Any] = AppSettingsModel().to_dict()


APP_SETTINGS_KEY = "app_settings"


def _defaults() -> Dict[str, Any]:
    return json.loads(json.dumps(DEFAULT_SETTINGS))


def _load_json_or_default(value_json: Optional[str]) -> Dict[str, Any]:
    if not value_json:
        return _defaults()
    try:
        parsed = json.loads(value_json)
        merged = deep_merge_dict(_defaults(), normalize_settings_dict(parsed))
        return AppSettingsModel(**merged).to_dict()
    except (ValueError, ValidationError):
        logger.warning("Stored app settings are unreadable; using defaults")
        return _defaults()


def get_app_settings(session: Session) -> Dict[str, Any]:
    stmt = select(Setting).where(Setting.key == APP_SETTINGS_KEY)
    row = session.exec(stmt).first()
    return _load_json_or_default(row.value_json if row else None)


def save_app_settings(session: Session, settings_data: Dict[str, Any]) -> Dict[str, Any]:
    current = get_app_settings(session)
    merged = deep_merge_dict(current, normalize_settings_dict(settings_data))
    normalized = AppSettingsModel(**merged).to_dict()
    payload = json.dumps(normalized, ensure_ascii=False)
    stmt = select(Setting).where(Setting.key == APP_SETTINGS_KEY)
    row = session.exec(stmt).first()
    if row is None:
        row = Setting(key=APP_SETTINGS_KEY, value_json=payload)
        session.add(row)
    else:
        row.value_json = payload
    session.commit()
    return normalized


def resolve_api_key(settings: Settings, session: Session) -> Optional[str]:
    """Environment first, then the key saved from the settings screen."""
    if settings.groq_api_key:
        return settings.groq_api_key
    return get_app_settings(session)["groq"].get("api_key")


def resolve_outlook_client_id(settings: Settings, session: Session) -> Optional[str]:
    if settings.outlook_client_id:
        return settings.outlook_client_id
    return get_app_settings(session)["calendar"].get("outlook_client_id")


def resolve_language(settings: Settings, session: Session) -> str:
    return get_app_settings(session).get("language") or settings.default_language


def resolve_provider(settings: Settings, session: Session) -> str:
    provider = (settings.notes_provider or "").strip().lower()
    if provider in NOTES_PROVIDERS:
        return provider
    return get_app_settings(session).get("provider") or DEFAULT_NOTES_PROVIDER


def resolve_gemini_api_key(settings: Settings, session: Session) -> Optional[str]:
    if settings.gemini_api_key:
        return settings.gemini_api_key
    return get_app_settings(session)["gemini"].get("api_key")
