"""Thin HTTP client for the OpenAI-compatible Groq endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from notetaker.errors import (
    ConfigurationError,
    PermanentServiceError,
    TransientServiceError,
    classify_http_error,
)
from notetaker.models.audio import AudioBlob

logger = logging.getLogger("notetaker.groq")


class GroqClient:
    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.groq.com/openai/v1",
        timeout: Optional[float] = 300.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("API Key missing. Set NT_GROQ_API_KEY or save a key in settings.")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {api_key}"})

    def list_models(self) -> List[str]:
        data = self._request("GET", "/models")
        items = data.get("data")
        if not isinstance(items, list):
            raise PermanentServiceError("Malformed model list response: missing 'data'")
        return [str(m.get("id")) for m in items if isinstance(m, dict) and m.get("id")]

    def transcribe(
        self,
        audio: AudioBlob,
        model: str,
        language: Optional[str] = None,
    ) -> Dict[str, Any]:
        """POST the audio as multipart form data, asking for segment timestamps."""
        fields: List[tuple] = [
            ("model", model),
            ("response_format", "verbose_json"),
            ("timestamp_granularities[]", "segment"),
        ]
        if language:
            fields.append(("language", language))
        files = {"file": (audio.filename or f"audio.{audio.extension}", audio.data, audio.content_type)}
        data = self._request("POST", "/audio/transcriptions", data=fields, files=files)
        if "text" not in data:
            raise PermanentServiceError("Malformed transcription response: missing 'text'")
        return data

    def chat_completion(self, model: str, messages: List[Dict[str, str]], temperature: float = 0.1) -> str:
        payload = {"model": model, "messages": messages, "temperature": temperature}
        data = self._request("POST", "/chat/completions", json=payload)
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            raise PermanentServiceError("No data returned from Groq")
        first = choices[0]
        content = (first.get("message") or {}).get("content") or first.get("text")
        if not content:
            raise PermanentServiceError("No data returned from Groq")
        return str(content)

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as exc:
            raise TransientServiceError(f"Request timeout calling {path}: {exc}") from exc
        except requests.ConnectionError as exc:
            raise TransientServiceError(f"Network error calling {path}: {exc}") from exc

        if not response.ok:
            body = response.text
            logger.error("Groq API error body", extra={"path": path, "status": response.status_code, "body": body[:2000]})
            raise classify_http_error(response.status_code, body)
        try:
            data = response.json()
        except ValueError as exc:
            raise PermanentServiceError(f"Malformed JSON from {path}") from exc
        if not isinstance(data, dict):
            raise PermanentServiceError(f"Unexpected response shape from {path}")
        return data
