"""Transcript and notes from a single multimodal Gemini request.

The audio goes up inline with a JSON response schema, so the model answers
with the transcript and the four notes sections in one structured document.
Errors are mapped onto the same transient/permanent taxonomy as the Groq
path and retried the same way.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Sequence

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel, Field, ValidationError

from notetaker.errors import ConfigurationError, ParseError, PermanentServiceError, classify_http_error
from notetaker.models.audio import AudioBlob
from notetaker.models.schemas import Notes, Segment
from notetaker.services.retry import call_with_retry
from notetaker.services.summarization_service import SynthesisResult

logger = logging.getLogger("notetaker.gemini")

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"

ANALYSIS_PROMPT = "Please transcribe this audio and generate meeting notes in English based on the schema."


class SpokenSegment(BaseModel):
    speaker: str = Field(description="Speaker label (e.g., Speaker 1)")
    text: str = Field(description="The spoken text in English")
    start: float = Field(default=0.0, description="Approximate start time in seconds (0 if unknown)")


class AnalysisNotes(BaseModel):
    summary: str
    action_items: List[str] = Field(default_factory=list)
    decisions: List[str] = Field(default_factory=list)
    key_points: List[str] = Field(default_factory=list)


class MeetingAnalysis(BaseModel):
    transcript: List[SpokenSegment] = Field(default_factory=list)
    notes: AnalysisNotes


def build_analysis_instruction(language: str) -> str:
    spoken = "Urdu" if language == "ur" else "English"
    return (
        "You are an expert meeting secretary and transcriber.\n"
        f"Listen to the provided meeting recording (mostly {spoken}, possibly mixed with Urdu or English) "
        "and output a structured JSON containing a transcript and organized notes IN ENGLISH.\n\n"
        "The 'transcript' field holds the spoken text split by speaker. If the audio is in Urdu, translate it "
        "to English.\n"
        "The 'summary' should be a concise paragraph in English.\n"
        "'action_items', 'decisions' and 'key_points' should be arrays of strings in English."
    )


def to_segments(spoken: Sequence[SpokenSegment]) -> List[Segment]:
    """Each segment ends where the next one starts; the last one is zero-length."""
    ordered = sorted(spoken, key=lambda s: s.start)
    segments: List[Segment] = []
    for i, item in enumerate(ordered):
        end = ordered[i + 1].start if i + 1 < len(ordered) else item.start
        segments.append(Segment(start=item.start, end=max(end, item.start), speaker=item.speaker, text=item.text))
    return segments


class GeminiNotesProvider:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_GEMINI_MODEL,
        temperature: float = 0.1,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Optional[Callable[[float], None]] = None,
        client: Any = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ConfigurationError("Gemini API Key missing. Please enter your key in settings.")
            client = genai.Client(api_key=api_key)
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def _generate(self, contents: List[types.Part], config: types.GenerateContentConfig) -> str:
        try:
            response = self._client.models.generate_content(model=self.model, contents=contents, config=config)
        except genai_errors.APIError as exc:
            raise classify_http_error(exc.code or 0, exc.message or str(exc), service="Gemini API") from exc
        text = response.text
        if not text:
            raise PermanentServiceError("No data returned from Gemini")
        return text

    def analyze(self, audio: AudioBlob, language: str = "en") -> SynthesisResult:
        contents = [
            types.Part.from_bytes(data=audio.data, mime_type=audio.content_type or "audio/wav"),
            types.Part(text=ANALYSIS_PROMPT),
        ]
        config = types.GenerateContentConfig(
            system_instruction=build_analysis_instruction(language),
            temperature=self.temperature,
            response_mime_type="application/json",
            response_json_schema=MeetingAnalysis.model_json_schema(),
        )
        kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
        raw = call_with_retry(
            lambda: self._generate(contents, config),
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            description="gemini analysis",
            **kwargs,
        )
        try:
            analysis = MeetingAnalysis.model_validate_json(raw)
        except ValidationError as exc:
            raise ParseError(f"Gemini response does not match the meeting schema: {exc.error_count()} error(s)") from exc

        notes = Notes(
            summary=analysis.notes.summary,
            action_items=analysis.notes.action_items,
            decisions=analysis.notes.decisions,
            key_points=analysis.notes.key_points,
            language="en",
        )
        segments = to_segments(analysis.transcript)
        logger.info("Gemini analysis finished", extra={"model": self.model, "segments": len(segments)})
        return SynthesisResult(notes=notes, segments=segments, model=self.model)
