from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from notetaker.errors import ServiceError
from notetaker.models.schemas import Notes, Segment
from notetaker.services.groq_client import GroqClient
from notetaker.services.notes_parser import SECTION_HEADERS, parse_notes_response
from notetaker.services.retry import call_with_retry
from notetaker.services.transcription_service import TimedSegment

logger = logging.getLogger("notetaker.summarization")

DEFAULT_PREFERRED_MODELS = ["llama3-8b-8192", "llama3-70b-8192", "mixtral-8x7b-32768", "gemma-7b-it"]
DEFAULT_CHAT_MODEL = "llama3-8b-8192"


@dataclass
class SynthesisResult:
    notes: Notes
    segments: List[Segment] = field(default_factory=list)
    model: str = ""


def build_system_instruction(language: str) -> str:
    spoken = "URDU" if language == "ur" else "ENGLISH"
    return (
        f"You are an expert meeting secretary and transcriber specializing in {spoken} meetings.\n\n"
        "Your task is to analyze the provided meeting transcript and generate structured, professional meeting notes.\n\n"
        "IMPORTANT GUIDELINES:\n"
        "- SUMMARY: Write a concise paragraph that captures the overall purpose, main topics discussed, and outcomes "
        "of the meeting. Do not include speaker names or specific quotes.\n"
        "- ACTION ITEMS: List only specific, actionable tasks that were assigned or agreed upon. Each item should be "
        "a clear task without speaker names or transcript references.\n"
        "- DECISIONS: List only the key decisions that were made during the meeting. Each decision should be a clear "
        "statement of what was decided, without speaker names.\n"
        "- KEY POINTS: List the most important points, insights, or information shared during the meeting. Avoid "
        "including speaker names or direct quotes unless essential.\n"
        "- TRANSCRIPT SEGMENTS: Break down the transcript into logical speaker segments. Identify speakers by context "
        '(e.g., "Speaker 1", "John", "Manager") and provide their spoken text.\n\n'
        "Ensure each section contains ONLY relevant content for that section. Do not mix speaker dialogue into action "
        "items, decisions, or key points."
    )


def build_user_message(transcript_text: str) -> str:
    return (
        "Please analyze this meeting transcript and generate structured notes:\n\n"
        f"Transcript: {transcript_text}\n\n"
        "Format your response with these exact section headers:\n\n"
        "SUMMARY:\n[Write a concise paragraph summary of the entire meeting]\n\n"
        "ACTION ITEMS:\n- [Action item 1]\n- [Action item 2]\n\n"
        "DECISIONS:\n- [Decision 1]\n- [Decision 2]\n\n"
        "KEY POINTS:\n- [Key point 1]\n- [Key point 2]\n\n"
        "TRANSCRIPT SEGMENTS:\n- Speaker 1: [text]\n- Speaker 2: [text]"
    )


def pick_chat_model(available: Sequence[str], preferred: Sequence[str], default: str) -> str:
    # Transcription models cannot serve chat completions
    chat_models = [m for m in available if "whisper" not in m.lower()]
    for model in preferred:
        if model in chat_models:
            return model
    return chat_models[0] if chat_models else default


class NotesSynthesizer:
    def __init__(
        self,
        client: GroqClient,
        preferred_models: Optional[Sequence[str]] = None,
        default_model: str = DEFAULT_CHAT_MODEL,
        temperature: float = 0.1,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        segment_stride_sec: float = 10.0,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._client = client
        self.preferred_models = list(preferred_models or DEFAULT_PREFERRED_MODELS)
        self.default_model = default_model
        self.temperature = temperature
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.segment_stride_sec = segment_stride_sec
        self._sleep = sleep

    def select_model(self) -> str:
        try:
            available = self._client.list_models()
        except ServiceError as exc:
            logger.warning("Could not list models, using default %s: %s", self.default_model, exc)
            available = []
        return pick_chat_model(available, self.preferred_models, self.default_model)

    def synthesize(
        self,
        transcript_text: str,
        language: str = "en",
        timed_segments: Optional[Sequence[TimedSegment]] = None,
    ) -> SynthesisResult:
        model = self.select_model()
        messages = [
            {"role": "system", "content": build_system_instruction(language)},
            {"role": "user", "content": build_user_message(transcript_text)},
        ]
        kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
        content = call_with_retry(
            lambda: self._client.chat_completion(model, messages, temperature=self.temperature),
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            description="notes synthesis",
            **kwargs,
        )
        parsed = parse_notes_response(content, timed_segments, self.segment_stride_sec)
        missing = len(SECTION_HEADERS) - len(parsed.sections_found)
        if missing:
            logger.warning("Notes response missing %d section(s); found %s", missing, parsed.sections_found)
        notes = Notes(
            summary=parsed.summary,
            action_items=parsed.action_items,
            decisions=parsed.decisions,
            key_points=parsed.key_points,
            language=language,
        )
        logger.info("Notes synthesized", extra={"model": model, "segments": len(parsed.segments)})
        return SynthesisResult(notes=notes, segments=parsed.segments, model=model)
