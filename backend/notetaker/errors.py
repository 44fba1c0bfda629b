"""Error taxonomy for capture, upload and the remote speech/chat services."""

from __future__ import annotations

from typing import Optional


_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "429",
    "rate limit",
    "rate_limit",
    "network",
    "timeout",
    "timed out",
    "connection",
)


class NotetakerError(Exception):
    """Base class for all errors raised by this package."""


class PermissionDenied(NotetakerError):
    """The microphone could not be acquired; capture did not start."""


class FileTooLarge(NotetakerError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"File size too large ({size} bytes, max {limit} bytes)")
        self.size = size
        self.limit = limit


class ConfigurationError(NotetakerError):
    """Required configuration (e.g. the API key) is missing."""


class CaptureNotFound(NotetakerError):
    pass


class MeetingConflict(NotetakerError):
    """The target meeting is not in a state that accepts new audio."""

    def __init__(self, meeting_id: str, status: str) -> None:
        super().__init__(f"Meeting {meeting_id} is {status}; only scheduled meetings accept new audio")
        self.meeting_id = meeting_id
        self.status = status



class AudioDecodeError(NotetakerError):
    """Input audio could not be decoded into PCM samples."""


class ParseError(NotetakerError):
    """The notes response had none of the expected section headers."""


class ServiceError(NotetakerError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientServiceError(ServiceError):
    """Rate limiting, network failure or timeout. Safe to retry."""


class PermanentServiceError(ServiceError):
    """Any other non-2xx or malformed response. Never retried."""


def has_transient_signature(message: str) -> bool:
    msg = (message or "").lower()
    return any(p in msg for p in _TRANSIENT_PATTERNS)


def is_transient(exc: BaseException) -> bool:
    """Classify an exception as retry-worthy.

    Typed service errors carry their own classification; anything else is
    matched against known transient signatures in its message.
    """
    if isinstance(exc, TransientServiceError):
        return True
    if isinstance(exc, NotetakerError):
        return False
    return has_transient_signature(str(exc))


def classify_http_error(status_code: int, body: str, service: str = "Groq API") -> ServiceError:
    message = f"{service} error: {status_code} - {body}"
    if status_code == 429 or has_transient_signature(body):
        return TransientServiceError(message, status_code=status_code)
    return PermanentServiceError(message, status_code=status_code)
