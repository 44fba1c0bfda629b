from __future__ import annotations

import re
from typing import Optional, Tuple

from notetaker.models.schemas import MeetingDetail


def export_filename(title: str, kind: str) -> str:
    slug = re.sub(r"[^a-z0-9]", "_", (title or "meeting").lower())
    return f"{slug}_{kind}.txt"


def _header(label: str, meeting: MeetingDetail) -> str:
    return f"{label}: {meeting.title}\nDATE: {meeting.created_at:%Y-%m-%d %H:%M:%S}\n\n"


def _block(title: str, items: list) -> str:
    lines = [title, "-" * len(title)]
    lines.extend(f"- {item}" for item in items)
    return "\n".join(lines) + "\n"


def render_notes_text(meeting: MeetingDetail) -> Optional[str]:
    notes = meeting.notes
    if notes is None:
        return None
    parts = [
        _header("MEETING", meeting),
        f"SUMMARY\n-------\n{notes.summary}\n\n",
        _block("ACTION ITEMS", notes.action_items) + "\n",
        _block("DECISIONS", notes.decisions) + "\n",
        _block("KEY POINTS", notes.key_points),
    ]
    return "".join(parts)


def render_transcript_text(meeting: MeetingDetail) -> Optional[str]:
    if meeting.transcript is None:
        return None
    lines = []
    for seg in meeting.transcript:
        mins = int(seg.start // 60)
        secs = int(seg.start % 60)
        lines.append(f"[{mins}:{secs:02d}] {seg.speaker}: {seg.text}\n")
    return _header("TRANSCRIPT", meeting) + "".join(lines)


def render_export(meeting: MeetingDetail, kind: str) -> Optional[Tuple[str, str]]:
    """Return (filename, text) for ``kind`` in {notes, transcript}, or None if there is nothing to export."""
    if kind == "notes":
        text = render_notes_text(meeting)
    elif kind == "transcript":
        text = render_transcript_text(meeting)
    else:
        raise ValueError(f"Unknown export kind: {kind}")
    if text is None:
        return None
    return export_filename(meeting.title, kind), text
