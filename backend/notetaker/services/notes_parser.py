"""Parser for the section-delimited notes text returned by the chat model.

The response is expected to contain the literal headers ``SUMMARY:``,
``ACTION ITEMS:``, ``DECISIONS:``, ``KEY POINTS:`` and
``TRANSCRIPT SEGMENTS:``. Each section runs until the next header or the end
of the text. A missing section parses as empty; a response with no header at
all is a ``ParseError``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from notetaker.errors import ParseError
from notetaker.models.schemas import Segment

SUMMARY = "SUMMARY"
ACTION_ITEMS = "ACTION ITEMS"
DECISIONS = "DECISIONS"
KEY_POINTS = "KEY POINTS"
TRANSCRIPT_SEGMENTS = "TRANSCRIPT SEGMENTS"

SECTION_HEADERS = (SUMMARY, ACTION_ITEMS, DECISIONS, KEY_POINTS, TRANSCRIPT_SEGMENTS)

# Header at line start, tolerating markdown decoration such as "## " or "**"
_HEADER_RE = re.compile(
    r"^[ \t>#*_]*(" + "|".join(re.escape(h) for h in SECTION_HEADERS) + r")[ \t*_]*:[ \t*_]*",
    re.MULTILINE,
)
# "*" only counts as a bullet when followed by whitespace, so "**bold**" lines stay intact
_ITEM_RE = re.compile(r"^(?:[-•]|\*(?=\s|$)|\d+\.)\s*(.*)$")


@dataclass
class ParsedNotes:
    summary: str = ""
    action_items: List[str] = field(default_factory=list)
    decisions: List[str] = field(default_factory=list)
    key_points: List[str] = field(default_factory=list)
    segments: List[Segment] = field(default_factory=list)
    sections_found: List[str] = field(default_factory=list)


def split_sections(text: str) -> Dict[str, str]:
    matches = list(_HEADER_RE.finditer(text or ""))
    sections: Dict[str, str] = {}
    for i, m in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        # First occurrence wins if the model repeats a header
        sections.setdefault(m.group(1), text[m.end():end].strip())
    return sections


def parse_list_items(body: str) -> List[str]:
    items: List[str] = []
    for line in (body or "").splitlines():
        m = _ITEM_RE.match(line.strip())
        if m and m.group(1).strip():
            items.append(m.group(1).strip())
    return items


def parse_segments(
    body: str,
    timed: Optional[Sequence[object]] = None,
    stride_sec: float = 10.0,
) -> List[Segment]:
    """Turn ``Speaker: text`` lines into segments.

    Timestamps come positionally from the recogniser's segments (anything with
    ``start``/``end`` attributes); lines beyond those get ``stride_sec`` slots.
    """
    lines = [ln.strip() for ln in (body or "").splitlines() if ln.strip()]
    bulleted = [ln for ln in lines if _ITEM_RE.match(ln)]
    if bulleted:
        lines = bulleted
    entries: List[str] = []
    for line in lines:
        m = _ITEM_RE.match(line)
        cleaned = m.group(1).strip() if m else line
        if cleaned:
            entries.append(cleaned)
    timed = list(timed or [])

    segments: List[Segment] = []
    for index, cleaned in enumerate(entries):
        colon = cleaned.find(":")
        if colon > 0:
            speaker = cleaned[:colon].strip().strip("*_").strip()
            text = cleaned[colon + 1:].strip()
        else:
            speaker = f"Speaker {index + 1}"
            text = cleaned
        if index < len(timed):
            start = float(getattr(timed[index], "start"))
            end = float(getattr(timed[index], "end"))
        else:
            start = index * stride_sec
            end = (index + 1) * stride_sec
        segments.append(Segment(start=start, end=end, speaker=speaker, text=text))
    return segments


def parse_notes_response(
    text: str,
    timed: Optional[Sequence[object]] = None,
    stride_sec: float = 10.0,
) -> ParsedNotes:
    if not text or not text.strip():
        raise ParseError("Empty notes response")
    sections = split_sections(text)
    if not sections:
        raise ParseError("Notes response contains none of the expected section headers")
    return ParsedNotes(
        summary=sections.get(SUMMARY, ""),
        action_items=parse_list_items(sections.get(ACTION_ITEMS, "")),
        decisions=parse_list_items(sections.get(DECISIONS, "")),
        key_points=parse_list_items(sections.get(KEY_POINTS, "")),
        segments=parse_segments(sections.get(TRANSCRIPT_SEGMENTS, ""), timed, stride_sec),
        sections_found=[h for h in SECTION_HEADERS if h in sections],
    )
