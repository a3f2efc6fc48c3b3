"""Conversion between SRT timestamps (HH:MM:SS,mmm) and integer milliseconds."""
import re
from typing import Optional, Tuple

TIMESTAMP_RE = re.compile(r'(\d{2,}):(\d{2}):(\d{2}),(\d{3})', re.ASCII)
TIMECODE_RE = re.compile(r'(\d{2}:\d{2}:\d{2},\d{3})\s*-->\s*(\d{2}:\d{2}:\d{2},\d{3})', re.ASCII)


class TimeParseError(ValueError):
    """Raised when a string is not a HH:MM:SS,mmm timestamp."""


def parse_time(text: str) -> int:
    """Convert 'HH:MM:SS,mmm' to milliseconds. Hours may exceed 99."""
    m = TIMESTAMP_RE.fullmatch(text)
    if not m:
        raise TimeParseError(f"Unparseable SRT timestamp: {text!r}")
    hours, minutes, seconds, ms = (int(g) for g in m.groups())
    return hours * 3600000 + minutes * 60000 + seconds * 1000 + ms


def format_time(ms: int) -> str:
    """Convert milliseconds back to 'HH:MM:SS,mmm'."""
    if ms < 0:
        raise ValueError(f"Negative duration: {ms}")
    total_sec, ms = divmod(int(ms), 1000)
    h, rem_sec = divmod(total_sec, 3600)
    m, s = divmod(rem_sec, 60)
    return f"{h:02d}:{m:02d}:{s:02d},{ms:03d}"


def parse_timecode_line(line: str) -> Optional[Tuple[str, str]]:
    """Return the (start, end) timestamp strings of a 'start --> end' line, or None."""
    m = TIMECODE_RE.search(line)
    if not m:
        return None
    return m.group(1), m.group(2)
