"""Parse SubRip (.srt) text into subtitle records.

Two variants are provided:

- parse_srt_entries: keeps the index and timecode lines as raw strings and
  strips the text. Used when splitting a file into chunks.
- parse_srt_blocks: decomposes the timecode into start/end times (string and
  milliseconds) and keeps the content verbatim. Used when merging files.

Malformed blocks are dropped without failing the parse.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from common import read_text
from srt_time import parse_time, parse_timecode_line

ENTRY_SEPARATOR_RE = re.compile(r'\n\n+')
BLOCK_SEPARATOR_RE = re.compile(r'\n\s*\n')


@dataclass(frozen=True)
class SubtitleEntry:
    """Raw subtitle record with pass-through index and timecode strings."""
    index: str
    timecode: str
    text: str


@dataclass(frozen=True)
class SubtitleBlock:
    """Subtitle record with parsed timestamps."""
    sequence_id: Optional[int]
    start_time: str
    end_time: str
    start_time_ms: int
    end_time_ms: int
    content: str

    def to_srt_block(self, sequence_id: Optional[int] = None) -> str:
        """Serialize the block, optionally under a new sequence number."""
        number = self.sequence_id if sequence_id is None else sequence_id
        return f"{number}\n{self.start_time} --> {self.end_time}\n{self.content}"


def normalize_srt_text(content: str) -> str:
    """Drop a byte-order mark, convert CRLF to LF and trim the document."""
    if content.startswith('\ufeff'):
        content = content[1:]
    return content.replace('\r\n', '\n').strip()


def parse_srt_entries(content: str) -> List[SubtitleEntry]:
    """Parse SRT text into SubtitleEntry records for chunking."""
    normalized = normalize_srt_text(content)
    if not normalized:
        return []

    entries = []
    for pos, block in enumerate(ENTRY_SEPARATOR_RE.split(normalized), start=1):
        lines = block.split('\n')
        if len(lines) < 3:
            logging.debug(f"Skipping block {pos}: fewer than 3 lines")
            continue
        index = lines[0].strip()
        timecode = lines[1].strip()
        text = '\n'.join(lines[2:]).strip()
        if not (index and timecode and text):
            logging.debug(f"Skipping block {pos}: empty index, timecode or text")
            continue
        if parse_timecode_line(timecode) is None:
            logging.debug(f"Skipping block {pos}: bad timecode line {timecode!r}")
            continue
        entries.append(SubtitleEntry(index, timecode, text))
    return entries


def _parse_sequence_id(line: str) -> Optional[int]:
    m = re.match(r'\s*([+-]?\d+)', line)
    return int(m.group(1)) if m else None


def parse_srt_blocks(content: str) -> List[SubtitleBlock]:
    """Parse SRT text into SubtitleBlock records for merging."""
    normalized = normalize_srt_text(content)
    if not normalized:
        return []

    blocks = []
    for pos, raw in enumerate(BLOCK_SEPARATOR_RE.split(normalized), start=1):
        lines = raw.split('\n')
        if len(lines) < 3:
            logging.debug(f"Skipping block {pos}: fewer than 3 lines")
            continue
        times = parse_timecode_line(lines[1])
        if times is None:
            logging.debug(f"Skipping block {pos}: bad timecode line {lines[1]!r}")
            continue
        start, end = times
        blocks.append(
            SubtitleBlock(
                sequence_id=_parse_sequence_id(lines[0]),
                start_time=start,
                end_time=end,
                start_time_ms=parse_time(start),
                end_time_ms=parse_time(end),
                content='\n'.join(lines[2:]),
            )
        )
    return blocks


def read_srt_file(path: str) -> str:
    """Read an SRT file from disk as text."""
    return read_text(path)
