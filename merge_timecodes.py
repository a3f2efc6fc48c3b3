#!/usr/bin/env python3
"""Recombine a chunk's timecode structure file with corrected text into SRT."""
import argparse
import logging
import re
import sys

from common import read_text, setup_logging, write_text


class StreamMismatchError(ValueError):
    """Raised in strict mode when timecode blocks and text lines differ in count."""

    def __init__(self, block_count: int, line_count: int):
        super().__init__(
            f"{block_count} timecode blocks but {line_count} text lines"
        )
        self.block_count = block_count
        self.line_count = line_count


def split_structure(structure: str) -> list:
    """Split a structure stream into its 'index\\ntimecode' blocks."""
    structure = structure.replace('\r\n', '\n').strip()
    if not structure:
        return []
    return [b.strip() for b in re.split(r'\n\s*\n', structure)]


def split_text_lines(corrected_text: str) -> list:
    """Split corrected text into its non-empty lines."""
    lines = corrected_text.replace('\r\n', '\n').strip().split('\n')
    return [line.strip() for line in lines if line.strip()]


def merge_timecodes(structure: str, corrected_text: str, strict: bool = False) -> str:
    """
    Pair the i-th timecode block with the i-th non-empty text line.

    When the counts differ the excess on the longer side is dropped, unless
    strict is set, in which case StreamMismatchError is raised.
    """
    blocks = split_structure(structure)
    lines = split_text_lines(corrected_text)
    if len(blocks) != len(lines):
        if strict:
            raise StreamMismatchError(len(blocks), len(lines))
        logging.warning(
            f"Timecode/text count mismatch: {len(blocks)} blocks vs {len(lines)} lines, "
            f"truncating to {min(len(blocks), len(lines))}"
        )
    out = ''
    for block, line in zip(blocks, lines):
        out += f"{block}\n{line}\n\n"
    return out.strip()


def run_merge_timecodes(structure_file: str, text_file: str, output_file: str,
                        strict: bool = False) -> bool:
    """Merge a structure file and a corrected text file into an SRT file."""
    try:
        srt = merge_timecodes(read_text(structure_file), read_text(text_file), strict=strict)
        write_text(output_file, srt)
        logging.info(f"Wrote {output_file}")
        return True
    except Exception as e:
        logging.error(f"Timecode merge failed for {structure_file}: {e}")
        return False


def main():
    setup_logging(None, 'logs/merge_timecodes.log')
    p = argparse.ArgumentParser(description='Rebuild an SRT from timecodes and corrected text')
    p.add_argument('--structure-file', required=True, help='{id}_num&timecodes.txt file')
    p.add_argument('--text-file', required=True, help='Corrected text, one subtitle per line')
    p.add_argument('--output-file', required=True)
    p.add_argument('--strict', action='store_true',
                   help='Fail instead of truncating when counts differ')
    args = p.parse_args()
    if not run_merge_timecodes(args.structure_file, args.text_file, args.output_file,
                               strict=args.strict):
        sys.exit(1)


if __name__ == '__main__':
    main()
