#!/usr/bin/env python3
"""
Merge several .srt files into one continuous file.

Blocks are concatenated in file order and renumbered from 1; the original
start/end times are copied unchanged. ZIP archives are expanded to the .srt
files they contain.
"""
import argparse
import logging
import os
import sys
import zipfile
from dataclasses import dataclass, field
from typing import Iterable, List

from common import natural_sort_key, setup_logging, write_text
from srt_parser import SubtitleBlock, parse_srt_blocks, read_srt_file

DEFAULT_OUTPUT_NAME = 'merged_subtitles.srt'


class UnsupportedInputError(ValueError):
    """Raised for files the merge path cannot ingest."""


@dataclass
class SubtitleFile:
    """One parsed input file."""
    name: str
    blocks: List[SubtitleBlock] = field(default_factory=list)
    size: int = 0
    raw_content: str = ''


def subtitle_file_from_text(name: str, text: str) -> SubtitleFile:
    return SubtitleFile(name=name, blocks=parse_srt_blocks(text), size=len(text), raw_content=text)


def load_subtitle_file(path: str) -> SubtitleFile:
    """Read and parse a single .srt file."""
    if not path.lower().endswith('.srt'):
        raise UnsupportedInputError(f"Not an .srt file: {path}")
    sub = subtitle_file_from_text(os.path.basename(path), read_srt_file(path))
    sub.size = os.path.getsize(path)
    return sub


def is_archive_member_wanted(member: str) -> bool:
    """True for regular, non-hidden archive members outside __MACOSX."""
    if member.endswith('/') or member.startswith('__MACOSX'):
        return False
    base = member.split('/')[-1]
    return bool(base) and not base.startswith('.')


def load_subtitle_archive(path: str) -> List[SubtitleFile]:
    """Parse every .srt member of a ZIP archive."""
    files = []
    try:
        with zipfile.ZipFile(path) as zf:
            for member in zf.namelist():
                if not is_archive_member_wanted(member) or not member.lower().endswith('.srt'):
                    continue
                text = zf.read(member).decode('utf-8-sig', errors='replace')
                files.append(subtitle_file_from_text(member.split('/')[-1], text))
    except zipfile.BadZipFile as e:
        raise UnsupportedInputError(f"Cannot open archive {path}: {e}") from e
    return files


def collect_subtitle_files(paths: Iterable[str]) -> List[SubtitleFile]:
    """
    Load .srt files and .zip archives of .srt files, in the given order.

    Unsupported or unreadable inputs are logged and skipped; the files
    collected from the other paths are still returned.
    """
    files = []
    for path in paths:
        try:
            if path.lower().endswith('.zip'):
                found = load_subtitle_archive(path)
                logging.info(f"Extracted {len(found)} .srt files from {path}")
                files.extend(found)
            else:
                files.append(load_subtitle_file(path))
        except UnsupportedInputError as e:
            logging.error(str(e))
    return files


def sort_files_by_name(files: List[SubtitleFile]) -> List[SubtitleFile]:
    """Return the files in natural name order (2.srt before 10.srt)."""
    return sorted(files, key=lambda f: natural_sort_key(f.name))


def move_file(files: List[SubtitleFile], index: int, direction: str) -> List[SubtitleFile]:
    """Swap the file at index with its neighbour ('up' or 'down')."""
    if direction not in ('up', 'down'):
        raise ValueError(f"direction must be 'up' or 'down', got {direction!r}")
    target = index - 1 if direction == 'up' else index + 1
    moved = list(files)
    if not (0 <= index < len(files)) or not (0 <= target < len(files)):
        return moved
    moved[index], moved[target] = moved[target], moved[index]
    return moved


def merge_subtitle_files(files: List[SubtitleFile]) -> str:
    """Concatenate all blocks, renumbering them 1..N across file boundaries."""
    merged = []
    global_id = 1
    for sub_file in files:
        for block in sub_file.blocks:
            merged.append(block.to_srt_block(global_id))
            global_id += 1
    return '\n\n'.join(merged)


def run_merge_subtitles(inputs: List[str], output_file: str, sort_by_name: bool = True) -> bool:
    """Merge the given .srt/.zip inputs into output_file."""
    try:
        files = collect_subtitle_files(inputs)
        if not files:
            logging.error("No .srt files to merge")
            return False
        if sort_by_name:
            files = sort_files_by_name(files)
        for sub_file in files:
            logging.info(f"{sub_file.name}: {len(sub_file.blocks)} blocks")
        merged = merge_subtitle_files(files)
        write_text(output_file, merged)
        total = sum(len(f.blocks) for f in files)
        logging.info(f"Merged {len(files)} files ({total} blocks) into {output_file}")
        return True
    except Exception as e:
        logging.error(f"Subtitle merge failed: {e}")
        return False


def main():
    setup_logging(None, 'logs/merge_subtitles.log')
    p = argparse.ArgumentParser(description='Merge several .srt files into one')
    p.add_argument('inputs', nargs='+', help='.srt files or .zip archives of .srt files')
    p.add_argument('--output-file', default=DEFAULT_OUTPUT_NAME)
    p.add_argument('--keep-order', action='store_true',
                   help='Merge in the order given instead of sorting by file name')
    args = p.parse_args()
    if not run_merge_subtitles(args.inputs, args.output_file, sort_by_name=not args.keep_order):
        sys.exit(1)


if __name__ == '__main__':
    main()
