#!/usr/bin/env python3
"""
Split a large .srt file into numbered chunks for external correction.

Each chunk produces two files that can later be recombined by position:
  - {id}_num&timecodes.txt : "index\\ntimecode" pairs separated by blank lines
  - {id}_text.txt          : the subtitle texts separated by blank lines
"""
import argparse
import logging
import os
import sys
import zipfile
from dataclasses import dataclass
from typing import List

from common import setup_logging, write_text
from srt_parser import SubtitleEntry, parse_srt_entries, read_srt_file

DEFAULT_CHUNK_SIZE = 100


def structure_file_name(chunk_id: int) -> str:
    return f"{chunk_id}_num&timecodes.txt"


def text_file_name(chunk_id: int) -> str:
    return f"{chunk_id}_text.txt"


@dataclass(frozen=True)
class Chunk:
    """One fixed-size group of entries and its two textual artifacts."""
    id: int
    index_start: int
    index_end: int
    structure_content: str
    text_content: str

    @property
    def structure_file_name(self) -> str:
        return structure_file_name(self.id)

    @property
    def text_file_name(self) -> str:
        return text_file_name(self.id)


def chunk_entries(entries: List[SubtitleEntry], size: int = DEFAULT_CHUNK_SIZE) -> List[Chunk]:
    """Partition entries into consecutive chunks of at most `size` entries."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    chunks = []
    for i in range(0, len(entries), size):
        group = entries[i : i + size]
        chunk_id = i // size + 1
        chunks.append(
            Chunk(
                id=chunk_id,
                index_start=i + 1,
                index_end=i + len(group),
                structure_content='\n\n'.join(f"{e.index}\n{e.timecode}" for e in group),
                text_content='\n\n'.join(e.text for e in group),
            )
        )
    return chunks


def write_chunks(chunks: List[Chunk], output_dir: str) -> List[str]:
    """Write every chunk's structure and text files; return the written paths."""
    os.makedirs(output_dir, exist_ok=True)
    written = []
    for chunk in chunks:
        for name, content in (
            (chunk.structure_file_name, chunk.structure_content),
            (chunk.text_file_name, chunk.text_content),
        ):
            path = os.path.join(output_dir, name)
            write_text(path, content)
            written.append(path)
    return written


def write_chunk_archive(chunks: List[Chunk], archive_path: str) -> str:
    """Bundle every chunk artifact into a single ZIP archive."""
    parent = os.path.dirname(archive_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with zipfile.ZipFile(archive_path, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
        for chunk in chunks:
            zf.writestr(chunk.structure_file_name, chunk.structure_content.encode('utf-8'))
            zf.writestr(chunk.text_file_name, chunk.text_content.encode('utf-8'))
    return archive_path


def archive_name_for(input_file: str) -> str:
    stem = os.path.splitext(os.path.basename(input_file))[0]
    return f"{stem}_AI_split.zip"


def run_split_subtitles(
    input_file: str,
    output_dir: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    archive: bool = False,
) -> bool:
    """Split an SRT file into chunk artifacts under output_dir."""
    try:
        if not input_file.lower().endswith('.srt'):
            logging.error(f"Only .srt files can be split: {input_file}")
            return False
        if chunk_size < 1:
            logging.error("chunk_size must be >= 1")
            return False

        logging.info(f"Loading subtitles from {input_file}")
        entries = parse_srt_entries(read_srt_file(input_file))
        logging.info(f"Loaded {len(entries)} subtitle entries")
        if not entries:
            logging.warning(f"No valid subtitle entries found in {input_file}")

        chunks = chunk_entries(entries, chunk_size)
        logging.info(f"Divided into {len(chunks)} chunks (size={chunk_size})")
        for chunk in chunks:
            logging.info(f"Chunk {chunk.id}: entries {chunk.index_start}-{chunk.index_end}")

        write_chunks(chunks, output_dir)
        if archive:
            archive_path = os.path.join(output_dir, archive_name_for(input_file))
            write_chunk_archive(chunks, archive_path)
            logging.info(f"Wrote archive {archive_path}")
        return True
    except Exception as e:
        logging.error(f"Splitting failed for {input_file}: {e}")
        return False


def main():
    setup_logging(None, 'logs/split_subtitles.log')
    p = argparse.ArgumentParser(description='Split an .srt file into timecode/text chunks')
    p.add_argument('--input-file', required=True, help='Source .srt file')
    p.add_argument('--output-dir', required=True, help='Folder for the chunk files')
    p.add_argument('--chunk-size', type=int, default=DEFAULT_CHUNK_SIZE,
                   help='Number of subtitles per chunk')
    p.add_argument('--zip', action='store_true', help='Also bundle the chunks into a ZIP archive')
    args = p.parse_args()
    if not run_split_subtitles(args.input_file, args.output_dir, args.chunk_size, archive=args.zip):
        sys.exit(1)


if __name__ == '__main__':
    main()
