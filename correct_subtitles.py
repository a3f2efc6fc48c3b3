#!/usr/bin/env python3
"""
Proofread split subtitle chunks and rebuild them into .srt files.

Chunk files produced by split_subtitles.py are grouped into projects by the
prefix before the first underscore ("3_text.txt" and "3_num&timecodes.txt"
both belong to project "3"). Each project's text is sent to the correction
service, reviewed, and merged back with its timecodes.

Projects are processed in waves of at most `concurrency` items; a failing
project is marked as an error without affecting the others and can be
retried later.
"""
import argparse
import hashlib
import json
import logging
import os
import re
import sys
import threading
import time
import zipfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from common import natural_sort_key, read_text, setup_logging, write_text
from correction_client import DEFAULT_MODEL, ReferenceConfig, correct_text
from diff_review import ReviewSession, align_lines, render_review_html
from merge_subtitles import is_archive_member_wanted
from merge_timecodes import merge_timecodes

IDLE = 'idle'
PROCESSING = 'processing'
REVIEW_READY = 'review_ready'
COMPLETED = 'completed'
ERROR = 'error'

DEFAULT_CONCURRENCY = 5

CorrectFn = Callable[[str], str]


@dataclass
class ProjectEntry:
    """A timecode/text file pair and its correction state."""
    id: str
    timecode_name: Optional[str] = None
    timecode_content: Optional[str] = None
    text_name: Optional[str] = None
    text_content: Optional[str] = None
    status: str = IDLE
    original_text: str = ''
    corrected_text: str = ''
    final_srt: str = ''
    error: Optional[str] = None

    @property
    def has_files(self) -> bool:
        return self.timecode_content is not None and self.text_content is not None

    @property
    def result_file_name(self) -> str:
        return f"{self.id}_corrected.srt"


def project_id_from_filename(name: str) -> Optional[str]:
    """Return the prefix before the first underscore, or None."""
    m = re.match(r'^(.+?)_', name)
    return m.group(1) if m else None


def iter_input_files(paths: Iterable[str]) -> Iterable[Tuple[str, str]]:
    """Yield (file name, text) for plain files, folders and ZIP members."""
    for path in paths:
        if os.path.isdir(path):
            children = sorted(os.listdir(path), key=natural_sort_key)
            yield from iter_input_files(
                os.path.join(path, c) for c in children
                if os.path.isfile(os.path.join(path, c)) and not c.startswith('.')
            )
        elif path.lower().endswith('.zip'):
            try:
                with zipfile.ZipFile(path) as zf:
                    members = [(m, zf.read(m)) for m in zf.namelist() if is_archive_member_wanted(m)]
            except zipfile.BadZipFile as e:
                logging.error(f"Cannot open archive {path}: {e}")
                continue
            for member, data in members:
                yield member.split('/')[-1], data.decode('utf-8-sig', errors='replace')
        else:
            yield os.path.basename(path), read_text(path)


def pair_project_files(paths: Iterable[str],
                       existing: Optional[List[ProjectEntry]] = None) -> List[ProjectEntry]:
    """Group chunk files into projects, merging into any existing projects."""
    projects: Dict[str, ProjectEntry] = {p.id: p for p in (existing or [])}
    for name, content in iter_input_files(paths):
        project_id = project_id_from_filename(name)
        if not project_id:
            logging.debug(f"Ignoring {name}: no project id prefix")
            continue
        if 'num&timecodes' in name:
            fields = {'timecode_name': name, 'timecode_content': content}
        elif 'text' in name:
            fields = {'text_name': name, 'text_content': content}
        else:
            logging.debug(f"Ignoring {name}: neither a timecode nor a text file")
            continue

        project = projects.get(project_id, ProjectEntry(id=project_id))
        project = replace(project, **fields)
        if project.status == ERROR:
            project = replace(project, status=IDLE, error=None)
        projects[project_id] = project

    return sorted(projects.values(), key=lambda p: natural_sort_key(p.id))


def run_in_waves(items: list, worker: Callable, concurrency: int = DEFAULT_CONCURRENCY) -> list:
    """Run worker over items in consecutive waves; each wave finishes before the next."""
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")
    results = []
    with ThreadPoolExecutor(max_workers=concurrency) as executor:
        for start in range(0, len(items), concurrency):
            wave = items[start : start + concurrency]
            results.extend(executor.map(worker, wave))
    return results


def _cache_path(cache_dir: str, project_id: str) -> str:
    return os.path.join(cache_dir, f"correction_{project_id}.json")


def sha1(text: str) -> str:
    return hashlib.sha1(text.encode('utf-8')).hexdigest()


def load_cached_correction(cache_dir: str, project_id: str, source_text: str) -> Optional[str]:
    """Return a cached correction for this exact source text, if any."""
    path = _cache_path(cache_dir, project_id)
    if not os.path.isfile(path):
        return None
    try:
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logging.warning(f"Ignoring unreadable cache {path}: {e}")
        return None
    if isinstance(data, dict) and data.get('source_hash') == sha1(source_text):
        return data.get('corrected_text')
    return None


def save_cached_correction(cache_dir: str, project_id: str, source_text: str, corrected: str) -> None:
    os.makedirs(cache_dir, exist_ok=True)
    path = _cache_path(cache_dir, project_id)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, 'w', encoding='utf-8') as f:
        json.dump({
            'project_id': project_id,
            'source_hash': sha1(source_text),
            'corrected_text': corrected,
        }, f, ensure_ascii=False, indent=2)
    os.replace(tmp_path, path)


def process_project(project: ProjectEntry, correct_fn: CorrectFn,
                    cache_dir: Optional[str] = None) -> ProjectEntry:
    """Correct one project's text. Failures are recorded on the result, never raised."""
    if not project.has_files:
        return project
    raw_text = project.text_content
    try:
        corrected = load_cached_correction(cache_dir, project.id, raw_text) if cache_dir else None
        if corrected is not None:
            logging.info(f"Using cached correction for project {project.id}")
        else:
            corrected = correct_fn(raw_text)
            if cache_dir:
                save_cached_correction(cache_dir, project.id, raw_text, corrected)
        return replace(project, status=REVIEW_READY, original_text=raw_text,
                       corrected_text=corrected, error=None)
    except Exception as e:
        logging.error(f"Correction failed for project {project.id}: {e}")
        return replace(project, status=ERROR, error=str(e) or type(e).__name__)


def process_all(
    projects: List[ProjectEntry],
    correct_fn: CorrectFn,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: Optional[Callable[[int, int], None]] = None,
    cache_dir: Optional[str] = None,
    on_update: Optional[Callable[[ProjectEntry], None]] = None,
) -> List[ProjectEntry]:
    """
    Correct every idle or failed project that has both files.

    on_update, when given, is called with each project as it starts
    processing and again with its result.
    """
    by_id = {p.id: p for p in projects}
    pending = [p for p in projects if p.status in (IDLE, ERROR) and p.has_files]
    total = len(pending)
    done = 0
    lock = threading.Lock()

    def worker(project: ProjectEntry) -> ProjectEntry:
        nonlocal done
        logging.info(f"Correcting project {project.id}")
        if on_update:
            with lock:
                on_update(replace(project, status=PROCESSING, error=None))
        result = process_project(project, correct_fn, cache_dir=cache_dir)
        with lock:
            by_id[project.id] = result
            done += 1
            if on_update:
                on_update(result)
            if on_progress:
                on_progress(done, total)
        return result

    run_in_waves(pending, worker, concurrency)
    return [by_id[p.id] for p in projects]


def confirm_project(project: ProjectEntry, strict: bool = False) -> ProjectEntry:
    """Merge a reviewed project's corrected text back with its timecodes."""
    if project.status not in (REVIEW_READY, COMPLETED) or project.timecode_content is None:
        return project
    final_srt = merge_timecodes(project.timecode_content, project.corrected_text, strict=strict)
    return replace(project, status=COMPLETED, final_srt=final_srt)


def confirm_all(projects: List[ProjectEntry]) -> List[ProjectEntry]:
    return [confirm_project(p) if p.status == REVIEW_READY else p for p in projects]


def open_review(project: ProjectEntry) -> ReviewSession:
    """Start an editing session on a corrected project."""
    if project.status not in (REVIEW_READY, COMPLETED):
        raise ValueError(f"Project {project.id} has no corrected text to review")
    return ReviewSession(project.original_text, project.corrected_text)


def save_review(project: ProjectEntry, session: ReviewSession) -> ProjectEntry:
    """Store the edited lines and rebuild the final SRT."""
    if project.timecode_content is None:
        return project
    corrected = session.corrected_text
    return replace(
        project,
        corrected_text=corrected,
        final_srt=merge_timecodes(project.timecode_content, corrected),
        status=COMPLETED,
    )


def write_reviews(projects: List[ProjectEntry], review_dir: str) -> List[str]:
    """Write one HTML side-by-side review page per corrected project."""
    written = []
    for p in projects:
        if p.status not in (REVIEW_READY, COMPLETED):
            continue
        path = os.path.join(review_dir, f"{p.id}_review.html")
        alignment = align_lines(p.original_text, p.corrected_text)
        write_text(path, render_review_html(alignment, title=f"Project {p.id}"))
        written.append(path)
    return written


def write_results(projects: List[ProjectEntry], output_dir: str, archive: bool = False) -> List[str]:
    """Write each completed project's SRT, optionally bundled into a ZIP."""
    completed = [p for p in projects if p.status == COMPLETED and p.final_srt]
    written = []
    for p in completed:
        path = os.path.join(output_dir, p.result_file_name)
        write_text(path, p.final_srt)
        written.append(path)
    if archive and completed:
        zip_path = os.path.join(output_dir, f"SRT_Result_{int(time.time() * 1000)}.zip")
        with zipfile.ZipFile(zip_path, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
            for p in completed:
                zf.writestr(p.result_file_name, p.final_srt.encode('utf-8'))
        written.append(zip_path)
    return written


def run_correct_subtitles(
    inputs: List[str],
    output_dir: str,
    characters: Optional[List[str]] = None,
    movies: Optional[List[str]] = None,
    reference_files: Optional[List[str]] = None,
    cache_dir: str = '.cache',
    model: Optional[str] = None,
    concurrency: int = DEFAULT_CONCURRENCY,
    review_dir: Optional[str] = None,
    archive: bool = False,
) -> bool:
    """Correct all chunk projects found in inputs and write the rebuilt SRTs."""
    try:
        projects = pair_project_files(inputs)
        if not projects:
            logging.error("No chunk files with a project id prefix were found")
            return False
        for p in projects:
            if p.timecode_content is None:
                logging.warning(f"Project {p.id} is missing its num&timecodes file, skipping")
            elif p.text_content is None:
                logging.warning(f"Project {p.id} is missing its text file, skipping")

        config = ReferenceConfig()
        for name in characters or []:
            config.add_character(name)
        for title in movies or []:
            config.add_movie(title)
        config.files = list(reference_files or [])

        def correct_fn(text: str) -> str:
            return correct_text(text, config, model=model)

        def progress(done: int, total: int) -> None:
            logging.info(f"Progress: {done}/{total} ({done * 100 // total}%)")

        projects = process_all(projects, correct_fn, concurrency=concurrency,
                               on_progress=progress, cache_dir=cache_dir)
        failed = [p for p in projects if p.status == ERROR]
        for p in failed:
            logging.error(f"Project {p.id} failed: {p.error}")

        if review_dir:
            for path in write_reviews(projects, review_dir):
                logging.info(f"Review page written to {path}")

        projects = confirm_all(projects)
        written = write_results(projects, output_dir, archive=archive)
        logging.info(f"Wrote {len(written)} result files to {output_dir}")
        return not failed
    except Exception as e:
        logging.error(f"Subtitle correction failed: {e}")
        return False


def main():
    setup_logging(None, 'logs/correct_subtitles.log')
    p = argparse.ArgumentParser(description='Proofread split subtitle chunks and rebuild SRTs')
    p.add_argument('inputs', nargs='+', help='Chunk files, folders or .zip archives')
    p.add_argument('--output-dir', required=True, help='Folder for {id}_corrected.srt files')
    p.add_argument('--character', action='append', default=[], help='Character name (repeatable)')
    p.add_argument('--movie', action='append', default=[], help='Film title (repeatable)')
    p.add_argument('--reference-file', action='append', default=[],
                   help='Reference document (.txt/.md/.csv or image, repeatable)')
    p.add_argument('--cache-dir', default='.cache', help='Directory for correction caches')
    p.add_argument('--model', default=None,
                   help=f'OpenAI model to use (default: $CORRECTION_MODEL or {DEFAULT_MODEL})')
    p.add_argument('--concurrency', type=int, default=DEFAULT_CONCURRENCY,
                   help='Projects corrected at the same time')
    p.add_argument('--review-dir', help='Write HTML review pages to this folder')
    p.add_argument('--zip', action='store_true', help='Also bundle results into a ZIP archive')
    args = p.parse_args()
    ok = run_correct_subtitles(
        inputs=args.inputs,
        output_dir=args.output_dir,
        characters=args.character,
        movies=args.movie,
        reference_files=args.reference_file,
        cache_dir=args.cache_dir,
        model=args.model,
        concurrency=args.concurrency,
        review_dir=args.review_dir,
        archive=args.zip,
    )
    if not ok:
        sys.exit(1)


if __name__ == '__main__':
    main()
