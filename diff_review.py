#!/usr/bin/env python3
"""
Line-by-line review of corrected subtitle text against the original.

Line i of the original is compared with line i of the corrected text. Rows
that differ get a character-level diff (diff-match-patch with semantic
cleanup). Each run of non-whitespace deletions/insertions is tagged with a
change-group id so a deletion on the left can be matched with its insertion
on the right. The id counter runs across the whole document.
"""
import argparse
import html
import logging
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from diff_match_patch import diff_match_patch

from common import read_text, setup_logging, write_text

DIFF_DELETE = -1
DIFF_INSERT = 1
DIFF_EQUAL = 0

EQUAL = 'equal'
DELETE = 'delete'
INSERT = 'insert'


@dataclass(frozen=True)
class DiffSpan:
    kind: str
    text: str
    change_id: Optional[int] = None


@dataclass
class DiffRow:
    line_number: int
    original: str
    corrected: str
    left: List[DiffSpan] = field(default_factory=list)
    right: List[DiffSpan] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.original != self.corrected


@dataclass
class DiffAlignment:
    rows: List[DiffRow]
    change_count: int

    @property
    def changed_rows(self) -> List[DiffRow]:
        return [r for r in self.rows if r.changed]


def char_diff(original: str, corrected: str) -> List[Tuple[int, str]]:
    """Character diff of two strings followed by a semantic cleanup pass."""
    dmp = diff_match_patch()
    diffs = dmp.diff_main(original, corrected)
    dmp.diff_cleanupSemantic(diffs)
    return [(op, text) for op, text in diffs]


def diff_row(original: str, corrected: str, counter: int,
             line_number: int = 0) -> Tuple[DiffRow, int]:
    """
    Build one review row and return it with the updated change-group counter.

    Identical lines consume no ids.
    """
    row = DiffRow(line_number, original, corrected)
    if original == corrected:
        row.left.append(DiffSpan(EQUAL, original))
        row.right.append(DiffSpan(EQUAL, corrected))
        return row, counter

    current_id = None
    inside_change = False
    for op, text in char_diff(original, corrected):
        if op == DIFF_EQUAL:
            row.left.append(DiffSpan(EQUAL, text))
            row.right.append(DiffSpan(EQUAL, text))
            inside_change = False
            continue

        side = row.left if op == DIFF_DELETE else row.right
        kind = DELETE if op == DIFF_DELETE else INSERT
        if not text.strip():
            # whitespace-only edits are shown plainly and leave the run as is
            side.append(DiffSpan(kind, text))
            continue
        if not inside_change:
            counter += 1
            current_id = counter
            inside_change = True
        side.append(DiffSpan(kind, text, current_id))
    return row, counter


def align_lines(original_text: str, corrected: Union[str, Sequence[str]],
                start: int = 0) -> DiffAlignment:
    """Compare two texts line by line; missing lines count as empty."""
    original_lines = original_text.split('\n')
    corrected_lines = corrected.split('\n') if isinstance(corrected, str) else list(corrected)

    rows = []
    counter = start
    for i in range(max(len(original_lines), len(corrected_lines))):
        o = original_lines[i] if i < len(original_lines) else ''
        c = corrected_lines[i] if i < len(corrected_lines) else ''
        row, counter = diff_row(o, c, counter, line_number=i + 1)
        rows.append(row)
    return DiffAlignment(rows, counter - start)


class ReviewSession:
    """Editable corrected text whose diff is recomputed on every read."""

    def __init__(self, original_text: str, corrected_text: str):
        self.original_text = original_text
        self.lines = corrected_text.split('\n')

    def update_line(self, index: int, text: str) -> None:
        if not 0 <= index < len(self.lines):
            raise IndexError(f"line {index} out of range (0-{len(self.lines) - 1})")
        self.lines[index] = text

    @property
    def corrected_text(self) -> str:
        return '\n'.join(self.lines)

    @property
    def alignment(self) -> DiffAlignment:
        return align_lines(self.original_text, self.lines)

    @property
    def rows(self) -> List[DiffRow]:
        return self.alignment.rows


REVIEW_HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="ko">
<head>
  <meta charset="utf-8" />
  <title>{title}</title>
  <style>{css}</style>
</head>
<body>
  <h1>{title}</h1>
  <p class="summary">{changed} of {total} lines changed, {changes} change groups</p>
  <table>
    <thead><tr><th>#</th><th>Original</th><th>Corrected</th></tr></thead>
    <tbody>
{rows}
    </tbody>
  </table>
</body>
</html>
"""

REVIEW_CSS = """
body { font-family: system-ui, sans-serif; margin: 16px; }
table { border-collapse: collapse; width: 100%; }
td, th { border-bottom: 1px solid #eee; padding: 4px 8px; vertical-align: top; text-align: left; white-space: pre-wrap; }
td.num { color: #999; width: 3em; }
tr.changed { background: #fffbe6; }
.diff-del { background: #fde2e2; color: #b91c1c; text-decoration: line-through; }
.diff-ins { background: #dcfce7; color: #15803d; }
.diff-index { font-size: 10px; color: #6366f1; margin-left: 1px; user-select: none; }
"""


def render_spans(spans: List[DiffSpan]) -> str:
    """Render one side of a row as HTML spans."""
    out = []
    for span in spans:
        text = html.escape(span.text)
        if span.change_id is None:
            out.append(f'<span>{text}</span>')
            continue
        css = 'diff-del' if span.kind == DELETE else 'diff-ins'
        out.append(f'<span class="{css}">{text}<sup class="diff-index">{span.change_id}</sup></span>')
    return ''.join(out)


def render_review_html(alignment: DiffAlignment, title: str = 'Subtitle review') -> str:
    """Render a side-by-side HTML page for an alignment."""
    rows = []
    for row in alignment.rows:
        cls = ' class="changed"' if row.changed else ''
        rows.append(
            f'      <tr{cls}><td class="num">{row.line_number}</td>'
            f'<td>{render_spans(row.left)}</td><td>{render_spans(row.right)}</td></tr>'
        )
    return REVIEW_HTML_TEMPLATE.format(
        title=html.escape(title),
        css=REVIEW_CSS,
        changed=len(alignment.changed_rows),
        total=len(alignment.rows),
        changes=alignment.change_count,
        rows='\n'.join(rows),
    )


def run_diff_review(original_file: str, corrected_file: str, output_file: str) -> bool:
    """Write an HTML review page comparing two text files line by line."""
    try:
        alignment = align_lines(read_text(original_file), read_text(corrected_file))
        write_text(output_file, render_review_html(alignment, title=corrected_file))
        logging.info(
            f"{len(alignment.changed_rows)} changed lines, {alignment.change_count} "
            f"change groups; review written to {output_file}"
        )
        return True
    except Exception as e:
        logging.error(f"Diff review failed for {corrected_file}: {e}")
        return False


def main():
    setup_logging(None, 'logs/diff_review.log')
    p = argparse.ArgumentParser(description='Side-by-side review of corrected subtitle text')
    p.add_argument('--original-file', required=True)
    p.add_argument('--corrected-file', required=True)
    p.add_argument('--output-file', required=True, help='HTML file to write')
    args = p.parse_args()
    if not run_diff_review(args.original_file, args.corrected_file, args.output_file):
        sys.exit(1)


if __name__ == '__main__':
    main()
