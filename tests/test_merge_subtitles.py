import os
import sys
import zipfile

sys.path.insert(0, os.getcwd())

import pytest

from merge_subtitles import (
    SubtitleFile,
    UnsupportedInputError,
    collect_subtitle_files,
    load_subtitle_archive,
    load_subtitle_file,
    merge_subtitle_files,
    move_file,
    run_merge_subtitles,
    sort_files_by_name,
    subtitle_file_from_text,
)
from srt_parser import parse_srt_blocks

FILE_A = """1
00:00:01,000 --> 00:00:02,000
A one

2
00:00:03,000 --> 00:00:04,000
A two
"""

FILE_B = """1
00:00:00,500 --> 00:00:01,500
B one

2
00:00:02,000 --> 00:00:03,000
B two
second line

3
00:10:00,000 --> 00:10:01,000
B three
"""


def test_merge_renumbers_and_keeps_times():
    files = [subtitle_file_from_text("a.srt", FILE_A), subtitle_file_from_text("b.srt", FILE_B)]
    merged = merge_subtitle_files(files)
    blocks = parse_srt_blocks(merged)
    assert [b.sequence_id for b in blocks] == [1, 2, 3, 4, 5]
    assert [(b.start_time, b.end_time) for b in blocks] == [
        ("00:00:01,000", "00:00:02,000"),
        ("00:00:03,000", "00:00:04,000"),
        ("00:00:00,500", "00:00:01,500"),
        ("00:00:02,000", "00:00:03,000"),
        ("00:10:00,000", "00:10:01,000"),
    ]
    assert blocks[3].content == "B two\nsecond line"
    assert merged.startswith("1\n00:00:01,000 --> 00:00:02,000\nA one\n\n2\n")


def test_merge_no_files():
    assert merge_subtitle_files([]) == ""
    assert merge_subtitle_files([SubtitleFile("empty.srt")]) == ""


def test_sort_files_by_name_is_natural():
    files = [SubtitleFile(n) for n in ["10_x.srt", "2_x.srt", "1_X.srt", "B.srt", "a.srt"]]
    assert [f.name for f in sort_files_by_name(files)] == [
        "1_X.srt", "2_x.srt", "10_x.srt", "a.srt", "B.srt",
    ]


def test_move_file():
    files = [SubtitleFile(n) for n in ["a", "b", "c"]]
    assert [f.name for f in move_file(files, 1, "up")] == ["b", "a", "c"]
    assert [f.name for f in move_file(files, 1, "down")] == ["a", "c", "b"]
    assert [f.name for f in move_file(files, 0, "up")] == ["a", "b", "c"]
    assert [f.name for f in move_file(files, 2, "down")] == ["a", "b", "c"]
    # original list untouched
    assert [f.name for f in files] == ["a", "b", "c"]


def test_load_rejects_unsupported(tmp_path):
    bad = tmp_path / "notes.txt"
    bad.write_text("x", encoding="utf-8")
    with pytest.raises(UnsupportedInputError):
        load_subtitle_file(str(bad))


def test_collect_skips_unsupported_and_keeps_others(tmp_path, caplog):
    (tmp_path / "1.srt").write_text(FILE_A, encoding="utf-8")
    (tmp_path / "readme.txt").write_text("x", encoding="utf-8")
    (tmp_path / "2.srt").write_text(FILE_B, encoding="utf-8")
    broken = tmp_path / "broken.zip"
    broken.write_bytes(b"not a zip")
    caplog.set_level("ERROR")
    files = collect_subtitle_files([
        str(tmp_path / "1.srt"), str(tmp_path / "readme.txt"),
        str(broken), str(tmp_path / "2.srt"),
    ])
    assert [f.name for f in files] == ["1.srt", "2.srt"]
    assert "Not an .srt file" in caplog.text
    assert "Cannot open archive" in caplog.text


def test_collect_from_zip(tmp_path):
    archive = tmp_path / "subs.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("folder/2.srt", FILE_B)
        zf.writestr("1.srt", FILE_A)
        zf.writestr("__MACOSX/._1.srt", "junk")
        zf.writestr("folder/.hidden.srt", FILE_A)
        zf.writestr("readme.txt", "ignored")
    files = collect_subtitle_files([str(archive)])
    assert sorted(f.name for f in files) == ["1.srt", "2.srt"]


def test_load_bad_zip(tmp_path):
    archive = tmp_path / "broken.zip"
    archive.write_bytes(b"not a zip")
    with pytest.raises(UnsupportedInputError):
        load_subtitle_archive(str(archive))


def test_run_merge_subtitles_with_unsupported_input(tmp_path, caplog):
    (tmp_path / "1.srt").write_text(FILE_A, encoding="utf-8")
    (tmp_path / "readme.txt").write_text("x", encoding="utf-8")
    (tmp_path / "2.srt").write_text(FILE_B, encoding="utf-8")
    out = tmp_path / "merged.srt"
    caplog.set_level("ERROR")
    ok = run_merge_subtitles(
        [str(tmp_path / "1.srt"), str(tmp_path / "readme.txt"), str(tmp_path / "2.srt")], str(out)
    )
    assert ok is True
    blocks = parse_srt_blocks(out.read_text(encoding="utf-8"))
    assert [b.sequence_id for b in blocks] == [1, 2, 3, 4, 5]
    assert "readme.txt" in caplog.text


def test_run_merge_subtitles_sorted(tmp_path):
    (tmp_path / "10_part.srt").write_text(FILE_B, encoding="utf-8")
    (tmp_path / "2_part.srt").write_text(FILE_A, encoding="utf-8")
    out = tmp_path / "merged.srt"
    ok = run_merge_subtitles(
        [str(tmp_path / "10_part.srt"), str(tmp_path / "2_part.srt")], str(out)
    )
    assert ok is True
    blocks = parse_srt_blocks(out.read_text(encoding="utf-8"))
    assert len(blocks) == 5
    assert blocks[0].content == "A one"
    assert blocks[-1].content == "B three"


def test_run_merge_subtitles_keep_order(tmp_path):
    (tmp_path / "10_part.srt").write_text(FILE_B, encoding="utf-8")
    (tmp_path / "2_part.srt").write_text(FILE_A, encoding="utf-8")
    out = tmp_path / "merged.srt"
    assert run_merge_subtitles(
        [str(tmp_path / "10_part.srt"), str(tmp_path / "2_part.srt")], str(out), sort_by_name=False
    )
    blocks = parse_srt_blocks(out.read_text(encoding="utf-8"))
    assert blocks[0].content == "B one"


def test_run_merge_subtitles_failures(tmp_path, caplog):
    caplog.set_level("ERROR")
    assert not run_merge_subtitles([], str(tmp_path / "m.srt"))
    bad = tmp_path / "x.vtt"
    bad.write_text("WEBVTT", encoding="utf-8")
    assert not run_merge_subtitles([str(bad)], str(tmp_path / "m.srt"))
    assert "Not an .srt file" in caplog.text
