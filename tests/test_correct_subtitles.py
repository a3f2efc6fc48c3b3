import os
import sys
import threading
import time
import zipfile

sys.path.insert(0, os.getcwd())

import pytest

import correct_subtitles as cs
from split_subtitles import chunk_entries, write_chunks
from srt_parser import parse_srt_blocks, parse_srt_entries

SRT_SAMPLE = """1
00:00:00,000 --> 00:00:01,000
안녕하세요.

2
00:00:01,000 --> 00:00:02,000
반갑 습니다.

3
00:00:02,000 --> 00:00:03,000
인셉션 봤어?
"""


def fake_correct(text):
    # mimic the proofreader: drop final periods, fix spacing, keep line count
    lines = [line.rstrip(".") for line in text.split("\n")]
    return "\n".join(lines).replace("반갑 습니다", "반갑습니다")


def write_chunk_dir(tmp_path, chunk_size=2):
    chunks = chunk_entries(parse_srt_entries(SRT_SAMPLE), size=chunk_size)
    work = tmp_path / "work"
    write_chunks(chunks, str(work))
    return work


def test_project_id_from_filename():
    assert cs.project_id_from_filename("12_text.txt") == "12"
    assert cs.project_id_from_filename("ep1_part_num&timecodes.txt") == "ep1"
    assert cs.project_id_from_filename("notes.txt") is None


def test_pair_project_files_from_folder(tmp_path):
    work = write_chunk_dir(tmp_path)
    (work / "readme.md").write_text("no prefix", encoding="utf-8")
    projects = cs.pair_project_files([str(work)])
    assert [p.id for p in projects] == ["1", "2"]
    assert all(p.has_files for p in projects)
    assert projects[0].timecode_name == "1_num&timecodes.txt"
    assert projects[1].text_content == "인셉션 봤어?"


def test_pair_project_files_from_zip_and_merge_existing(tmp_path):
    archive = tmp_path / "chunks.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("split/10_text.txt", "a")
        zf.writestr("split/2_text.txt", "b")
        zf.writestr("__MACOSX/split/._2_text.txt", "junk")
    projects = cs.pair_project_files([str(archive)])
    assert [p.id for p in projects] == ["2", "10"]
    assert not projects[0].has_files

    failed = [cs.ProjectEntry(id="2", text_content="b", status=cs.ERROR, error="boom")]
    tc = tmp_path / "2_num&timecodes.txt"
    tc.write_text("1\n00:00:00,000 --> 00:00:01,000", encoding="utf-8")
    merged = cs.pair_project_files([str(tc)], existing=failed)
    assert merged[0].status == cs.IDLE
    assert merged[0].error is None
    assert merged[0].has_files


def test_run_in_waves_completes_each_wave_first():
    events = []
    lock = threading.Lock()

    def worker(i):
        with lock:
            events.append(("start", i))
        time.sleep(0.01 * (5 - i % 5))
        with lock:
            events.append(("end", i))
        return i * 10

    results = cs.run_in_waves(list(range(12)), worker, concurrency=5)
    assert results == [i * 10 for i in range(12)]
    for wave_start in (5, 10):
        last_end = max(n for n, e in enumerate(events) if e[0] == "end" and e[1] < wave_start)
        first_start = min(n for n, e in enumerate(events) if e[0] == "start" and e[1] >= wave_start)
        assert last_end < first_start


def test_run_in_waves_rejects_bad_concurrency():
    with pytest.raises(ValueError):
        cs.run_in_waves([1], lambda x: x, concurrency=0)


def test_process_all_isolates_failures(tmp_path):
    projects = cs.pair_project_files([str(write_chunk_dir(tmp_path, chunk_size=1))])
    assert len(projects) == 3

    def flaky(text):
        if "반갑" in text:
            raise RuntimeError("service unavailable")
        return fake_correct(text)

    progress = []
    projects = cs.process_all(projects, flaky, concurrency=2,
                              on_progress=lambda done, total: progress.append((done, total)))
    statuses = {p.id: p.status for p in projects}
    assert statuses == {"1": cs.REVIEW_READY, "2": cs.ERROR, "3": cs.REVIEW_READY}
    assert projects[1].error == "service unavailable"
    assert progress[-1] == (3, 3)

    # retry only touches the failed project
    calls = []

    def working(text):
        calls.append(text)
        return fake_correct(text)

    projects = cs.process_all(projects, working)
    assert calls == ["반갑 습니다."]
    assert all(p.status == cs.REVIEW_READY for p in projects)


def test_process_project_uses_cache(tmp_path):
    project = cs.ProjectEntry(id="1", timecode_content="1\ntc", text_content="안녕하세요.")
    cache_dir = str(tmp_path / ".cache")
    first = cs.process_project(project, fake_correct, cache_dir=cache_dir)
    assert first.corrected_text == "안녕하세요"
    assert os.path.exists(os.path.join(cache_dir, "correction_1.json"))

    def must_not_call(text):
        raise AssertionError("cache should have been used")

    second = cs.process_project(project, must_not_call, cache_dir=cache_dir)
    assert second.status == cs.REVIEW_READY
    assert second.corrected_text == "안녕하세요"

    changed = cs.ProjectEntry(id="1", timecode_content="1\ntc", text_content="다른 글.")
    third = cs.process_project(changed, must_not_call, cache_dir=cache_dir)
    assert third.status == cs.ERROR


def test_confirm_and_review(tmp_path):
    projects = cs.pair_project_files([str(write_chunk_dir(tmp_path, chunk_size=3))])
    projects = cs.confirm_all(cs.process_all(projects, fake_correct))
    project = projects[0]
    assert project.status == cs.COMPLETED
    blocks = parse_srt_blocks(project.final_srt)
    assert [b.content for b in blocks] == ["안녕하세요", "반갑습니다", "인셉션 봤어?"]
    assert blocks[2].start_time == "00:00:02,000"

    session = cs.open_review(project)
    session.update_line(4, "<인셉션> 봤어?")
    assert session.rows[4].changed
    saved = cs.save_review(project, session)
    assert parse_srt_blocks(saved.final_srt)[2].content == "<인셉션> 봤어?"
    assert saved.corrected_text.split("\n")[4] == "<인셉션> 봤어?"


def test_open_review_requires_corrected_text():
    with pytest.raises(ValueError):
        cs.open_review(cs.ProjectEntry(id="1"))


def test_run_correct_subtitles_end_to_end(tmp_path, monkeypatch):
    work = write_chunk_dir(tmp_path, chunk_size=2)
    seen = {}

    def fake_correct_text(text, config, model=None):
        seen["characters"] = list(config.characters)
        seen["model"] = model
        return fake_correct(text)

    monkeypatch.setattr(cs, "correct_text", fake_correct_text)
    out_dir = tmp_path / "out"
    review_dir = tmp_path / "review"
    ok = cs.run_correct_subtitles(
        inputs=[str(work)],
        output_dir=str(out_dir),
        characters=["철수", "철수"],
        cache_dir=str(tmp_path / ".cache"),
        model="test-model",
        review_dir=str(review_dir),
        archive=True,
    )
    assert ok is True
    assert seen == {"characters": ["철수"], "model": "test-model"}
    assert (out_dir / "1_corrected.srt").exists()
    assert (out_dir / "2_corrected.srt").read_text(encoding="utf-8") == (
        "3\n00:00:02,000 --> 00:00:03,000\n인셉션 봤어?"
    )
    assert (review_dir / "1_review.html").exists()
    assert any(name.startswith("SRT_Result_") for name in os.listdir(out_dir))


def test_run_correct_subtitles_reports_failure(tmp_path, monkeypatch, caplog):
    work = write_chunk_dir(tmp_path, chunk_size=2)

    def failing(text, config, model=None):
        if "인셉션" in text:
            raise RuntimeError("quota exceeded")
        return fake_correct(text)

    monkeypatch.setattr(cs, "correct_text", failing)
    caplog.set_level("ERROR")
    out_dir = tmp_path / "out"
    ok = cs.run_correct_subtitles([str(work)], str(out_dir), cache_dir=str(tmp_path / ".cache"))
    assert ok is False
    assert (out_dir / "1_corrected.srt").exists()
    assert not (out_dir / "2_corrected.srt").exists()
    assert "quota exceeded" in caplog.text


def test_pair_project_files_skips_broken_zip(tmp_path, caplog):
    work = write_chunk_dir(tmp_path, chunk_size=2)
    broken = tmp_path / "broken.zip"
    broken.write_bytes(b"not a zip")
    caplog.set_level("ERROR")
    projects = cs.pair_project_files([str(broken), str(work)])
    assert [p.id for p in projects] == ["1", "2"]
    assert all(p.has_files for p in projects)
    assert "Cannot open archive" in caplog.text


def test_process_project_ignores_truncated_cache(tmp_path, caplog):
    cache_dir = tmp_path / ".cache"
    cache_dir.mkdir()
    (cache_dir / "correction_1.json").write_text("{trunc", encoding="utf-8")
    project = cs.ProjectEntry(id="1", timecode_content="1\ntc", text_content="안녕하세요.")
    caplog.set_level("WARNING")

    result = cs.process_project(project, fake_correct, cache_dir=str(cache_dir))

    assert result.status == cs.REVIEW_READY
    assert result.corrected_text == "안녕하세요"
    assert "Ignoring unreadable cache" in caplog.text
    assert cs.load_cached_correction(str(cache_dir), "1", "안녕하세요.") == "안녕하세요"
    assert os.listdir(cache_dir) == ["correction_1.json"]


def test_process_all_reports_status_updates(tmp_path):
    projects = cs.pair_project_files([str(write_chunk_dir(tmp_path, chunk_size=3))])
    updates = []
    cs.process_all(projects, fake_correct, on_update=lambda p: updates.append((p.id, p.status)))
    assert updates == [("1", cs.PROCESSING), ("1", cs.REVIEW_READY)]
