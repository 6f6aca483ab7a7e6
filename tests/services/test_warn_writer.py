"""Tests for the warning record file (paper_entry/services/warn_writer.py)."""

import threading

from paper_entry.services.warn_writer import WarnWriter, format_warn_line


def test_line_format_flattens_newlines():
    assert format_warn_line("P-1", 3, "line one\nline two") == "P-1 | 3 | line one line two\n"


def test_appends_records(warn_path):
    writer = WarnWriter(warn_path)
    writer.write("P-1", 1, "first")
    writer.write("P-1", 2, "second")

    assert writer.read_lines() == ["P-1 | 1 | first", "P-1 | 2 | second"]


def test_missing_file_reads_empty(tmp_path):
    assert WarnWriter(tmp_path / "nope" / "warn.txt").read_lines() == []


def test_concurrent_writes_do_not_interleave(warn_path):
    writer = WarnWriter(warn_path)

    def _write(n):
        for i in range(50):
            writer.write(f"P-{n}", i, "x" * 200)

    threads = [threading.Thread(target=_write, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    lines = writer.read_lines()
    assert len(lines) == 200
    assert all(line.endswith("x" * 200) for line in lines)
