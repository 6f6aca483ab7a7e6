"""
Tests for per-paper processing (paper_entry/paper_processor.py).

Covers:
- Question ordering and titles
- Per-question failure isolation
- Final paper submission and source file cleanup
- End-to-end run of a small paper through real components
"""

from unittest.mock import MagicMock

import pytest

from conftest import (
    SAVE_ENDPOINT,
    SIMILAR_ENDPOINT,
    SUBMIT_ENDPOINT,
    XKW_ENDPOINT,
    FakeJudgment,
    FakeRemote,
    make_paper,
    search_response,
)
from paper_entry.loaders import load_paper
from paper_entry.models import MissingPaperIdError, ProcessResult, UnknownSubjectError
from paper_entry.paper_processor import cleanup_file, process_paper
from paper_entry.question_pipeline import QuestionPipeline
from paper_entry.services.matching import MatchingEngine
from paper_entry.services.remote_call import RemoteCallError
from paper_entry.services.search_backend import SearchBackend
from paper_entry.services.submission import SubmissionAdapter
from paper_entry.services.warn_writer import WarnWriter


def _stub_pipeline(*outcomes):
    pipeline = MagicMock()
    pipeline.run.side_effect = list(outcomes)
    return pipeline


class TestProcessPaper:
    def test_questions_run_in_order_with_one_based_indices(self, warn_path):
        paper = make_paper([{"stem": "a"}, {"stem": "b"}, {"stem": "c"}])
        pipeline = _stub_pipeline(ProcessResult.SUCCESS, ProcessResult.SKIPPED, ProcessResult.SUCCESS)
        submitter = SubmissionAdapter(FakeRemote())

        result = process_paper(paper, 7, pipeline, submitter, WarnWriter(warn_path))

        contexts = [call.args[1] for call in pipeline.run.call_args_list]
        assert [c.question_index for c in contexts] == [1, 2, 3]
        assert {c.paper_id for c in contexts} == {"P-1001"}
        assert {c.paper_index for c in contexts} == {7}
        assert {c.subject_code for c in contexts} == {"54"}
        assert (result.processed, result.skipped) == (2, 1)
        assert result.status == "success"

    def test_titles_bypass_pipeline(self, warn_path):
        remote = FakeRemote()
        paper = make_paper([{"stem": "一、选择题", "is_title": True}, {"stem": "1+1"}])
        pipeline = _stub_pipeline(ProcessResult.SUCCESS)

        result = process_paper(paper, 1, pipeline, SubmissionAdapter(remote), WarnWriter(warn_path))

        assert pipeline.run.call_count == 1
        title = remote.calls_to(SAVE_ENDPOINT)[0]
        assert title["questionIndex"] == 1
        assert title["structureType"] == "biaoti"
        assert pipeline.run.call_args.args[1].question_index == 2
        assert (result.processed, result.skipped) == (1, 0)

    def test_title_transport_error_counts_as_skipped(self, warn_path):
        remote = FakeRemote().script(SAVE_ENDPOINT, RemoteCallError("down"))
        paper = make_paper([{"stem": "一、选择题", "is_title": True}])

        result = process_paper(paper, 1, _stub_pipeline(), SubmissionAdapter(remote), WarnWriter(warn_path))

        assert result.skipped == 1
        assert result.status == "success"

    def test_title_rejected_is_not_counted(self, warn_path):
        remote = FakeRemote().script(SAVE_ENDPOINT, {"code": 500})
        paper = make_paper([{"stem": "一、选择题", "is_title": True}])

        result = process_paper(paper, 1, _stub_pipeline(), SubmissionAdapter(remote), WarnWriter(warn_path))

        assert (result.processed, result.skipped) == (0, 0)

    def test_question_error_does_not_stop_paper(self, warn_path):
        remote = FakeRemote()
        paper = make_paper([{"stem": "a"}, {"stem": "b"}, {"stem": "c"}])
        pipeline = _stub_pipeline(ProcessResult.SUCCESS, RemoteCallError("reset"), ProcessResult.SUCCESS)

        result = process_paper(paper, 1, pipeline, SubmissionAdapter(remote), WarnWriter(warn_path))

        assert pipeline.run.call_count == 3
        assert (result.processed, result.skipped) == (2, 1)
        assert result.status == "failed"
        assert result.errors == ["question 2: reset"]
        assert WarnWriter(warn_path).read_lines() == ["P-1001 | 2 | error: reset"]
        # the paper is still submitted
        assert len(remote.calls_to(SUBMIT_ENDPOINT)) == 1

    def test_missing_paper_id_is_fatal(self, warn_path):
        remote = FakeRemote()
        paper = make_paper(page_id=None)
        with pytest.raises(MissingPaperIdError):
            process_paper(paper, 1, _stub_pipeline(), SubmissionAdapter(remote), WarnWriter(warn_path))
        assert remote.calls == []

    def test_unknown_subject_is_fatal(self, warn_path, tmp_path):
        remote = FakeRemote()
        paper = make_paper(subject="美术")
        source = tmp_path / "art.toml"
        source.write_text("x", encoding="utf-8")
        paper.source_path = str(source)

        with pytest.raises(UnknownSubjectError):
            process_paper(paper, 1, _stub_pipeline(), SubmissionAdapter(remote), WarnWriter(warn_path))

        assert remote.calls == []
        assert source.exists()

    def test_start_log_uses_upload_name(self, warn_path, caplog):
        paper = make_paper([], name_for_cos="2024北京八年级数学期中")

        with caplog.at_level("INFO", logger="paper_entry.paper_processor"):
            process_paper(paper, 2, _stub_pipeline(), SubmissionAdapter(FakeRemote()), WarnWriter(warn_path))

        assert "[paper 2] 2024北京八年级数学期中 (数学, 0 questions, id P-1001)" in caplog.text

    def test_submit_failure_is_logged_only(self, warn_path):
        remote = FakeRemote().script(SUBMIT_ENDPOINT, RemoteCallError("down"))
        paper = make_paper([{"stem": "a"}])

        result = process_paper(paper, 1, _stub_pipeline(ProcessResult.SUCCESS), SubmissionAdapter(remote), WarnWriter(warn_path))

        assert result.status == "success"
        assert not result.paper_submitted


def test_cleanup_file(tmp_path):
    path = tmp_path / "p.toml"
    path.write_text("x", encoding="utf-8")

    assert cleanup_file(str(path))
    assert not path.exists()
    assert not cleanup_file(str(path))
    assert not cleanup_file(None)


def test_end_to_end_title_match_and_miss(paper_file, warn_path):
    """Title, a heuristic match, and a question neither backend finds."""
    paper_file.write_text(
        paper_file.read_text(encoding="utf-8") + '\n[[stemlist]]\nstem = "找不到的题目"\n',
        encoding="utf-8",
    )
    paper = load_paper(paper_file)

    remote = FakeRemote()
    remote.script(SIMILAR_ENDPOINT, search_response(("计算 1+1", 0.98), ("计算 1+2", 0.6)))
    remote.script(SIMILAR_ENDPOINT, {"code": 200, "data": []})
    remote.script(XKW_ENDPOINT, {"code": 200, "data": []})
    judgment = FakeJudgment()
    warn_writer = WarnWriter(warn_path)
    submitter = SubmissionAdapter(remote)
    pipeline = QuestionPipeline(
        SearchBackend(remote, "similar", SIMILAR_ENDPOINT, rate_limit_delay=0),
        SearchBackend(remote, "xkw", XKW_ENDPOINT, rate_limit_delay=0),
        MatchingEngine(judgment),
        submitter,
        warn_writer,
    )

    result = process_paper(paper, 1, pipeline, submitter, warn_writer)

    assert result.processed == 1
    assert result.skipped == 1
    assert result.status == "success"
    assert warn_writer.read_lines() == ["P-1001 | 3 | 找不到的题目"]
    # title save + one matched question
    saves = remote.calls_to(SAVE_ENDPOINT)
    assert [s["questionIndex"] for s in saves] == [1, 2]
    assert remote.calls_to(SUBMIT_ENDPOINT) == [{"paperId": "P-1001", "type": "NEW_INPUT"}]
    assert judgment.prompts == []
    assert result.artifact_removed
    assert not paper_file.exists()
