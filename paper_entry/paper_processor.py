"""
Process one paper: every question in order, then submit the paper and
remove its source file.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .logging_utils import truncate_text
from .models import Paper, ProcessResult, QuestionContext
from .services.submission import is_success_response

logger = logging.getLogger(__name__)


@dataclass
class PaperResult:
    """Result of processing a single paper."""
    paper_id: str
    status: str = 'success'  # 'success', 'failed'
    processed: int = 0
    skipped: int = 0
    errors: list[str] = None
    paper_submitted: bool = False
    artifact_removed: bool = False

    def __post_init__(self):
        if self.errors is None:
            self.errors = []


def cleanup_file(path: Optional[str], prefix: str = '') -> bool:
    """Delete a processed paper file; failures are logged, not raised."""
    if not path:
        return False
    try:
        os.remove(path)
    except OSError as e:
        logger.warning(f"{prefix} could not delete {path}: {e}")
        return False
    logger.info(f"{prefix} deleted {path}")
    return True


def process_paper(paper: Paper, paper_index: int, pipeline, submitter, warn_writer) -> PaperResult:
    """
    Run every question of a paper through the pipeline.

    Args:
        paper: Paper to process
        paper_index: Position in the run, used in log lines
        pipeline: ``QuestionPipeline`` for gradable questions
        submitter: ``SubmissionAdapter`` for titles and the final paper submit
        warn_writer: ``WarnWriter`` for questions that failed outright

    Returns:
        PaperResult; status is 'failed' when any question raised

    Raises:
        MissingPaperIdError: If the paper has no identifier
        UnknownSubjectError: If the subject cannot be mapped to a code
    """
    prefix = f"[paper {paper_index}]"
    paper_id = paper.require_paper_id()
    subject_code = paper.subject_code

    logger.info(f"{prefix} {paper.upload_name} ({paper.subject}, {len(paper.questions)} questions, id {paper_id})")
    result = PaperResult(paper_id=paper_id)

    for question_index, question in enumerate(paper.questions, start=1):
        if question.is_title:
            try:
                response = submitter.save_title(paper_id, question_index, question.stem)
            except Exception as e:
                logger.error(f"{prefix} title {question_index} failed: {e}")
                result.skipped += 1
                continue
            if is_success_response(response):
                logger.info(f"{prefix} saved title {question_index}: {truncate_text(question.stem)}")
            else:
                logger.warning(f"{prefix} title {question_index} not saved: {response}")
            continue

        ctx = QuestionContext(
            paper_id=paper_id,
            paper_index=paper_index,
            question_index=question_index,
            subject_code=subject_code,
        )
        try:
            outcome = pipeline.run(question, ctx)
        except Exception as e:
            logger.error(f"{prefix} question {question_index} failed: {e}")
            result.errors.append(f"question {question_index}: {e}")
            result.skipped += 1
            warn_writer.write(paper_id, question_index, f"error: {e}")
            continue

        if outcome == ProcessResult.SUCCESS:
            result.processed += 1
        else:
            result.skipped += 1

    if result.errors:
        result.status = 'failed'

    try:
        response = submitter.submit_paper(paper_id)
    except Exception as e:
        logger.error(f"{prefix} paper submit failed: {e}")
    else:
        result.paper_submitted = is_success_response(response)
        if not result.paper_submitted:
            logger.warning(f"{prefix} paper submit not accepted: {response}")

    result.artifact_removed = cleanup_file(paper.source_path, prefix)

    logger.info(
        f"{prefix} done: {result.processed} saved, {result.skipped} skipped, "
        f"{len(result.errors)} errors"
    )
    return result
