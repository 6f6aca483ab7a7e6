"""
Per-question matching and submission.

Backend #1 is searched first; if it yields no usable match the question falls
through to backend #2. A question is either saved once or written to the
warning file, never guessed.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from .logging_utils import truncate_text
from .models import ProcessResult, Question, QuestionContext, SearchCandidate
from .services.judgment_client import JudgmentServiceError
from .services.submission import is_success_response

logger = logging.getLogger(__name__)


class QuestionPipeline:
    """
    Resolve one question against two search backends.

    Args:
        primary: Backend #1 (``search(stem, subject_code)``)
        secondary: Backend #2, same contract
        matcher: ``MatchingEngine``
        submitter: ``SubmissionAdapter``
        warn_writer: ``WarnWriter``
        verbose: Log the top candidates of every search
    """

    def __init__(self, primary, secondary, matcher, submitter, warn_writer, verbose: bool = False) -> None:
        self.primary = primary
        self.secondary = secondary
        self.matcher = matcher
        self.submitter = submitter
        self.warn_writer = warn_writer
        self.verbose = verbose

    def _log_candidates(self, prefix: str, backend_name: str, candidates: Sequence[SearchCandidate]) -> None:
        if not self.verbose or not candidates:
            return
        logger.info(f"{prefix} {backend_name}: {len(candidates)} candidates")
        for i, cand in enumerate(candidates[:2]):
            logger.info(f"{prefix}   [{i}] {cand.preview()}")

    def _submit(
        self,
        prefix: str,
        raw: Dict[str, Any],
        question: Question,
        ctx: QuestionContext,
    ) -> ProcessResult:
        result = self.submitter.save_question(raw, ctx.paper_id, ctx.question_index)
        if is_success_response(result):
            logger.info(f"{prefix} saved question {ctx.question_index}")
            return ProcessResult.SUCCESS

        logger.warning(f"{prefix} save failed for question {ctx.question_index}: {result}")
        self.warn_writer.write(ctx.paper_id, ctx.question_index, f"submission failed: {question.stem}")
        return ProcessResult.SKIPPED

    def _skip(self, prefix: str, question: Question, ctx: QuestionContext, reason: str) -> ProcessResult:
        logger.warning(f"{prefix} question {ctx.question_index} skipped: {reason}")
        self.warn_writer.write(ctx.paper_id, ctx.question_index, question.stem)
        return ProcessResult.SKIPPED

    def run(self, question: Question, ctx: QuestionContext) -> ProcessResult:
        """
        Search, match and save one question.

        Raises:
            RemoteCallError: On search or save transport failure
            JudgmentServiceError: If judging backend #2 results fails in transport
        """
        prefix = f"[paper {ctx.paper_index}]"
        stem = question.stem
        images: Optional[List[str]] = question.images
        logger.info(f"{prefix} question {ctx.question_index}: {truncate_text(stem)}")

        candidates, raw = self.primary.search(stem, ctx.subject_code)
        self._log_candidates(prefix, self.primary.name, candidates)
        if candidates:
            try:
                index = self.matcher.find_best_match(candidates, stem, images)
            except JudgmentServiceError as e:
                logger.warning(f"{prefix} judgment failed on {self.primary.name} results, trying {self.secondary.name}: {e}")
                index = None
            if index is not None:
                return self._submit(prefix, raw[index], question, ctx)
            logger.info(f"{prefix} no match from {self.primary.name}, trying {self.secondary.name}")
        else:
            logger.info(f"{prefix} {self.primary.name} returned nothing, trying {self.secondary.name}")

        candidates, raw = self.secondary.search(stem, ctx.subject_code)
        self._log_candidates(prefix, self.secondary.name, candidates)
        if not candidates:
            return self._skip(prefix, question, ctx, f"no results from {self.secondary.name}")

        index = self.matcher.find_best_match(candidates, stem, images)
        if index is None:
            return self._skip(prefix, question, ctx, "no matching candidate")
        return self._submit(prefix, raw[index], question, ctx)
