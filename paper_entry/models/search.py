"""
Values passed between the search, matching and submission stages.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class SearchCandidate:
    """A question-bank entry returned by one search call."""

    content: str
    similarity: Optional[float] = None
    image_urls: Optional[Tuple[str, ...]] = None

    def preview(self, limit: int = 80) -> str:
        text = self.content if len(self.content) <= limit else self.content[:limit] + "..."
        if self.similarity is None:
            return f"{text} [similarity: unknown]"
        return f"{text} [similarity: {self.similarity:.2f}]"


@dataclass(frozen=True)
class QuestionContext:
    """Which paper and which position a question is being processed for."""

    paper_id: str
    paper_index: int  # log-only
    question_index: int  # 1-based
    subject_code: str


class ProcessResult(str, Enum):
    """Outcome of one question."""

    SUCCESS = "success"
    SKIPPED = "skipped"
