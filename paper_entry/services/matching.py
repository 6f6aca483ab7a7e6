"""
Pick the search candidate that is the same question as the target stem.

A cheap similarity heuristic settles clear winners; everything else goes to the
judgment service, whose free-text reply is parsed into an index or "no match".
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

from ..models import SearchCandidate
from .judgment_client import JudgmentServiceError

logger = logging.getLogger(__name__)

# (threshold, margin) per similarity scale
UNIT_SCALE = (0.85, 0.05)
PERCENT_SCALE = (90.0, 5.0)

NO_MATCH_TOKENS = frozenset(
    {"none", "null", "no match", "no_match", "nomatch", "-1", "无", "无匹配", "没有"}
)

SYSTEM_MESSAGE = (
    "You match exam questions. Given a target question and numbered candidate "
    "questions from a question bank, decide which candidate is the same question, "
    "comparing both the text and the images. Reply with the candidate index only, "
    "or 'none' if no candidate is the same question."
)

_INT_PATTERN = re.compile(r"-?\d+")


class EmptyCandidatesError(ValueError):
    """Matching was asked to choose from no candidates."""

    pass


def try_quick_match(candidates: Sequence[SearchCandidate]) -> Optional[int]:
    """
    Return 0 when the first candidate clearly beats the second on similarity.

    Scores above 1.0 anywhere in the list mean the backend reports percentages.
    """
    if len(candidates) < 2:
        return None
    top, second = candidates[0].similarity, candidates[1].similarity
    if top is None or second is None:
        return None

    scores = [c.similarity for c in candidates if c.similarity is not None]
    threshold, margin = PERCENT_SCALE if any(s > 1.0 for s in scores) else UNIT_SCALE

    if top > threshold and top - second > margin:
        return 0
    return None


def _normalize(text: str) -> str:
    return text.strip().lower().strip(" \t\r\n.。!！,，;；:：'\"`“”‘’")


def is_no_match(text: str) -> bool:
    return _normalize(text) in NO_MATCH_TOKENS


def parse_judgment(text: str, n_candidates: int) -> Optional[int]:
    """
    Parse a judgment reply into a candidate index.

    Returns:
        The index when the reply names one in ``[0, n_candidates)``, else None.
        Use ``is_no_match`` to tell an explicit "none" from an unusable reply.
    """
    normalized = _normalize(text)
    if not normalized or normalized in NO_MATCH_TOKENS:
        return None

    try:
        value = int(normalized)
    except ValueError:
        found = _INT_PATTERN.search(normalized)
        if not found:
            return None
        value = int(found.group())

    if 0 <= value < n_candidates:
        return value
    return None


def build_prompt(
    candidates: Sequence[SearchCandidate],
    stem: str,
    images: Optional[Sequence[str]] = None,
) -> str:
    lines: List[str] = ["Target question:", stem.strip()]
    if images:
        lines.append("Target images:")
        lines.extend(f"- {url}" for url in images)

    lines.append("")
    lines.append("Candidates:")
    for i, cand in enumerate(candidates):
        similarity = "unknown" if cand.similarity is None else f"{cand.similarity:g}"
        lines.append(f"[{i}] (similarity: {similarity})")
        lines.append(cand.content.strip())
        if cand.image_urls:
            lines.append("Images:")
            lines.extend(f"- {url}" for url in cand.image_urls)
        lines.append("")

    lines.append(
        f"Which candidate (0-{len(candidates) - 1}) is the same question as the target? "
        "Answer with the index only, or 'none'."
    )
    return "\n".join(lines)


class MatchingEngine:
    """
    Choose the best candidate for a stem.

    Args:
        judgment_client: Object exposing ``chat(prompt, system_message) -> str``
        max_attempts: Judgment calls allowed per question
    """

    def __init__(self, judgment_client, max_attempts: int = 3) -> None:
        self.judgment_client = judgment_client
        self.max_attempts = max(1, max_attempts)

    def find_best_match(
        self,
        candidates: Sequence[SearchCandidate],
        stem: str,
        images: Optional[Sequence[str]] = None,
    ) -> Optional[int]:
        """
        Returns:
            Index of the matching candidate, or None when nothing matches

        Raises:
            EmptyCandidatesError: If ``candidates`` is empty
            JudgmentServiceError: On a non-retryable failure, or if the last attempt failed
        """
        if not candidates:
            raise EmptyCandidatesError("No candidates to match against")

        quick = try_quick_match(candidates)
        if quick is not None:
            logger.info(
                f"Quick match on candidate 0 (similarity {candidates[0].similarity:g} "
                f"vs {candidates[1].similarity:g})"
            )
            return quick

        prompt = build_prompt(candidates, stem, images)

        for attempt in range(1, self.max_attempts + 1):
            try:
                answer = self.judgment_client.chat(prompt, SYSTEM_MESSAGE)
            except JudgmentServiceError as e:
                logger.warning(f"Judgment attempt {attempt}/{self.max_attempts} failed: {e}")
                if not e.retryable or attempt == self.max_attempts:
                    raise
                continue

            if is_no_match(answer):
                logger.info("Judgment: no matching candidate")
                return None

            index = parse_judgment(answer, len(candidates))
            if index is not None:
                logger.info(f"Judgment picked candidate {index}")
                return index

            logger.warning(
                f"Unusable judgment reply (attempt {attempt}/{self.max_attempts}): {answer[:80]!r}"
            )

        logger.warning("No usable judgment after all attempts")
        return None
