"""
Question-bank text search.

Both backends share one request/response contract and differ only in the
endpoint. Rate-limited responses are retried with a flat delay; an absent
result set is a normal "nothing found" outcome, not an error.
"""
from __future__ import annotations

import logging
import re
import time
from typing import Any, Dict, List, Optional, Tuple

from tenacity import Retrying, retry_if_result, stop_after_attempt, wait_fixed

from ..models import SearchCandidate

logger = logging.getLogger(__name__)

RATE_LIMIT_CODE = 600
RATE_LIMIT_MESSAGE = "请求过于频繁"  # "requests too frequent"

_IMG_SRC_PATTERN = re.compile(r'<img\b[^>]*?\ssrc="([^"]+)"', re.IGNORECASE)

SearchOutcome = Tuple[List[SearchCandidate], List[Dict[str, Any]]]


def is_rate_limited(result: Any) -> bool:
    """True when the response is the bank's "too frequent" rejection."""
    if not isinstance(result, dict):
        return False
    if result.get("code") != RATE_LIMIT_CODE:
        return False
    message = result.get("message") or ""
    return isinstance(message, str) and RATE_LIMIT_MESSAGE in message


def extract_search_data(result: Any) -> Optional[List[Any]]:
    """Return the ``data`` array of a search response, if present."""
    if not isinstance(result, dict):
        return None
    data = result.get("data")
    return data if isinstance(data, list) else None


def extract_image_urls(html: str) -> Optional[Tuple[str, ...]]:
    """Collect ``src`` values of ``<img>`` tags, or None if there are none."""
    if not html:
        return None
    urls = tuple(_IMG_SRC_PATTERN.findall(html))
    return urls or None


def parse_candidates(data: List[Any]) -> SearchOutcome:
    """Turn raw search entries into candidates, keeping the raw entries alongside."""
    candidates: List[SearchCandidate] = []
    raw: List[Dict[str, Any]] = []
    for item in data:
        if not isinstance(item, dict):
            logger.debug(f"Ignoring non-object search entry: {item!r}")
            continue
        content = item.get("questionContent")
        content = content if isinstance(content, str) else ""
        similarity = item.get("xkwQuestionSimilarity")
        if isinstance(similarity, bool) or not isinstance(similarity, (int, float)):
            similarity = None
        candidates.append(
            SearchCandidate(
                content=content,
                similarity=float(similarity) if similarity is not None else None,
                image_urls=extract_image_urls(content),
            )
        )
        raw.append(item)
    return candidates, raw


class SearchBackend:
    """
    One question-bank search endpoint.

    Args:
        remote: Object exposing ``execute(endpoint, payload)``
        name: Backend name for logs
        endpoint: Search endpoint path
        max_retries: Attempts allowed while the bank reports rate limiting
        rate_limit_delay: Seconds to wait between rate-limited attempts
        request_interval: Seconds to pause before every request
    """

    def __init__(
        self,
        remote,
        name: str,
        endpoint: str,
        *,
        max_retries: int = 50,
        rate_limit_delay: float = 2.0,
        request_interval: float = 0.0,
    ) -> None:
        self.remote = remote
        self.name = name
        self.endpoint = endpoint
        self.max_retries = max_retries
        self.rate_limit_delay = rate_limit_delay
        self.request_interval = request_interval

    @classmethod
    def from_config(cls, remote, backend_cfg: Dict[str, Any], search_cfg: Dict[str, Any]) -> SearchBackend:
        return cls(
            remote,
            backend_cfg["name"],
            backend_cfg["endpoint"],
            max_retries=int(search_cfg.get("max_retries", 50)),
            rate_limit_delay=float(search_cfg.get("rate_limit_delay_seconds", 2.0)),
            request_interval=float(backend_cfg.get("request_interval_seconds", 0.0)),
        )

    def _call(self, stem: str, subject_code: str) -> Any:
        if self.request_interval > 0:
            time.sleep(self.request_interval)
        payload = {"stage": "3", "subject": subject_code, "text": stem}
        return self.remote.execute(self.endpoint, payload)

    def _log_rate_limited(self, retry_state) -> None:
        logger.warning(
            f"[{self.name}] rate limited (attempt {retry_state.attempt_number}/{self.max_retries}), "
            f"retrying in {self.rate_limit_delay:g}s"
        )

    def _on_exhausted(self, retry_state) -> None:
        logger.warning(f"[{self.name}] still rate limited after {self.max_retries} attempts, giving up")
        return None

    def search(self, stem: str, subject_code: str) -> SearchOutcome:
        """
        Search for a stem.

        Returns:
            (candidates, raw_candidates); both empty when nothing was found

        Raises:
            RemoteCallError: On transport failure
        """
        logger.debug(f"[{self.name}] searching, stem length {len(stem)}")

        retryer = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_fixed(self.rate_limit_delay),
            retry=retry_if_result(is_rate_limited),
            before_sleep=self._log_rate_limited,
            retry_error_callback=self._on_exhausted,
        )
        result = retryer(self._call, stem, subject_code)

        if result is None:
            logger.debug(f"[{self.name}] empty response")
            return [], []

        data = extract_search_data(result)
        if data is None:
            if isinstance(result, dict) and result.get("code") not in (200, None):
                logger.warning(f"[{self.name}] response has no data: {result}")
            return [], []

        return parse_candidates(data)
