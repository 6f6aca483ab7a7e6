"""
Append-only record of questions that were not matched or not saved.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def format_warn_line(paper_id: str, question_index: int, text: str) -> str:
    flat = " ".join(str(text).splitlines()).strip()
    return f"{paper_id} | {question_index} | {flat}\n"


class WarnWriter:
    """
    Thread-safe writer for the warning file.

    Each record is one line: ``paperId | questionIndex | stem-or-reason``.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def write(self, paper_id: str, question_index: int, text: str) -> None:
        line = format_warn_line(paper_id, question_index, text)
        with self._lock:
            if not self.path.parent.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line)
        logger.debug(f"Warning record: {line.rstrip()}")

    def read_lines(self) -> list[str]:
        """Return the records written so far (empty when the file does not exist)."""
        if not self.path.exists():
            return []
        return self.path.read_text(encoding="utf-8").splitlines()
