"""
Logging setup and shared log formatting helpers.
"""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

RULE = "=" * 60
THIN_RULE = "-" * 60


def configure_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """
    Configure root logging for a run.

    When ``log_file`` is given it is truncated, a header with the start time is
    written, and all log records are appended to it as well as to stderr.
    """
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        init_log_file(log_file)
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    # requests/urllib3 are noisy at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def init_log_file(log_file: str) -> None:
    """Start a fresh run log with a timestamped header."""
    path = Path(log_file)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    started = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    path.write_text(f"{RULE}\nPaper processing log - {started}\n{RULE}\n\n", encoding="utf-8")


def truncate_text(text: str, max_len: int = 80) -> str:
    """Shorten long text for log lines."""
    if len(text) > max_len:
        return text[:max_len] + "..."
    return text
