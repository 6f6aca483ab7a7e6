"""
Load paper files (one TOML document per paper) into Paper models.
"""
from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import List, Union

from pydantic import ValidationError

from .models import Paper

logger = logging.getLogger(__name__)


class PaperLoadError(Exception):
    """A paper file could not be read or does not describe a valid paper."""

    pass


def load_paper(path: Union[str, Path]) -> Paper:
    """
    Parse one paper file.

    Args:
        path: Path to a TOML paper file

    Returns:
        Paper with ``source_path`` set to the file it came from

    Raises:
        PaperLoadError: If the file cannot be read, parsed or validated
    """
    path = Path(path)
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except OSError as e:
        raise PaperLoadError(f"Cannot read paper file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise PaperLoadError(f"Cannot parse paper file {path}: {e}") from e

    try:
        paper = Paper.model_validate(data)
    except ValidationError as e:
        raise PaperLoadError(f"Invalid paper file {path}: {e}") from e

    paper.source_path = str(path)
    return paper


def load_all_papers(folder: Union[str, Path]) -> List[Paper]:
    """
    Load every ``*.toml`` paper in a folder, sorted by file name.

    Files that fail to load are logged and skipped.

    Raises:
        PaperLoadError: If the folder does not exist
    """
    folder = Path(folder)
    if not folder.is_dir():
        raise PaperLoadError(f"Papers folder does not exist: {folder}")

    papers: List[Paper] = []
    for path in sorted(folder.glob("*.toml")):
        logger.info(f"Loading {path.name}")
        try:
            paper = load_paper(path)
        except PaperLoadError as e:
            logger.warning(f"Skipping {path.name}: {e}")
            continue
        logger.info(f"Loaded {len(paper.questions)} questions from {path.name}")
        papers.append(paper)

    return papers
