#!/usr/bin/env python3
"""
Batch orchestrator for paper entry.

Loads every paper file from a folder and processes the papers in sequential
batches, with up to ``max_concurrent_papers`` papers in flight at once.

Usage:
    # Process the default folder (output_toml/)
    python -m paper_entry.orchestrator

    # Custom folder and concurrency
    python -m paper_entry.orchestrator --papers-dir papers/ --workers 5

Environment:
    TIKU_TOKEN: Question-bank API token (required for real runs)
    TIKU_COOKIE: Optional session cookie
    JUDGMENT_API_KEY: Judgment model API key
    MAX_CONCURRENT_PAPERS, PAPERS_DIR, WARN_FILE, OUTPUT_LOG_FILE: see config.py
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

from .config import ConfigError, get_config
from .loaders import PaperLoadError, load_all_papers
from .logging_utils import RULE, THIN_RULE, configure_logging
from .models import Paper
from .paper_processor import PaperResult, process_paper
from .question_pipeline import QuestionPipeline
from .services.judgment_client import JudgmentClient
from .services.matching import MatchingEngine
from .services.remote_call import HttpRemoteCall
from .services.search_backend import SearchBackend
from .services.submission import SubmissionAdapter
from .services.warn_writer import WarnWriter

logger = logging.getLogger(__name__)

ProcessFn = Callable[[Paper, int], PaperResult]


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class BatchResult:
    """Outcome counts for one batch."""
    success: int = 0
    failed: int = 0
    errors: list[str] = None

    def __post_init__(self):
        if self.errors is None:
            self.errors = []


@dataclass
class OrchestratorStats:
    """Aggregate stats for an orchestrator run."""
    total: int = 0
    success: int = 0
    failed: int = 0
    batches_completed: int = 0
    errors: list[str] = None

    def __post_init__(self):
        if self.errors is None:
            self.errors = []

    def add_batch(self, batch: BatchResult) -> None:
        self.success += batch.success
        self.failed += batch.failed
        self.errors.extend(batch.errors)
        self.batches_completed += 1


# ============================================================================
# Batch Scheduling
# ============================================================================

def _run_one(paper: Paper, paper_index: int, permits: threading.BoundedSemaphore, process_fn: ProcessFn) -> PaperResult:
    with permits:
        return process_fn(paper, paper_index)


def run_batch(
    batch: Sequence[Paper],
    start_index: int,
    permits: threading.BoundedSemaphore,
    workers: int,
    process_fn: ProcessFn,
) -> BatchResult:
    """Run one batch to completion; a failing paper never affects its siblings."""
    result = BatchResult()

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(_run_one, paper, start_index + offset, permits, process_fn): (start_index + offset, paper)
            for offset, paper in enumerate(batch)
        }

        for future in as_completed(futures):
            paper_index, paper = futures[future]
            label = f"[paper {paper_index}] {paper.name}"
            try:
                paper_result = future.result()
            except Exception as e:
                logger.error(f"{label} failed: {e}")
                result.failed += 1
                result.errors.append(f"{label}: {e}")
                continue

            if paper_result.status == 'success':
                result.success += 1
            else:
                result.failed += 1
                for error in paper_result.errors:
                    result.errors.append(f"{label}: {error}")

    return result


def run_batches(papers: Sequence[Paper], workers: int, process_fn: ProcessFn) -> OrchestratorStats:
    """
    Process papers in sequential batches of ``workers`` papers.

    Args:
        papers: Papers in processing order
        workers: Batch size and maximum number of papers in flight
        process_fn: Called as ``process_fn(paper, paper_index)`` with 1-based indices

    Returns:
        OrchestratorStats folded from every batch
    """
    if workers < 1:
        raise ValueError("workers must be at least 1")

    stats = OrchestratorStats(total=len(papers))
    permits = threading.BoundedSemaphore(workers)
    batch_count = (len(papers) + workers - 1) // workers

    for batch_number, start in enumerate(range(0, len(papers), workers), start=1):
        batch = papers[start:start + workers]
        logger.info("")
        logger.info(RULE)
        logger.info(f"Batch {batch_number}/{batch_count}: papers {start + 1}-{start + len(batch)}")
        logger.info(RULE)

        batch_result = run_batch(batch, start + 1, permits, workers, process_fn)
        stats.add_batch(batch_result)

        logger.info(THIN_RULE)
        logger.info(
            f"Batch {batch_number}/{batch_count} complete: "
            f"{batch_result.success} succeeded, {batch_result.failed} failed"
        )

    return stats


# ============================================================================
# Wiring
# ============================================================================

def build_pipeline(
    config: Dict[str, Any],
    remote,
    judgment_client,
    warn_writer: WarnWriter,
) -> tuple[QuestionPipeline, SubmissionAdapter]:
    """Assemble the question pipeline and submitter around one remote handle."""
    search_cfg = config.get("search") or {}
    backend_cfgs = search_cfg.get("backends") or []
    if len(backend_cfgs) < 2:
        raise ConfigError("search.backends must list two backends")

    primary = SearchBackend.from_config(remote, backend_cfgs[0], search_cfg)
    secondary = SearchBackend.from_config(remote, backend_cfgs[1], search_cfg)
    matcher = MatchingEngine(
        judgment_client,
        max_attempts=int((config.get("judgment") or {}).get("max_attempts", 3)),
    )
    submitter = SubmissionAdapter.from_config(remote, config)
    pipeline = QuestionPipeline(
        primary,
        secondary,
        matcher,
        submitter,
        warn_writer,
        verbose=bool(config.get("verbose_logging")),
    )
    return pipeline, submitter


def make_paper_task(config: Dict[str, Any], remote, judgment_client, warn_writer: WarnWriter) -> ProcessFn:
    """Return a ``process_fn`` that gives every paper its own remote handle."""

    def task(paper: Paper, paper_index: int) -> PaperResult:
        with remote.clone() as handle:
            pipeline, submitter = build_pipeline(config, handle, judgment_client, warn_writer)
            return process_paper(paper, paper_index, pipeline, submitter, warn_writer)

    return task


def log_summary(stats: OrchestratorStats) -> None:
    logger.info("")
    logger.info(RULE)
    logger.info("ORCHESTRATOR SUMMARY")
    logger.info(RULE)
    logger.info(f"Total:   {stats.total}")
    logger.info(f"Success: {stats.success}")
    logger.info(f"Failed:  {stats.failed}")
    logger.info(f"Batches: {stats.batches_completed}")

    if stats.errors:
        logger.info("")
        logger.info("Errors:")
        for error in stats.errors[:10]:  # Show first 10
            logger.info(f"  - {error}")
        if len(stats.errors) > 10:
            logger.info(f"  ... and {len(stats.errors) - 10} more")


def run_orchestrator(
    config: Dict[str, Any],
    remote=None,
    judgment_client=None,
) -> OrchestratorStats:
    """
    Main orchestrator entry point.

    Args:
        config: Configuration from ``get_config``
        remote: Remote call root handle; built from config when omitted
        judgment_client: Judgment client; built from config when omitted

    Returns:
        OrchestratorStats with results

    Raises:
        PaperLoadError: If the papers folder does not exist
    """
    papers_dir = config["papers_dir"]
    workers = int(config["max_concurrent_papers"])

    papers = load_all_papers(papers_dir)
    logger.info(RULE)
    logger.info(f"Found {len(papers)} papers in {papers_dir}, max {workers} concurrent")
    logger.info(RULE)

    if not papers:
        logger.info("No papers to process")
        return OrchestratorStats()

    owns_remote = remote is None
    if remote is None:
        remote = HttpRemoteCall.from_config(config)
    if judgment_client is None:
        judgment_client = JudgmentClient.from_config(config)
    warn_writer = WarnWriter(config["warn_file"])

    try:
        stats = run_batches(papers, workers, make_paper_task(config, remote, judgment_client, warn_writer))
    finally:
        if owns_remote:
            remote.close()

    log_summary(stats)
    return stats


# ============================================================================
# CLI Entry Point
# ============================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Match paper questions against the question bank and submit them'
    )
    parser.add_argument(
        '--papers-dir',
        help='Folder of paper TOML files (default: config papers_dir)'
    )
    parser.add_argument(
        '--workers',
        type=int,
        help='Papers processed concurrently (default: config max_concurrent_papers)'
    )
    parser.add_argument(
        '--warn-file',
        help='Where unmatched questions are recorded'
    )
    parser.add_argument(
        '--log-file',
        help='Run log file (truncated at start)'
    )
    parser.add_argument(
        '--config',
        help='YAML config file'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log the top search candidates for every question'
    )

    args = parser.parse_args(argv)

    try:
        config = get_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.papers_dir:
        config["papers_dir"] = args.papers_dir
    if args.workers is not None:
        if args.workers < 1:
            parser.error("--workers must be at least 1")
        config["max_concurrent_papers"] = args.workers
    if args.warn_file:
        config["warn_file"] = args.warn_file
    if args.log_file:
        config["log_file"] = args.log_file
    if args.verbose:
        config["verbose_logging"] = True

    configure_logging(config.get("log_file"), verbose=bool(config.get("verbose_logging")))

    try:
        run_orchestrator(config)
    except (PaperLoadError, ConfigError) as e:
        logger.error(f"Cannot start: {e}")
        return 1

    # Paper and question failures are reported in the logs, not the exit code
    return 0


if __name__ == '__main__':
    sys.exit(main())
