"""Run one scheduled ingestion task.

Usage:
    python -m src.data_pipeline.run_task <task> [week] [season]
        [--source baseline|csv|props] [--csv-dir DIR] [--books DK,FD] [--overwrite]

Tasks:
    refresh | projections | matchups | headshots | dedupe | prune |
    settle | full-refresh

Examples:
    python -m src.data_pipeline.run_task full-refresh
    python -m src.data_pipeline.run_task matchups 3 2025
    python -m src.data_pipeline.run_task projections 3 2025 --source props --overwrite
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from src.data_pipeline.config import PROJECTION_SOURCES, RAW_DATA_DIR, STORE_DIR
from src.data_pipeline.jobs import IngestionJobs
from src.draft_manager.draft_rules import ValidationError
from src.logging_config import setup_logging
from src.storage.document_store import JsonFileDocumentStore

logger = logging.getLogger(__name__)

TASKS = (
    "refresh",
    "projections",
    "matchups",
    "headshots",
    "dedupe",
    "prune",
    "settle",
    "full-refresh",
)


def dispatch(
    jobs: IngestionJobs,
    task: Optional[str],
    week: Optional[int] = None,
    season: Optional[int] = None,
    overwrite: bool = False,
    csv_dir: Optional[Path] = None,
    source: Optional[str] = None,
    books: Optional[Sequence[str]] = None,
) -> Dict[str, Any]:
    """Run *task* and return its summary.

    Raises:
        ValidationError: For an unknown task or a missing week.
    """
    task = (task or "").strip().lower()
    if task not in TASKS:
        raise ValidationError(f"Unknown task '{task}'. Must be one of: {', '.join(TASKS)}")

    logger.info("Running task %s (week=%s, season=%s)", task, week, season)
    if task == "refresh":
        result = jobs.refresh_players()
    elif task == "projections":
        result = jobs.seed_week_projections(
            week, overwrite=overwrite, source=source, csv_dir=csv_dir, season=season, books=books
        )
    elif task == "matchups":
        result = jobs.seed_week_matchups(week, season)
    elif task == "headshots":
        result = jobs.backfill_headshots()
    elif task == "dedupe":
        result = jobs.dedupe_players()
    elif task == "prune":
        result = jobs.prune_irrelevant_players()
    elif task == "settle":
        result = jobs.settle_season()
    else:
        result = jobs.full_refresh()

    if result.get("ok"):
        logger.info("Task %s finished: %s", task, result)
    else:
        logger.warning("Task %s did not complete: %s", task, result)
    return {"task": task, **result}


def default_jobs() -> IngestionJobs:
    return IngestionJobs(JsonFileDocumentStore(STORE_DIR))


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one scheduled ingestion task.")
    parser.add_argument("task", nargs="?", default="full-refresh", help=" | ".join(TASKS))
    parser.add_argument("week", nargs="?", type=int)
    parser.add_argument("season", nargs="?", type=int)
    parser.add_argument("--source", choices=PROJECTION_SOURCES, help="projection source")
    parser.add_argument("--csv-dir", type=Path, help=f"FantasyPros exports (default {RAW_DATA_DIR})")
    parser.add_argument("--books", help="comma-separated sportsbooks for --source props")
    parser.add_argument("--overwrite", action="store_true", help="replace existing projections")
    return parser.parse_args(argv)


def split_books(raw: Optional[str]) -> Optional[List[str]]:
    books = [b.strip() for b in (raw or "").split(",") if b.strip()]
    return books or None


if __name__ == "__main__":
    setup_logging(os.environ.get("LOG_LEVEL", "INFO"))
    args = parse_args(sys.argv[1:])

    try:
        summary = dispatch(
            default_jobs(),
            args.task,
            args.week,
            args.season,
            overwrite=args.overwrite,
            csv_dir=args.csv_dir,
            source=args.source,
            books=split_books(args.books),
        )
        print(json.dumps(summary, indent=2))
    except Exception:
        logger.exception("Task %s failed", args.task)
        sys.exit(1)
    if not summary.get("ok"):
        sys.exit(1)
