"""Scheduled ingestion entry point: ``?task=...&week=...&season=...&source=...``."""

import logging
import os
from typing import Any, Mapping, Optional

from src.api.responses import Unauthorized, bool_param, header, int_param, json_endpoint
from src.data_pipeline.config import CRON_SECRET_ENV, CRON_SECRET_HEADER
from src.data_pipeline.jobs import IngestionJobs
from src.data_pipeline.run_task import default_jobs, dispatch, split_books

logger = logging.getLogger(__name__)


def check_cron_secret(headers: Optional[Mapping[str, str]], expected: Optional[str] = None) -> None:
    """Raise Unauthorized unless the secret header matches.

    With no secret configured (argument or CRON_SECRET) every caller passes.
    """
    expected = expected if expected is not None else os.environ.get(CRON_SECRET_ENV)
    if not expected:
        return
    if header(headers, CRON_SECRET_HEADER) != expected:
        logger.warning("Rejected cron call with a missing or wrong secret")
        raise Unauthorized("unauthorized")


@json_endpoint
def handle_cron(
    params: Optional[Mapping[str, Any]],
    headers: Optional[Mapping[str, str]] = None,
    jobs: Optional[IngestionJobs] = None,
    secret: Optional[str] = None,
):
    """``?task=projections&source=props&week=1&season=2025&books=DK,FD&overwrite=1``.

    The csv source reads RAW_DATA_DIR; the directory can't be chosen
    from a request.
    """
    check_cron_secret(headers, secret)
    params = params or {}
    summary = dispatch(
        jobs or default_jobs(),
        params.get("task"),
        week=int_param(params, "week"),
        season=int_param(params, "season"),
        overwrite=bool_param(params, "overwrite"),
        source=params.get("source") or None,
        books=split_books(params.get("books")),
    )
    return (200 if summary.get("ok") else 502), summary
