"""
app/scheduler/jobs.py

APScheduler-based maintenance scheduler.

Jobs
----
  analysis_watchdog: every ``WATCHDOG_INTERVAL_SECONDS`` (default 60s).
      Fails tasks stuck in ``running`` past the analysis deadline plus grace
      and slack, and tasks left ``queued`` after a lost dispatch.
  retention_sweep: hourly.
      Deletes rate-limit windows older than ``RATE_LIMIT_RETENTION_HOURS``
      and dedup entries older than ``DEDUP_RETENTION_DAYS``. Tasks are kept.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from app.config import RetentionSettings, get_retention_settings
from app.services.analysis_orchestrator_service import (
    AnalysisOrchestratorService,
    get_analysis_orchestrator_service,
)
from db.base import utcnow
from db.repositories.analysis_cache_repository import AnalysisCacheRepository
from db.repositories.rate_limit_repository import RateLimitRepository
from db.session import SessionLocal

logger = logging.getLogger(__name__)


@contextmanager
def _session_scope(session_factory: Callable[[], Session]) -> Iterator[Session]:
    """Yield a fresh session and ensure it is closed on exit."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def run_watchdog(orchestrator: AnalysisOrchestratorService | None = None) -> int:
    orchestrator = orchestrator or get_analysis_orchestrator_service()
    try:
        return orchestrator.fail_stale_tasks()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: analysis_watchdog failed: %s", exc)
        return 0


def run_retention_sweep(
    session_factory: Callable[[], Session] = SessionLocal,
    settings: RetentionSettings | None = None,
) -> tuple[int, int]:
    """
    Purge expired rate-limit windows and dedup entries.
    Returns ``(windows_deleted, cache_entries_deleted)``.
    """
    settings = settings or get_retention_settings()
    now = utcnow()
    window_cutoff = now - timedelta(hours=settings.rate_limit_retention_hours)
    cache_cutoff = now - timedelta(days=settings.dedup_retention_days)

    with _session_scope(session_factory) as db:
        try:
            windows_deleted = RateLimitRepository(db).purge_created_before(window_cutoff)
            cache_deleted = AnalysisCacheRepository(db).purge_cached_before(cache_cutoff)
            db.commit()
        except Exception as exc:  # noqa: BLE001
            db.rollback()
            logger.warning("Scheduler: retention_sweep failed: %s", exc)
            return 0, 0

    logger.info(
        "Scheduler: retention_sweep removed rate_limit_windows=%d analysis_cache=%d",
        windows_deleted,
        cache_deleted,
    )
    return windows_deleted, cache_deleted


def build_scheduler(settings: RetentionSettings | None = None) -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    """
    settings = settings or get_retention_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_watchdog,
        trigger="interval",
        seconds=settings.watchdog_interval_seconds,
        id="analysis_watchdog",
        name="Stale analysis task watchdog",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        run_retention_sweep,
        trigger="interval",
        hours=1,
        id="retention_sweep",
        name="Rate-limit and dedup retention sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=3600,
    )

    return scheduler
