"""
app/services/dedup_cache.py

Maps URL fingerprints to the most recent completed analysis.

A hit requires an entry younger than the freshness window whose task still
exists and finished with status ``done``; anything else is a miss.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from db.base import as_utc, utcnow
from db.models.analysis_task import AnalysisTaskStatus
from db.repositories.analysis_cache_repository import AnalysisCacheRepository
from db.repositories.analysis_task_repository import AnalysisTaskRepository


class DedupCache:
    def __init__(
        self,
        *,
        freshness_seconds: int,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._freshness = timedelta(seconds=max(0, freshness_seconds))
        self._clock = clock

    def lookup(self, *, db: Session, fingerprint: str) -> uuid.UUID | None:
        entry = AnalysisCacheRepository(db).get_entry(fingerprint)
        if entry is None:
            return None

        cached_at = as_utc(entry.cached_at)
        if cached_at is None or self._clock() - cached_at >= self._freshness:
            return None

        status = AnalysisTaskRepository(db).get_status(entry.task_id)
        if status != AnalysisTaskStatus.DONE:
            return None
        return entry.task_id

    def insert(self, *, db: Session, fingerprint: str, url: str, task_id: uuid.UUID) -> None:
        """
        Record ``task_id`` as the answer for ``fingerprint``. Does not commit.
        """

        AnalysisCacheRepository(db).upsert_entry(
            fingerprint=fingerprint,
            url=url,
            task_id=task_id,
            cached_at=self._clock(),
        )
