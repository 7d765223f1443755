"""
Repository for URL-fingerprint dedup entries.

Writes are a single INSERT ... ON CONFLICT DO UPDATE so that two analyses of
the same URL finishing together never collide on the fingerprint key.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from db.models.analysis_cache_entry import AnalysisCacheEntry

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class AnalysisCacheRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_entry(self, fingerprint: str) -> AnalysisCacheEntry | None:
        return self._session.scalars(
            select(AnalysisCacheEntry)
            .where(AnalysisCacheEntry.fingerprint == fingerprint)
            .execution_options(populate_existing=True)
        ).one_or_none()

    def upsert_entry(
        self,
        *,
        fingerprint: str,
        url: str,
        task_id: uuid.UUID,
        cached_at: datetime,
    ) -> AnalysisCacheEntry:
        """
        Point ``fingerprint`` at ``task_id``; the most recent write wins.
        """

        dialect_name = self._session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect_name)
        if insert is None:
            raise NotImplementedError(f"Cache upsert is not supported on dialect '{dialect_name}'.")

        stmt = insert(AnalysisCacheEntry).values(
            fingerprint=fingerprint,
            url=url,
            task_id=task_id,
            cached_at=cached_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[AnalysisCacheEntry.fingerprint],
            set_={
                "url": stmt.excluded.url,
                "task_id": stmt.excluded.task_id,
                "cached_at": stmt.excluded.cached_at,
            },
        )
        self._session.execute(stmt)

        entry = self.get_entry(fingerprint)
        if entry is None:
            raise RuntimeError(f"Cache entry vanished after upsert: {fingerprint}")
        return entry

    def purge_cached_before(self, cutoff: datetime) -> int:
        result = self._session.execute(
            delete(AnalysisCacheEntry)
            .where(AnalysisCacheEntry.cached_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
