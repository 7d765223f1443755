"""
Repository for fixed-window request counters.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from db.base import utcnow
from db.models.rate_limit_window import RateLimitWindow


class RateLimitRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_count(self, *, client_id: str, window_key: str) -> int:
        count = self._session.scalar(
            select(RateLimitWindow.request_count).where(
                RateLimitWindow.client_id == client_id,
                RateLimitWindow.window_key == window_key,
            )
        )
        return int(count or 0)

    def increment_within_limit(self, *, client_id: str, window_key: str, limit: int) -> bool:
        """
        Atomically add one request to the window unless it already holds
        ``limit`` requests.

        The first request of a window inserts the row; a concurrent insert for
        the same key surfaces as IntegrityError on flush and the caller is
        expected to roll back and retry.
        """

        if limit <= 0:
            return False

        stmt = (
            update(RateLimitWindow)
            .where(
                RateLimitWindow.client_id == client_id,
                RateLimitWindow.window_key == window_key,
                RateLimitWindow.request_count < limit,
            )
            .values(request_count=RateLimitWindow.request_count + 1)
            .execution_options(synchronize_session=False)
        )
        if self._session.execute(stmt).rowcount == 1:
            return True

        exists = self._session.scalar(
            select(RateLimitWindow.client_id).where(
                RateLimitWindow.client_id == client_id,
                RateLimitWindow.window_key == window_key,
            )
        )
        if exists is not None:
            return False

        self._session.add(
            RateLimitWindow(
                client_id=client_id,
                window_key=window_key,
                request_count=1,
                created_at=utcnow(),
            )
        )
        self._session.flush()
        return True

    def purge_created_before(self, cutoff: datetime) -> int:
        result = self._session.execute(
            delete(RateLimitWindow)
            .where(RateLimitWindow.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
