"""
app/services/rate_limit_service.py

Per-client fixed-window submission quota backed by the database.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.logging_utils import log_event
from db.base import utcnow
from db.repositories.rate_limit_repository import RateLimitRepository

logger = logging.getLogger(__name__)

_INSERT_RACE_ATTEMPTS = 2


def hour_window_key(moment: datetime) -> str:
    """UTC hour bucket of ``moment`` as ``YYYY-MM-DDTHH``."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H")


def seconds_until_next_window(moment: datetime) -> int:
    current = moment.astimezone(timezone.utc)
    next_window = current.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    return max(1, int((next_window - current).total_seconds()))


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    count: int
    window_key: str
    retry_after_seconds: int


class RateLimiter:
    """
    Check-and-increment over hourly windows.

    The increment is a single conditional UPDATE with a ceiling, so two
    concurrent requests for the same client can never both take the last slot.
    """

    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock

    def check_and_increment(self, *, db: Session, client_id: str, limit: int) -> RateLimitDecision:
        """
        Count one request for ``client_id`` unless the current window is full.

        Commits its own transaction so the counter is durable before any
        further submission work happens.
        """

        now = self._clock()
        window_key = hour_window_key(now)
        repository = RateLimitRepository(db)

        allowed = False
        for attempt in range(1, _INSERT_RACE_ATTEMPTS + 1):
            try:
                allowed = repository.increment_within_limit(
                    client_id=client_id,
                    window_key=window_key,
                    limit=limit,
                )
                db.commit()
                break
            except IntegrityError:
                # Another request created the window row first.
                db.rollback()
                if attempt >= _INSERT_RACE_ATTEMPTS:
                    raise

        if not allowed:
            log_event(
                logger,
                logging.INFO,
                "rate_limit_denied",
                client_id=client_id,
                window_key=window_key,
                limit=limit,
            )

        return RateLimitDecision(
            allowed=allowed,
            limit=limit,
            count=repository.get_count(client_id=client_id, window_key=window_key),
            window_key=window_key,
            retry_after_seconds=seconds_until_next_window(now),
        )

    def current_count(self, *, db: Session, client_id: str) -> int:
        return RateLimitRepository(db).get_count(
            client_id=client_id,
            window_key=hour_window_key(self._clock()),
        )
