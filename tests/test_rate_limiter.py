"""
tests/test_rate_limiter.py

Fixed-window quota behaviour against a real (SQLite) store.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from app.services.rate_limit_service import RateLimiter, hour_window_key, seconds_until_next_window
from db.repositories.rate_limit_repository import RateLimitRepository


class MutableClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock() -> MutableClock:
    return MutableClock(datetime(2026, 10, 18, 14, 20, 0, tzinfo=timezone.utc))


class TestWindowHelpers:
    def test_window_key_is_utc_hour(self) -> None:
        moment = datetime(2026, 10, 18, 16, 59, 59, tzinfo=timezone(timedelta(hours=2)))

        assert hour_window_key(moment) == "2026-10-18T14"

    def test_seconds_until_next_window(self) -> None:
        moment = datetime(2026, 10, 18, 14, 59, 30, tzinfo=timezone.utc)

        assert seconds_until_next_window(moment) == 30

    def test_seconds_until_next_window_is_at_least_one(self) -> None:
        moment = datetime(2026, 10, 18, 14, 59, 59, 999999, tzinfo=timezone.utc)

        assert seconds_until_next_window(moment) == 1


class TestRateLimiter:
    def test_denies_request_after_limit(self, db, clock: MutableClock) -> None:
        limiter = RateLimiter(clock=clock)

        decisions = [limiter.check_and_increment(db=db, client_id="1.2.3.4", limit=5) for _ in range(6)]

        assert [decision.allowed for decision in decisions] == [True] * 5 + [False]
        assert decisions[0].count == 1
        assert decisions[-1].limit == 5
        assert decisions[-1].count == 5
        assert decisions[-1].window_key == "2026-10-18T14"
        assert decisions[-1].retry_after_seconds == 40 * 60
        assert limiter.current_count(db=db, client_id="1.2.3.4") == 5

    def test_next_window_is_allowed_again(self, db, clock: MutableClock) -> None:
        limiter = RateLimiter(clock=clock)
        for _ in range(2):
            limiter.check_and_increment(db=db, client_id="client", limit=2)
        assert not limiter.check_and_increment(db=db, client_id="client", limit=2).allowed

        clock.now = clock.now + timedelta(hours=1)

        assert limiter.check_and_increment(db=db, client_id="client", limit=2).allowed

    def test_clients_are_counted_separately(self, db, clock: MutableClock) -> None:
        limiter = RateLimiter(clock=clock)
        assert limiter.check_and_increment(db=db, client_id="a", limit=1).allowed

        assert limiter.check_and_increment(db=db, client_id="b", limit=1).allowed
        assert not limiter.check_and_increment(db=db, client_id="a", limit=1).allowed

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit_always_denies(self, db, clock: MutableClock, limit: int) -> None:
        limiter = RateLimiter(clock=clock)

        decision = limiter.check_and_increment(db=db, client_id="client", limit=limit)

        assert not decision.allowed
        assert limiter.current_count(db=db, client_id="client") == 0

    def test_counter_is_committed(self, session_factory, clock: MutableClock) -> None:
        limiter = RateLimiter(clock=clock)
        with session_factory() as first:
            limiter.check_and_increment(db=first, client_id="client", limit=3)

        with session_factory() as second:
            count = RateLimitRepository(second).get_count(client_id="client", window_key="2026-10-18T14")

        assert count == 1

    def test_concurrent_requests_never_exceed_limit(self, session_factory, clock: MutableClock) -> None:
        limiter = RateLimiter(clock=clock)
        thread_count = 20
        barrier = threading.Barrier(thread_count)
        outcomes: list[bool] = []
        errors: list[BaseException] = []
        lock = threading.Lock()

        def _request() -> None:
            try:
                barrier.wait(timeout=5)
                with session_factory() as session:
                    decision = limiter.check_and_increment(db=session, client_id="burst", limit=5)
                with lock:
                    outcomes.append(decision.allowed)
            except BaseException as exc:  # surfaced below
                with lock:
                    errors.append(exc)

        threads = [threading.Thread(target=_request) for _ in range(thread_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert errors == []
        assert len(outcomes) == thread_count
        assert outcomes.count(True) == 5
        with session_factory() as session:
            assert limiter.current_count(db=session, client_id="burst") == 5
