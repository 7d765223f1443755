"""
tests/test_dedup_cache.py

Freshness and status rules for fingerprint dedup lookups.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.services.dedup_cache import DedupCache
from conftest import before_first_statement
from db.repositories.analysis_cache_repository import AnalysisCacheRepository
from db.repositories.analysis_task_repository import AnalysisTaskRepository

FINGERPRINT = "f" * 64


class MutableClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock() -> MutableClock:
    return MutableClock(datetime(2026, 10, 18, 9, 0, 0, tzinfo=timezone.utc))


def _create_task(db, *, done: bool) -> uuid.UUID:
    repository = AnalysisTaskRepository(db)
    task = repository.create_task(requested_url="https://example.com/", client_id="client")
    if done:
        assert repository.claim_for_execution(task_id=task.id)
        assert repository.mark_done(
            task_id=task.id,
            final_url="https://example.com/",
            overall_score=80,
            grade="B",
            checks=[],
            warnings=[],
        )
    db.commit()
    return task.id


class TestDedupCache:
    def test_hit_for_fresh_done_task(self, db, clock: MutableClock) -> None:
        cache = DedupCache(freshness_seconds=3600, clock=clock)
        task_id = _create_task(db, done=True)
        cache.insert(db=db, fingerprint=FINGERPRINT, url="https://example.com/", task_id=task_id)
        db.commit()

        clock.now = clock.now + timedelta(minutes=59)

        assert cache.lookup(db=db, fingerprint=FINGERPRINT) == task_id

    def test_miss_when_entry_expired(self, db, clock: MutableClock) -> None:
        cache = DedupCache(freshness_seconds=3600, clock=clock)
        task_id = _create_task(db, done=True)
        cache.insert(db=db, fingerprint=FINGERPRINT, url="https://example.com/", task_id=task_id)
        db.commit()

        clock.now = clock.now + timedelta(hours=1)

        assert cache.lookup(db=db, fingerprint=FINGERPRINT) is None

    def test_miss_when_task_not_done(self, db, clock: MutableClock) -> None:
        cache = DedupCache(freshness_seconds=3600, clock=clock)
        task_id = _create_task(db, done=False)
        cache.insert(db=db, fingerprint=FINGERPRINT, url="https://example.com/", task_id=task_id)
        db.commit()

        assert cache.lookup(db=db, fingerprint=FINGERPRINT) is None

    def test_dangling_reference_is_a_miss(self, db, clock: MutableClock) -> None:
        cache = DedupCache(freshness_seconds=3600, clock=clock)
        cache.insert(db=db, fingerprint=FINGERPRINT, url="https://example.com/", task_id=uuid.uuid4())
        db.commit()

        assert cache.lookup(db=db, fingerprint=FINGERPRINT) is None

    def test_unknown_fingerprint_is_a_miss(self, db, clock: MutableClock) -> None:
        cache = DedupCache(freshness_seconds=3600, clock=clock)

        assert cache.lookup(db=db, fingerprint=FINGERPRINT) is None

    def test_most_recent_insert_wins(self, db, clock: MutableClock) -> None:
        cache = DedupCache(freshness_seconds=3600, clock=clock)
        first = _create_task(db, done=True)
        second = _create_task(db, done=True)
        cache.insert(db=db, fingerprint=FINGERPRINT, url="https://example.com/", task_id=first)
        cache.insert(db=db, fingerprint=FINGERPRINT, url="https://example.com/", task_id=second)
        db.commit()

        assert cache.lookup(db=db, fingerprint=FINGERPRINT) == second

    def test_insert_survives_entry_committed_between_read_and_write(
        self, engine, session_factory, clock: MutableClock
    ) -> None:
        cache = DedupCache(freshness_seconds=3600, clock=clock)
        with session_factory() as setup:
            other_task = _create_task(setup, done=True)
            own_task = _create_task(setup, done=True)

        def commit_competing_entry() -> None:
            with session_factory() as other:
                cache.insert(db=other, fingerprint=FINGERPRINT, url="https://example.com/", task_id=other_task)
                other.commit()

        with session_factory() as worker:
            assert cache.lookup(db=worker, fingerprint=FINGERPRINT) is None
            with before_first_statement(engine, "INSERT INTO analysis_cache", commit_competing_entry):
                cache.insert(db=worker, fingerprint=FINGERPRINT, url="https://example.com/", task_id=own_task)
            worker.commit()

        with session_factory() as reader:
            entry = AnalysisCacheRepository(reader).get_entry(FINGERPRINT)
            assert entry is not None
            assert entry.task_id == own_task
            assert cache.lookup(db=reader, fingerprint=FINGERPRINT) == own_task
