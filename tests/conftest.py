"""
tests/conftest.py

Shared fixtures: a throwaway SQLite database per test plus fake fetch and
evaluate collaborators.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import db.models  # noqa: F401 registers models on Base.metadata
from app.connectors.base import CancellationToken
from app.domain.analysis import CheckGroup, CheckItem, PageSnapshot, Weights
from db.base import Base
from db.session import build_engine, build_session_factory


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture()
def engine(tmp_path) -> Iterator[Engine]:
    test_engine = build_engine(f"sqlite:///{tmp_path / 'analysis.db'}")
    Base.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return build_session_factory(engine)


@pytest.fixture()
def db(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class StaticFetcher:
    """Returns a canned snapshot, optionally after a cancellable delay."""

    def __init__(
        self,
        *,
        final_url: str | None = None,
        delay_seconds: float = 0.0,
        error: Exception | None = None,
        cwv: dict[str, Any] | None = None,
    ) -> None:
        self.final_url = final_url
        self.cwv = cwv
        self.delay_seconds = delay_seconds
        self.error = error
        self.calls: list[str] = []
        self.cancel_callbacks_run = 0

    def fetch(self, url: str, *, timeout_seconds: float, cancel_token: CancellationToken) -> PageSnapshot:
        self.calls.append(url)
        cancel_token.on_cancel(self._record_cancel)
        if self.delay_seconds:
            cancel_token.wait(self.delay_seconds)
            cancel_token.raise_if_cancelled()
        if self.error is not None:
            raise self.error
        return PageSnapshot(
            requested_url=url,
            final_url=self.final_url or url,
            status_code=200,
            html="<html><head><title>Example</title></head><body></body></html>",
            headers={"content-type": "text/html"},
            cwv=self.cwv,
        )

    def _record_cancel(self) -> None:
        self.cancel_callbacks_run += 1


def sample_groups(weights: Weights | None = None) -> list[CheckGroup]:
    weights = weights or Weights()
    return [
        CheckGroup.from_items(
            name="technical",
            weight=weights.technical,
            items=[
                CheckItem(id="https", label="Served over HTTPS", weight=10, score=10),
                CheckItem(
                    id="canonical",
                    label="Canonical link",
                    weight=10,
                    score=0,
                    advice="Add a canonical link",
                    priority="high",
                    evidence={"found": False},
                ),
            ],
        ),
        CheckGroup.from_items(
            name="content",
            weight=weights.content,
            items=[CheckItem(id="title", label="Title tag", weight=20, score=15, advice="Shorten the title")],
        ),
        CheckGroup.from_items(name="social", weight=weights.social, items=[]),
    ]


class StaticEvaluator:
    def __init__(self, build: Callable[[Weights], Any] = sample_groups) -> None:
        self._build = build
        self.calls: list[tuple[PageSnapshot, Weights]] = []

    def evaluate(self, snapshot: PageSnapshot, weights: Weights) -> Any:
        self.calls.append((snapshot, weights))
        return self._build(weights)


class InlineExecutor:
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        task(*args, **kwargs)


class DeferredExecutor:
    """Records dispatched work so a test can run it later."""

    def __init__(self) -> None:
        self.pending: list[tuple[Callable[..., None], tuple[Any, ...], dict[str, Any]]] = []

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self.pending.append((task, args, kwargs))

    def run_all(self) -> None:
        pending, self.pending = self.pending, []
        for task, args, kwargs in pending:
            task(*args, **kwargs)


class FailingExecutor:
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        raise RuntimeError("executor unavailable")


# ---------------------------------------------------------------------------
# Interleaving
# ---------------------------------------------------------------------------


@contextmanager
def before_first_statement(engine: Engine, prefix: str, action: Callable[[], None]) -> Iterator[None]:
    """
    Run ``action`` once, just before the first SQL statement starting with
    ``prefix`` reaches the database. Lets a test commit a competing write
    between another session's read and its write.
    """

    fired = threading.Event()

    def _listener(conn, cursor, statement, parameters, context, executemany) -> None:
        if fired.is_set() or not statement.lstrip().upper().startswith(prefix.upper()):
            return
        fired.set()
        action()

    event.listen(engine, "before_cursor_execute", _listener)
    try:
        yield
    finally:
        event.remove(engine, "before_cursor_execute", _listener)
    assert fired.is_set(), f"no statement starting with {prefix!r} was executed"
