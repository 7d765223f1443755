"""
app/connectors/base.py

Collaborator contracts for page fetching and rule evaluation, plus the
cancellation token threaded through them.
"""

from __future__ import annotations

import importlib
import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from app.domain.analysis import CheckGroup, PageSnapshot, Weights
from app.domain.errors import AnalysisCancelledError, UpstreamFailureError

logger = logging.getLogger(__name__)


class PageFetchError(UpstreamFailureError):
    """
    Raised when a page cannot be fetched or exceeds fetch limits.
    """


class CancellationToken:
    """
    Cooperative cancellation signal shared between the orchestrator and a
    running fetch/evaluate chain.

    Callbacks registered with ``on_cancel`` run once, on the thread that calls
    ``cancel``; they are how a collaborator releases sockets or sessions that
    a blocked worker thread is holding.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")

    def on_cancel(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelledError("Analysis was cancelled.")

    def wait(self, seconds: float) -> bool:
        """
        Sleep up to ``seconds``; returns True early if cancelled.
        """

        return self._event.wait(max(0.0, seconds))


@runtime_checkable
class PageFetcher(Protocol):
    def fetch(
        self,
        url: str,
        *,
        timeout_seconds: float,
        cancel_token: CancellationToken,
    ) -> PageSnapshot:
        ...


@runtime_checkable
class PageEvaluator(Protocol):
    def evaluate(self, snapshot: PageSnapshot, weights: Weights) -> list[CheckGroup]:
        ...


def load_evaluator(path: str) -> PageEvaluator:
    """
    Resolve ``module.path:Name`` into an evaluator.

    ``Name`` may be a class (instantiated without arguments), a factory
    function returning an evaluator, or an evaluator instance.
    """

    if ":" not in path:
        raise ValueError(f"Invalid evaluator path '{path}'. Use 'module.path:Name'.")

    module_path, attr_name = path.split(":", 1)
    module = importlib.import_module(module_path)
    loaded: Any = getattr(module, attr_name, None)
    if loaded is None:
        raise ValueError(f"Unable to resolve evaluator '{path}'.")

    if isinstance(loaded, type) or not hasattr(loaded, "evaluate"):
        candidate = loaded() if callable(loaded) else loaded
    else:
        candidate = loaded
    if isinstance(candidate, type) or not isinstance(candidate, PageEvaluator):
        raise ValueError(f"'{path}' does not provide an evaluate(snapshot, weights) method.")
    return candidate
