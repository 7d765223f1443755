"""
Orchestrator service for analysis task submission, background execution and
lifecycle tracking.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any, Protocol

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from app.config import (
    AnalysisSettings,
    RateLimitSettings,
    get_analysis_settings,
    get_page_fetch_settings,
    get_rate_limit_settings,
)
from app.connectors.base import CancellationToken, PageEvaluator, PageFetcher, load_evaluator
from app.connectors.http_page_fetcher import HttpPageFetcher
from app.domain.analysis import CheckGroup, PageSnapshot, Weights
from app.domain.errors import (
    AnalysisError,
    AnalysisTimeoutError,
    RateLimitedError,
    TaskNotFoundError,
    UpstreamFailureError,
)
from app.logging_utils import log_event
from app.services.dedup_cache import DedupCache
from app.services.rate_limit_service import RateLimiter
from app.services.url_fingerprint import url_fingerprint
from app.validators.url_validator import validate_analysis_url
from db.base import as_utc, utcnow
from db.models.analysis_task import AnalysisTask, AnalysisTaskStatus
from db.repositories.analysis_task_repository import AnalysisTaskRepository
from db.repositories.settings_repository import SettingsRepository
from scoring.scorer import score_check_groups

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 2000

# Stored when the fetcher reports no field data.
LAB_CWV: dict[str, Any] = {"source": "lab"}


class AnalysisTaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


class ThreadPoolTaskExecutor:
    """
    Executor for callers outside a request cycle (scripts, workers).
    """

    def __init__(self, max_workers: int = 2) -> None:
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="analysis-dispatch")

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._pool.submit(task, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)


@dataclass(frozen=True)
class SubmissionResult:
    task_id: uuid.UUID
    status: str
    deduplicated: bool


@dataclass(frozen=True)
class TaskView:
    """
    Read-only projection of a stored task.
    """

    task_id: uuid.UUID
    status: str
    requested_url: str
    final_url: str | None
    overall_score: int | None
    grade: str | None
    checks: list[CheckGroup] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    cwv: dict[str, Any] | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_model(cls, task: AnalysisTask) -> "TaskView":
        return cls(
            task_id=task.id,
            status=task.status,
            requested_url=task.requested_url,
            final_url=task.final_url,
            overall_score=task.overall_score,
            grade=task.grade,
            checks=[CheckGroup.from_dict(group) for group in task.checks or []],
            warnings=list(task.warnings or []),
            cwv=dict(task.cwv) if task.cwv is not None else None,
            error_message=task.error_message,
            created_at=as_utc(task.created_at),
            started_at=as_utc(task.started_at),
            completed_at=as_utc(task.completed_at),
        )


def describe_failure(exc: BaseException) -> str:
    """
    Human-readable, never-empty failure message for a task record.
    """

    if isinstance(exc, AnalysisError) and str(exc).strip():
        message = str(exc)
    else:
        detail = str(exc).strip()
        message = f"{type(exc).__name__}: {detail}" if detail else type(exc).__name__
    return message[:MAX_ERROR_MESSAGE_LENGTH]


class AnalysisOrchestratorService:
    """
    Coordinates validation, quota, deduplication, task creation, background
    execution under a deadline, scoring and status persistence.
    """

    def __init__(
        self,
        *,
        fetcher: PageFetcher,
        evaluator: PageEvaluator,
        session_factory: Callable[[], Session] | None = None,
        analysis_settings: AnalysisSettings | None = None,
        rate_limit_settings: RateLimitSettings | None = None,
        rate_limiter: RateLimiter | None = None,
        dedup_cache: DedupCache | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory

        self._fetcher = fetcher
        self._evaluator = evaluator
        self._settings = analysis_settings or get_analysis_settings()
        self._rate_limit_settings = rate_limit_settings or get_rate_limit_settings()
        self._clock = clock or utcnow
        self._rate_limiter = rate_limiter or RateLimiter(clock=self._clock)
        self._dedup_cache = dedup_cache or DedupCache(
            freshness_seconds=self._settings.dedup_freshness_seconds,
            clock=self._clock,
        )
        self._pool = ThreadPoolExecutor(
            max_workers=self._settings.worker_threads,
            thread_name_prefix="analysis-worker",
        )

    def submit(
        self,
        *,
        db: Session,
        executor: AnalysisTaskExecutor,
        url: object,
        client_id: str,
        client_tier: str,
        user_agent: str | None = None,
    ) -> SubmissionResult:
        normalized_url = validate_analysis_url(url)

        limit = self._rate_limit_settings.limit_for_tier(client_tier)
        decision = self._rate_limiter.check_and_increment(db=db, client_id=client_id, limit=limit)
        if not decision.allowed:
            raise RateLimitedError(decision.limit, decision.retry_after_seconds)

        fingerprint = url_fingerprint(normalized_url)
        cached_task_id = self._dedup_cache.lookup(db=db, fingerprint=fingerprint)
        if cached_task_id is not None:
            db.rollback()
            log_event(
                logger,
                logging.INFO,
                "analysis_deduplicated",
                task_id=str(cached_task_id),
                client_id=client_id,
            )
            return SubmissionResult(
                task_id=cached_task_id,
                status=AnalysisTaskStatus.DONE,
                deduplicated=True,
            )

        repository = AnalysisTaskRepository(db)
        task = repository.create_task(
            requested_url=normalized_url,
            client_id=client_id,
            user_agent=user_agent,
        )
        task_id = task.id
        db.commit()

        try:
            executor.submit(self.run_analysis, task_id)
        except Exception:
            db.rollback()
            repository.mark_failed(task_id=task_id, error_message="Failed to schedule analysis task.")
            db.commit()
            logger.exception("Failed to dispatch analysis task id=%s", task_id)
            raise

        log_event(
            logger,
            logging.INFO,
            "analysis_submitted",
            task_id=str(task_id),
            client_id=client_id,
            client_tier=client_tier,
        )
        return SubmissionResult(task_id=task_id, status=AnalysisTaskStatus.QUEUED, deduplicated=False)

    def get_task(self, *, db: Session, task_id: str | uuid.UUID) -> TaskView:
        parsed_id = self._parse_task_id(task_id)
        task = AnalysisTaskRepository(db).get_task(parsed_id) if parsed_id is not None else None
        if task is None:
            raise TaskNotFoundError(f"Task not found: {task_id}")
        return TaskView.from_model(task)

    def run_analysis(self, task_id: uuid.UUID) -> None:
        """
        Execute one task. Safe to call more than once for the same id: only
        the caller that claims the queued task does any work.
        """

        with self._session_factory() as db:
            repository = AnalysisTaskRepository(db)
            try:
                if not repository.claim_for_execution(task_id=task_id):
                    db.rollback()
                    log_event(logger, logging.INFO, "analysis_claim_skipped", task_id=str(task_id))
                    return
                task = repository.get_task(task_id)
                if task is None:
                    raise RuntimeError(f"Analysis task not found: {task_id}")
                url = task.requested_url
                weights = SettingsRepository(db).get_weights()
                db.commit()

                log_event(logger, logging.INFO, "analysis_started", task_id=str(task_id), url=url)
                snapshot, groups = self._execute_with_deadline(url, weights)
                result = score_check_groups(groups)

                completed = repository.mark_done(
                    task_id=task_id,
                    final_url=snapshot.final_url,
                    overall_score=result.overall_score,
                    grade=result.grade,
                    checks=[group.to_dict() for group in groups],
                    warnings=result.warnings,
                    cwv=dict(snapshot.cwv or LAB_CWV),
                )
                if not completed:
                    db.rollback()
                    log_event(
                        logger,
                        logging.WARNING,
                        "analysis_result_discarded",
                        task_id=str(task_id),
                        reason="task no longer running",
                    )
                    return

                self._dedup_cache.insert(
                    db=db,
                    fingerprint=url_fingerprint(url),
                    url=url,
                    task_id=task_id,
                )
                db.commit()
                log_event(
                    logger,
                    logging.INFO,
                    "analysis_completed",
                    task_id=str(task_id),
                    overall_score=result.overall_score,
                    grade=result.grade,
                    warnings=len(result.warnings),
                )
            except Exception as exc:
                self._mark_task_failed(db=db, task_id=task_id, exc=exc)

    def fail_stale_tasks(self) -> int:
        """
        Fail tasks stuck in ``running`` past the worker start timeout plus the
        deadline, grace and slack, and tasks left ``queued`` past the stale
        threshold.
        """

        now = self._clock()
        running_cutoff = now - timedelta(
            seconds=self._settings.max_analysis_seconds
            + self._settings.cancel_grace_seconds
            + self._settings.worker_start_timeout_seconds
            + self._settings.watchdog_slack_seconds
        )
        queued_cutoff = now - timedelta(seconds=self._settings.stale_queued_seconds)

        failed_count = 0
        with self._session_factory() as db:
            repository = AnalysisTaskRepository(db)
            stale_tasks = repository.list_stale_tasks(
                running_started_before=running_cutoff,
                queued_created_before=queued_cutoff,
            )
            for task_id, status in stale_tasks:
                if status == AnalysisTaskStatus.RUNNING:
                    message = (
                        f"Analysis timed out after {self._settings.max_analysis_seconds:g} seconds "
                        "and was stopped by the watchdog."
                    )
                else:
                    message = "Analysis was never started and was failed by the watchdog."
                if repository.mark_failed(task_id=task_id, error_message=message):
                    failed_count += 1
            db.commit()

        if failed_count:
            log_event(logger, logging.WARNING, "stale_tasks_failed", count=failed_count)
        return failed_count

    def shutdown(self) -> None:
        self._pool.shutdown(wait=False, cancel_futures=True)

    def _execute_with_deadline(
        self,
        url: str,
        weights: Weights,
    ) -> tuple[PageSnapshot, list[CheckGroup]]:
        """
        Run fetch and evaluate on the worker pool. The deadline counts from the
        moment a worker picks the job up, not from when it was queued.
        """

        token = CancellationToken()
        started = threading.Event()
        future: Future[tuple[PageSnapshot, list[CheckGroup]]] = self._pool.submit(
            self._fetch_and_evaluate,
            url,
            weights,
            token,
            started,
        )
        # A job cancelled before pickup must not leave the caller waiting.
        future.add_done_callback(lambda _: started.set())
        if not started.wait(self._settings.worker_start_timeout_seconds):
            token.cancel()
            future.cancel()
            raise AnalysisTimeoutError(
                f"Analysis did not start within {self._settings.worker_start_timeout_seconds:g} seconds; "
                "all analysis workers are busy"
            )

        try:
            return future.result(timeout=self._settings.max_analysis_seconds)
        except FutureTimeoutError:
            token.cancel()
            future.cancel()
            self._await_cleanup(future)
            raise AnalysisTimeoutError(
                f"Analysis timed out after {self._settings.max_analysis_seconds:g} seconds"
            ) from None

    def _await_cleanup(self, future: Future[Any]) -> None:
        if future.cancelled():
            return
        try:
            future.exception(timeout=self._settings.cancel_grace_seconds)
        except FutureTimeoutError:
            logger.warning(
                "Analysis worker did not stop within %.1fs of cancellation",
                self._settings.cancel_grace_seconds,
            )

    def _fetch_and_evaluate(
        self,
        url: str,
        weights: Weights,
        token: CancellationToken,
        started: threading.Event,
    ) -> tuple[PageSnapshot, list[CheckGroup]]:
        started.set()
        snapshot = self._fetcher.fetch(
            url,
            timeout_seconds=self._settings.max_analysis_seconds,
            cancel_token=token,
        )
        token.raise_if_cancelled()
        groups = self._evaluator.evaluate(snapshot, weights)
        token.raise_if_cancelled()
        return snapshot, self._coerce_groups(groups)

    @staticmethod
    def _coerce_groups(groups: Any) -> list[CheckGroup]:
        if not isinstance(groups, (list, tuple)):
            raise UpstreamFailureError(
                f"Evaluator returned {type(groups).__name__}, expected a list of check groups."
            )
        coerced: list[CheckGroup] = []
        for group in groups:
            if isinstance(group, CheckGroup):
                coerced.append(group)
                continue
            if not isinstance(group, dict):
                raise UpstreamFailureError(
                    f"Evaluator returned {type(group).__name__} where a check group was expected."
                )
            try:
                coerced.append(CheckGroup.from_dict(group))
            except (KeyError, TypeError, ValueError) as exc:
                raise UpstreamFailureError(f"Evaluator returned an invalid check group: {exc}") from exc
        return coerced

    def _mark_task_failed(self, *, db: Session, task_id: uuid.UUID, exc: Exception) -> None:
        repository = AnalysisTaskRepository(db)
        error_message = describe_failure(exc)
        logger.exception("Analysis task failed id=%s error=%s", task_id, error_message)
        try:
            db.rollback()
            if not repository.mark_failed(task_id=task_id, error_message=error_message):
                logger.error("Unable to mark analysis task as failed; it is missing or already terminal id=%s", task_id)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to persist failed analysis task state id=%s", task_id)

    @staticmethod
    def _parse_task_id(task_id: str | uuid.UUID) -> uuid.UUID | None:
        if isinstance(task_id, uuid.UUID):
            return task_id
        try:
            return uuid.UUID(str(task_id).strip())
        except ValueError:
            return None


@lru_cache(maxsize=1)
def get_analysis_orchestrator_service() -> AnalysisOrchestratorService:
    settings = get_analysis_settings()
    if not settings.evaluator_path:
        raise RuntimeError("ANALYSIS_EVALUATOR is not configured.")
    return AnalysisOrchestratorService(
        fetcher=HttpPageFetcher(settings=get_page_fetch_settings()),
        evaluator=load_evaluator(settings.evaluator_path),
        analysis_settings=settings,
    )
