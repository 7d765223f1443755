"""
Repository for analysis task lifecycle persistence and status lookup.

Every state transition is a conditional UPDATE guarded on the current status,
so a transition applies at most once no matter how many workers race for it.
The caller controls commit/rollback; this repository never commits.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from db.base import utcnow
from db.models.analysis_task import AnalysisTask, AnalysisTaskStatus


class AnalysisTaskRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_task(
        self,
        *,
        requested_url: str,
        client_id: str,
        user_agent: str | None = None,
    ) -> AnalysisTask:
        now = utcnow()
        task = AnalysisTask(
            id=uuid.uuid4(),
            status=AnalysisTaskStatus.QUEUED,
            requested_url=requested_url,
            client_id=client_id,
            user_agent=user_agent,
            created_at=now,
            updated_at=now,
        )
        self._session.add(task)
        self._session.flush()
        return task

    def get_task(self, task_id: uuid.UUID) -> AnalysisTask | None:
        return self._session.scalars(
            select(AnalysisTask)
            .where(AnalysisTask.id == task_id)
            .execution_options(populate_existing=True)
        ).one_or_none()

    def get_status(self, task_id: uuid.UUID) -> str | None:
        return self._session.scalar(select(AnalysisTask.status).where(AnalysisTask.id == task_id))

    def claim_for_execution(self, *, task_id: uuid.UUID) -> bool:
        """
        Move a task from queued to running. Returns True only for the caller
        whose update applied.
        """

        now = utcnow()
        return self._transition(
            task_id=task_id,
            from_statuses=(AnalysisTaskStatus.QUEUED,),
            values={
                "status": AnalysisTaskStatus.RUNNING,
                "started_at": now,
                "updated_at": now,
            },
        )

    def mark_done(
        self,
        *,
        task_id: uuid.UUID,
        final_url: str,
        overall_score: int,
        grade: str,
        checks: list[dict[str, Any]],
        warnings: list[str],
        cwv: dict[str, Any] | None = None,
    ) -> bool:
        now = utcnow()
        return self._transition(
            task_id=task_id,
            from_statuses=(AnalysisTaskStatus.RUNNING,),
            values={
                "status": AnalysisTaskStatus.DONE,
                "final_url": final_url,
                "overall_score": overall_score,
                "grade": grade,
                "checks": checks,
                "warnings": warnings,
                "cwv": cwv,
                "error_message": None,
                "completed_at": now,
                "updated_at": now,
            },
        )

    def mark_failed(self, *, task_id: uuid.UUID, error_message: str) -> bool:
        now = utcnow()
        return self._transition(
            task_id=task_id,
            from_statuses=(AnalysisTaskStatus.QUEUED, AnalysisTaskStatus.RUNNING),
            values={
                "status": AnalysisTaskStatus.FAILED,
                "error_message": error_message,
                "completed_at": now,
                "updated_at": now,
            },
        )

    def list_stale_tasks(
        self,
        *,
        running_started_before: datetime,
        queued_created_before: datetime,
        limit: int = 500,
    ) -> list[tuple[uuid.UUID, str]]:
        """
        Return ``(id, status)`` for running tasks started before the first
        cutoff and queued tasks created before the second, oldest first.
        """

        stmt = (
            select(AnalysisTask.id, AnalysisTask.status)
            .where(
                (
                    (AnalysisTask.status == AnalysisTaskStatus.RUNNING)
                    & (AnalysisTask.started_at < running_started_before)
                )
                | (
                    (AnalysisTask.status == AnalysisTaskStatus.QUEUED)
                    & (AnalysisTask.created_at < queued_created_before)
                )
            )
            .order_by(AnalysisTask.created_at)
            .limit(max(1, limit))
        )
        return [(row.id, row.status) for row in self._session.execute(stmt)]

    def _transition(
        self,
        *,
        task_id: uuid.UUID,
        from_statuses: Iterable[str],
        values: dict[str, Any],
    ) -> bool:
        stmt = (
            update(AnalysisTask)
            .where(
                AnalysisTask.id == task_id,
                AnalysisTask.status.in_(tuple(from_statuses)),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        return result.rowcount == 1
