"""
Analysis submission and result endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.dependencies import ClientIdentity, get_client_identity
from app.domain.errors import InvalidInputError, RateLimitedError, TaskNotFoundError
from app.schemas.analysis import (
    AnalysisAcceptedResponse,
    AnalyzeRequest,
    CheckGroupResponse,
    TaskStatusResponse,
)
from app.services.analysis_orchestrator_service import (
    AnalysisOrchestratorService,
    FastAPIBackgroundTaskExecutor,
    TaskView,
    get_analysis_orchestrator_service,
)
from db.session import get_db

router = APIRouter(prefix="/api", tags=["analysis"])


@router.post(
    "/analyze",
    status_code=status.HTTP_201_CREATED,
    response_model=AnalysisAcceptedResponse,
)
def submit_analysis(
    payload: AnalyzeRequest,
    background_tasks: BackgroundTasks,
    identity: ClientIdentity = Depends(get_client_identity),
    db: Session = Depends(get_db),
    orchestrator: AnalysisOrchestratorService = Depends(get_analysis_orchestrator_service),
) -> AnalysisAcceptedResponse | JSONResponse:
    try:
        result = orchestrator.submit(
            db=db,
            executor=FastAPIBackgroundTaskExecutor(background_tasks),
            url=payload.url,
            client_id=identity.client_id,
            client_tier=identity.tier,
            user_agent=identity.user_agent,
        )
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RateLimitedError as exc:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": str(exc), "limit": exc.limit},
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    return AnalysisAcceptedResponse(
        task_id=result.task_id,
        status=result.status,
        deduplicated=result.deduplicated,
    )


@router.get("/result/{task_id}", response_model=TaskStatusResponse)
def get_analysis_result(
    task_id: str,
    db: Session = Depends(get_db),
    orchestrator: AnalysisOrchestratorService = Depends(get_analysis_orchestrator_service),
) -> TaskStatusResponse:
    try:
        view = orchestrator.get_task(db=db, task_id=task_id)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _to_status_response(view)


def _to_status_response(view: TaskView) -> TaskStatusResponse:
    return TaskStatusResponse(
        task_id=view.task_id,
        status=view.status,
        requested_url=view.requested_url,
        final_url=view.final_url,
        overall_score=view.overall_score,
        grade=view.grade,
        checks=[CheckGroupResponse.model_validate(group.to_dict()) for group in view.checks],
        warnings=view.warnings,
        cwv=view.cwv,
        error_message=view.error_message,
        created_at=view.created_at,
        started_at=view.started_at,
        completed_at=view.completed_at,
    )
