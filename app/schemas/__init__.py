"""
app/schemas package marker.
"""

from app.schemas.analysis import (
    AnalysisAcceptedResponse,
    AnalyzeRequest,
    CheckGroupResponse,
    CheckItemResponse,
    HealthResponse,
    TaskStatusResponse,
    WeightsPayload,
)

__all__ = [
    "AnalysisAcceptedResponse",
    "AnalyzeRequest",
    "CheckGroupResponse",
    "CheckItemResponse",
    "HealthResponse",
    "TaskStatusResponse",
    "WeightsPayload",
]
