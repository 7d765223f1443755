"""
app/domain package marker.
"""

from app.domain.analysis import CheckGroup, CheckItem, PageSnapshot, ScoreResult, Weights
from app.domain.errors import (
    AnalysisCancelledError,
    AnalysisError,
    AnalysisTimeoutError,
    InvalidInputError,
    InvalidWeightsError,
    RateLimitedError,
    TaskNotFoundError,
    UpstreamFailureError,
)

__all__ = [
    "AnalysisCancelledError",
    "AnalysisError",
    "AnalysisTimeoutError",
    "CheckGroup",
    "CheckItem",
    "InvalidInputError",
    "InvalidWeightsError",
    "PageSnapshot",
    "RateLimitedError",
    "ScoreResult",
    "TaskNotFoundError",
    "UpstreamFailureError",
    "Weights",
]
