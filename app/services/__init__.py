"""
app/services package marker.
"""

from app.services.analysis_orchestrator_service import (
    AnalysisOrchestratorService,
    FastAPIBackgroundTaskExecutor,
    SubmissionResult,
    TaskView,
    ThreadPoolTaskExecutor,
    get_analysis_orchestrator_service,
)
from app.services.dedup_cache import DedupCache
from app.services.rate_limit_service import RateLimitDecision, RateLimiter
from app.services.url_fingerprint import normalize_url, url_fingerprint

__all__ = [
    "AnalysisOrchestratorService",
    "DedupCache",
    "FastAPIBackgroundTaskExecutor",
    "RateLimitDecision",
    "RateLimiter",
    "SubmissionResult",
    "TaskView",
    "ThreadPoolTaskExecutor",
    "get_analysis_orchestrator_service",
    "normalize_url",
    "url_fingerprint",
]
