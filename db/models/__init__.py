"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.analysis_cache_entry import AnalysisCacheEntry
from db.models.analysis_task import AnalysisTask, AnalysisTaskStatus
from db.models.rate_limit_window import RateLimitWindow
from db.models.setting import Setting

__all__ = [
    "AnalysisCacheEntry",
    "AnalysisTask",
    "AnalysisTaskStatus",
    "RateLimitWindow",
    "Setting",
]
