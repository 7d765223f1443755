"""
Repository layer exports.
"""

from db.repositories.analysis_cache_repository import AnalysisCacheRepository
from db.repositories.analysis_task_repository import AnalysisTaskRepository
from db.repositories.rate_limit_repository import RateLimitRepository
from db.repositories.settings_repository import SettingsRepository

__all__ = [
    "AnalysisCacheRepository",
    "AnalysisTaskRepository",
    "RateLimitRepository",
    "SettingsRepository",
]
