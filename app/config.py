"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_csv_env(name: str) -> frozenset[str]:
    raw = _get_optional_str_env(name)
    if raw is None:
        return frozenset()
    return frozenset(token.strip() for token in raw.split(",") if token.strip())


class ClientTier:
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AnalysisSettings:
    """
    Runtime settings for analysis orchestration.
    """

    max_analysis_seconds: float = 60.0
    cancel_grace_seconds: float = 5.0
    worker_start_timeout_seconds: float = 15.0
    watchdog_slack_seconds: float = 30.0
    stale_queued_seconds: float = 600.0
    dedup_freshness_seconds: int = 24 * 60 * 60
    worker_threads: int = 4
    evaluator_path: str | None = None


@dataclass(frozen=True)
class RateLimitSettings:
    """
    Hourly submission quotas per client tier.
    """

    anonymous_per_hour: int = 5
    authenticated_per_hour: int = 20
    api_keys: frozenset[str] = field(default_factory=frozenset)

    def limit_for_tier(self, tier: str) -> int:
        if tier == ClientTier.AUTHENTICATED:
            return self.authenticated_per_hour
        return self.anonymous_per_hour


@dataclass(frozen=True)
class PageFetchSettings:
    """
    HTTP behavior of the bundled page fetcher.
    """

    request_timeout_seconds: float = 10.0
    max_html_mb: float = 10.0
    max_retries: int = 1
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    user_agent: str = "SEO Inspector Bot 1.0"
    fetch_robots_txt: bool = True
    fetch_sitemap_xml: bool = True


@dataclass(frozen=True)
class RetentionSettings:
    """
    Periodic maintenance settings (watchdog and retention sweep).
    """

    watchdog_interval_seconds: int = 60
    rate_limit_retention_hours: int = 2
    dedup_retention_days: int = 7


@lru_cache(maxsize=1)
def get_analysis_settings() -> AnalysisSettings:
    """
    Return cached analysis orchestration settings from environment variables.
    """

    return AnalysisSettings(
        max_analysis_seconds=max(1.0, _get_float_env("MAX_ANALYSIS_SECONDS", 60.0)),
        cancel_grace_seconds=max(0.0, _get_float_env("ANALYSIS_CANCEL_GRACE_SECONDS", 5.0)),
        worker_start_timeout_seconds=max(
            0.1, _get_float_env("ANALYSIS_WORKER_START_TIMEOUT_SECONDS", 15.0)
        ),
        watchdog_slack_seconds=max(0.0, _get_float_env("WATCHDOG_SLACK_SECONDS", 30.0)),
        stale_queued_seconds=max(1.0, _get_float_env("STALE_QUEUED_SECONDS", 600.0)),
        dedup_freshness_seconds=max(0, _get_int_env("DEDUP_FRESHNESS_SECONDS", 24 * 60 * 60)),
        worker_threads=max(1, _get_int_env("ANALYSIS_WORKER_THREADS", 4)),
        evaluator_path=_get_optional_str_env("ANALYSIS_EVALUATOR"),
    )


@lru_cache(maxsize=1)
def get_rate_limit_settings() -> RateLimitSettings:
    """
    Return cached per-tier quota settings from environment variables.
    """

    return RateLimitSettings(
        anonymous_per_hour=max(0, _get_int_env("RATE_LIMIT_ANONYMOUS_PER_HOUR", 5)),
        authenticated_per_hour=max(0, _get_int_env("RATE_LIMIT_AUTHENTICATED_PER_HOUR", 20)),
        api_keys=_get_csv_env("ANALYSIS_API_KEYS"),
    )


@lru_cache(maxsize=1)
def get_page_fetch_settings() -> PageFetchSettings:
    """
    Return cached page fetcher settings from environment variables.
    """

    return PageFetchSettings(
        request_timeout_seconds=max(1.0, _get_float_env("RENDER_TIMEOUT_SECONDS", 10.0)),
        max_html_mb=max(0.1, _get_float_env("MAX_HTML_MB", 10.0)),
        max_retries=max(0, _get_int_env("FETCH_MAX_RETRIES", 1)),
        backoff_initial_seconds=max(0.1, _get_float_env("FETCH_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("FETCH_BACKOFF_MULTIPLIER", 2.0)),
        user_agent=_get_str_env("FETCH_USER_AGENT", "SEO Inspector Bot 1.0"),
        fetch_robots_txt=_get_bool_env("FETCH_ROBOTS_TXT", True),
        fetch_sitemap_xml=_get_bool_env("FETCH_SITEMAP_XML", True),
    )


@lru_cache(maxsize=1)
def get_retention_settings() -> RetentionSettings:
    """
    Return cached maintenance settings from environment variables.
    """

    return RetentionSettings(
        watchdog_interval_seconds=max(5, _get_int_env("WATCHDOG_INTERVAL_SECONDS", 60)),
        rate_limit_retention_hours=max(1, _get_int_env("RATE_LIMIT_RETENTION_HOURS", 2)),
        dedup_retention_days=max(1, _get_int_env("DEDUP_RETENTION_DAYS", 7)),
    )
