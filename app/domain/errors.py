"""
app/domain/errors.py

Exception taxonomy for analysis submission and execution.

Raised synchronously from submission: InvalidInputError, RateLimitedError.
Raised from lookups: TaskNotFoundError.
Recorded on the task as ``failed``: AnalysisTimeoutError,
UpstreamFailureError, AnalysisCancelledError and anything unexpected.
"""

from __future__ import annotations


class AnalysisError(Exception):
    """Base exception for analysis orchestration failures."""


class InvalidInputError(AnalysisError, ValueError):
    """Raised when a submitted URL is not an absolute http(s) URL."""


class RateLimitedError(AnalysisError):
    """Raised when a client exhausted its hourly submission quota."""

    def __init__(self, limit: int, retry_after_seconds: int) -> None:
        self.limit = limit
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limit exceeded. Maximum {limit} requests per hour.")


class TaskNotFoundError(AnalysisError, LookupError):
    """Raised when a task id does not resolve to a stored task."""


class AnalysisTimeoutError(AnalysisError):
    """Raised when fetch + evaluate exceeded the analysis deadline."""


class UpstreamFailureError(AnalysisError):
    """Raised when the fetch or evaluate collaborator cannot produce a result."""


class AnalysisCancelledError(AnalysisError):
    """Raised by collaborators that stopped because their cancel token fired."""


class InvalidWeightsError(AnalysisError, ValueError):
    """Raised when scoring weights are negative or do not sum to 100."""
