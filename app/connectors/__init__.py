"""
app/connectors package marker.
"""

from app.connectors.base import (
    CancellationToken,
    PageEvaluator,
    PageFetchError,
    PageFetcher,
    load_evaluator,
)
from app.connectors.http_page_fetcher import HttpPageFetcher

__all__ = [
    "CancellationToken",
    "HttpPageFetcher",
    "PageEvaluator",
    "PageFetchError",
    "PageFetcher",
    "load_evaluator",
]
