"""
Input validators.
"""

from app.validators.url_validator import ALLOWED_SCHEMES, validate_analysis_url

__all__ = ["ALLOWED_SCHEMES", "validate_analysis_url"]
