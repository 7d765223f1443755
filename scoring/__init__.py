"""
Check-group score aggregation.
"""

from scoring.scorer import GRADE_THRESHOLDS, grade_for_score, score_check_groups

__all__ = ["GRADE_THRESHOLDS", "grade_for_score", "score_check_groups"]
