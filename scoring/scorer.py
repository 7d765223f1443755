"""
scoring/scorer.py

Aggregates evaluated check groups into one comparable page score.

Formula
-------
For every group whose items carry any weight::

    group_max   = sum(item.weight for item in group.items)
    normalized  = group.score / group_max * group.weight

    overall     = round_half_up(sum(normalized) / sum(group.weight) * 100)

Groups without weighted items are left out of both sums, so an empty
category neither rewards nor penalises a page. Letter grades use inclusive
lower bounds: 90 A, 80 B, 70 C, 60 D, anything lower E.

Warnings list every high-priority item that lost points, formatted as
``"<group name>: <advice>"`` in group order, then item order.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from app.domain.analysis import CheckGroup, ScoreResult

GRADE_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
)
LOWEST_GRADE = "E"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def grade_for_score(overall_score: int) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if overall_score >= threshold:
            return grade
    return LOWEST_GRADE


def score_check_groups(groups: Sequence[CheckGroup]) -> ScoreResult:
    """
    Compute overall score, grade and warnings for ``groups``.

    Pure function: no I/O, no shared state, input order is preserved in the
    warning list.
    """

    total_weighted_score = 0.0
    total_possible_weight = 0
    warnings: list[str] = []

    for group in groups:
        group_max_score = group.max_score
        if group_max_score <= 0:
            continue

        total_weighted_score += (group.score / group_max_score) * group.weight
        total_possible_weight += group.weight

        for item in group.items:
            if item.score < item.weight and item.priority == "high":
                warnings.append(f"{group.name}: {item.advice}")

    if total_possible_weight > 0:
        overall_score = _round_half_up(total_weighted_score / total_possible_weight * 100)
    else:
        overall_score = 0

    overall_score = max(0, min(100, overall_score))
    return ScoreResult(
        overall_score=overall_score,
        grade=grade_for_score(overall_score),
        warnings=warnings,
    )
