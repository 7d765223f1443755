"""
app/domain/analysis.py

Domain models exchanged between the orchestrator, the scorer and the
fetch/evaluate collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from app.domain.errors import InvalidWeightsError

VALID_PRIORITIES = frozenset({"high", "medium", "low"})


@dataclass(frozen=True)
class CheckItem:
    """
    One evaluated rule: points earned out of ``weight`` plus remediation advice.
    """

    id: str
    label: str
    weight: int
    score: int
    advice: str = ""
    priority: str = "medium"
    evidence: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.weight <= 0:
            raise ValueError(f"Check item '{self.id}' weight must be positive, got {self.weight}.")
        if not 0 <= self.score <= self.weight:
            raise ValueError(
                f"Check item '{self.id}' score {self.score} is outside 0..{self.weight}."
            )
        if self.priority not in VALID_PRIORITIES:
            raise ValueError(
                f"Check item '{self.id}' priority '{self.priority}' is not one of "
                f"{sorted(VALID_PRIORITIES)}."
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "weight": self.weight,
            "score": self.score,
            "evidence": self.evidence,
            "advice": self.advice,
            "priority": self.priority,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "CheckItem":
        return cls(
            id=payload["id"],
            label=payload.get("label", payload["id"]),
            weight=int(payload["weight"]),
            score=int(payload["score"]),
            advice=payload.get("advice") or "",
            priority=payload.get("priority") or "medium",
            evidence=dict(payload.get("evidence") or {}),
        )


@dataclass(frozen=True)
class CheckGroup:
    """
    Results for one category of rules.

    ``weight`` is the group's share of the overall score; ``score`` must equal
    the sum of its items' scores.
    """

    name: str
    weight: int
    score: int
    items: list[CheckItem] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.weight < 0:
            raise ValueError(f"Check group '{self.name}' weight must not be negative.")
        item_total = sum(item.score for item in self.items)
        if self.score != item_total:
            raise ValueError(
                f"Check group '{self.name}' score {self.score} does not match "
                f"the sum of its item scores ({item_total})."
            )

    @property
    def max_score(self) -> int:
        return sum(item.weight for item in self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "weight": self.weight,
            "score": self.score,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "CheckGroup":
        return cls(
            name=payload["name"],
            weight=int(payload["weight"]),
            score=int(payload["score"]),
            items=[CheckItem.from_dict(item) for item in payload.get("items") or []],
        )

    @classmethod
    def from_items(cls, *, name: str, weight: int, items: list[CheckItem]) -> "CheckGroup":
        return cls(name=name, weight=weight, score=sum(item.score for item in items), items=items)


@dataclass(frozen=True)
class Weights:
    """
    Immutable snapshot of the operator-configured category weights.
    """

    technical: int = 30
    content: int = 25
    structured_data: int = 10
    performance: int = 25
    social: int = 10

    def __post_init__(self) -> None:
        values = self.as_dict()
        negative = [name for name, value in values.items() if value < 0]
        if negative:
            raise InvalidWeightsError(f"Weights must not be negative: {', '.join(negative)}.")
        total = sum(values.values())
        if total != 100:
            raise InvalidWeightsError(f"Weights must sum to 100, got {total}.")

    def as_dict(self) -> dict[str, int]:
        return {
            "technical": self.technical,
            "content": self.content,
            "structured_data": self.structured_data,
            "performance": self.performance,
            "social": self.social,
        }


@dataclass(frozen=True)
class PageSnapshot:
    """
    Everything the evaluator needs about one fetched page.
    """

    requested_url: str
    final_url: str
    status_code: int
    html: str
    headers: dict[str, str] = field(default_factory=dict)
    redirect_chain: list[str] = field(default_factory=list)
    robots_txt: str | None = None
    sitemap_xml: str | None = None
    cwv: dict[str, Any] | None = None


@dataclass(frozen=True)
class ScoreResult:
    """
    Scorer output: overall score, letter grade and ordered warnings.
    """

    overall_score: int
    grade: str
    warnings: list[str] = field(default_factory=list)
