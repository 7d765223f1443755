"""
tests/test_domain.py

Invariants enforced by the analysis domain models.
"""

from __future__ import annotations

import pytest

from app.domain.analysis import CheckGroup, CheckItem, Weights
from app.domain.errors import InvalidWeightsError


class TestCheckItem:
    def test_rejects_score_above_weight(self) -> None:
        with pytest.raises(ValueError):
            CheckItem(id="a", label="A", weight=5, score=6)

    def test_rejects_non_positive_weight(self) -> None:
        with pytest.raises(ValueError):
            CheckItem(id="a", label="A", weight=0, score=0)

    def test_rejects_unknown_priority(self) -> None:
        with pytest.raises(ValueError):
            CheckItem(id="a", label="A", weight=5, score=5, priority="urgent")

    def test_dict_round_trip(self) -> None:
        item = CheckItem(id="a", label="A", weight=5, score=2, advice="do it", priority="high", evidence={"n": 1})

        assert CheckItem.from_dict(item.to_dict()) == item


class TestCheckGroup:
    def test_score_must_match_item_sum(self) -> None:
        with pytest.raises(ValueError):
            CheckGroup(name="technical", weight=30, score=3, items=[CheckItem(id="a", label="A", weight=5, score=2)])

    def test_rejects_negative_weight(self) -> None:
        with pytest.raises(ValueError):
            CheckGroup(name="technical", weight=-1, score=0)

    def test_max_score_sums_item_weights(self) -> None:
        group = CheckGroup.from_items(
            name="technical",
            weight=30,
            items=[
                CheckItem(id="a", label="A", weight=5, score=2),
                CheckItem(id="b", label="B", weight=7, score=7),
            ],
        )

        assert group.score == 9
        assert group.max_score == 12

    def test_empty_group_has_zero_max(self) -> None:
        assert CheckGroup(name="social", weight=10, score=0).max_score == 0


class TestWeights:
    def test_defaults_sum_to_one_hundred(self) -> None:
        assert sum(Weights().as_dict().values()) == 100

    def test_rejects_wrong_total(self) -> None:
        with pytest.raises(InvalidWeightsError):
            Weights(technical=31)

    def test_rejects_negative_values(self) -> None:
        with pytest.raises(InvalidWeightsError):
            Weights(technical=-10, content=65)

    def test_is_frozen(self) -> None:
        weights = Weights()
        with pytest.raises((AttributeError, TypeError)):
            weights.technical = 50  # type: ignore[misc]
