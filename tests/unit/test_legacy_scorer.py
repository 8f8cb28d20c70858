"""Unit tests for engines.legacy_scorer (priority-weighted scoring)."""

import pytest

from peercompare.engines.legacy_scorer import LegacyMetricConfig, calculate_overall_scores
from peercompare.schemas.metric import BetterDirection, CustomMetric
from peercompare.schemas.scoring import ScoringItem


def _field(name):
    return lambda data: data.get(name)


def _items(*rows):
    return [ScoringItem(id=f"i{n}", name=f"Item {n}", data=row) for n, row in enumerate(rows)]


@pytest.fixture()
def metrics():
    return [
        LegacyMetricConfig("pe", "P/E", 8, _field("pe"), BetterDirection.LOWER),
        LegacyMetricConfig("margin", "Margin", 2, _field("margin"), BetterDirection.HIGHER),
    ]


class TestCalculateOverallScores:
    def test_priority_weighted_average(self, metrics):
        items = _items({"pe": 10.0, "margin": 10.0}, {"pe": 20.0, "margin": 30.0})
        results = calculate_overall_scores(items, metrics)
        assert [r.item_id for r in results] == ["i0", "i1"]
        assert results[0].total_score == pytest.approx(80.0)
        assert results[1].total_score == pytest.approx(20.0)
        assert [r.rank for r in results] == [1, 2]

    def test_missing_value_scores_zero(self, metrics):
        items = _items({"pe": 10.0, "margin": 10.0}, {"pe": 20.0}, {"pe": 30.0, "margin": 30.0})
        by_id = {r.item_id: r for r in calculate_overall_scores(items, metrics)}
        margin = next(ms for ms in by_id["i1"].metric_scores if ms.metric_id == "margin")
        assert margin.score == 0.0
        assert margin.value is None

    def test_all_equal_is_neutral(self, metrics):
        items = _items({"pe": 5.0, "margin": 1.0}, {"pe": 5.0, "margin": 1.0})
        assert [r.total_score for r in calculate_overall_scores(items, metrics)] == [50.0, 50.0]

    def test_zero_priority_is_excluded(self, metrics):
        metrics[1].priority = 0
        items = _items({"pe": 10.0, "margin": 10.0}, {"pe": 20.0, "margin": 30.0})
        results = calculate_overall_scores(items, metrics)
        assert results[0].total_score == pytest.approx(100.0)
        assert [ms.metric_id for ms in results[0].metric_scores] == ["pe"]

    def test_custom_metrics_default_priority(self):
        items = _items({"margin": 10.0}, {"margin": 30.0})
        custom = CustomMetric(id="double", name="Double Margin", formula="margin * 2")
        results = calculate_overall_scores(items, [], [custom])
        assert results[0].item_id == "i1"
        assert results[0].metric_scores[0].weight == 5
        assert results[0].metric_scores[0].value == pytest.approx(60.0)

    def test_metric_ranks(self, metrics):
        items = _items({"pe": 10.0, "margin": 10.0}, {"pe": 20.0, "margin": 30.0})
        by_id = {r.item_id: r for r in calculate_overall_scores(items, metrics)}
        assert {ms.metric_id: ms.rank for ms in by_id["i0"].metric_scores} == {"pe": 1, "margin": 2}

    def test_failing_value_function(self, metrics):
        def explode(data):
            raise KeyError("pe")

        metrics[0].calculate_value = explode
        items = _items({"pe": 10.0, "margin": 10.0}, {"pe": 20.0, "margin": 30.0})
        results = calculate_overall_scores(items, metrics)
        assert results[0].item_id == "i1"
        assert results[0].total_score == pytest.approx(20.0)

    def test_nothing_to_score(self, metrics):
        assert calculate_overall_scores([], metrics) == []
        assert calculate_overall_scores(_items({"pe": 1.0}), []) == []
        for metric in metrics:
            metric.priority = 0
        assert calculate_overall_scores(_items({"pe": 1.0}), metrics) == []
