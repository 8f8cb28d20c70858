"""Tests for ComparisonFacade, the entry point presentation layers use."""

import pytest

from peercompare.facade import ComparisonFacade
from peercompare.schemas.group import Company
from peercompare.schemas.metric import BetterDirection, CustomMetric
from peercompare.schemas.scoring import (
    ScoringCategoryConfig,
    ScoringConfiguration,
    ScoringMetricConfig,
)


@pytest.fixture()
def facade(settings, store):
    return ComparisonFacade(settings=settings, store=store)


@pytest.fixture()
def records(provider_records):
    return {f"company-{t.lower()}": r for t, r in provider_records.items()}


class TestMetrics:
    """Catalog, registry and values."""

    def test_catalog_is_idempotent(self, facade, provider_records):
        first = facade.metric_catalog(provider_records.values())
        second = facade.metric_catalog(provider_records.values())
        assert [m.model_dump() for m in first] == [m.model_dump() for m in second]

    def test_saved_custom_metrics_are_registered(self, facade, provider_records):
        facade.custom_metrics.save(
            CustomMetric(id="c1", name="Debt / Income", formula="totalDebt / netIncome")
        )
        definitions = facade.metric_definitions(provider_records.values())
        assert definitions["c1"].is_custom

    def test_explicit_custom_metrics_override_saved(self, facade, provider_records):
        facade.custom_metrics.save(CustomMetric(id="c1", name="Saved", formula="price"))
        definitions = facade.metric_definitions(provider_records.values(), custom_metrics=[])
        assert "c1" not in definitions

    def test_compute_values(self, facade, provider_records, records):
        definition = facade.metric_definitions(provider_records.values())["peRatio"]
        values = facade.compute_values(definition, {**records, "company-none": None})
        assert values["company-aapl"] == 29.5
        assert values["company-goog"] == "24.1"
        assert values["company-none"] is None

    def test_formatted_value(self, facade, provider_records):
        definition = facade.metric_definitions(provider_records.values())["marketCap"]
        assert facade.formatted_value(definition, provider_records["AAPL"]) == "$3.00T"
        assert facade.formatted_value(definition, None) is None

    def test_value_indicators(self, facade, provider_records, records):
        definition = facade.metric_definitions(provider_records.values())["peRatio"]
        indicators = facade.value_indicators(definition, records)
        assert indicators == {
            "company-aapl": None,
            "company-msft": "best",
            "company-goog": "worst",
        }

    def test_group_record(self, facade, mega_caps, companies):
        record = facade.item_record(mega_caps, companies)
        assert record["name"] == "Mega Caps"
        assert record["marketCap"] == pytest.approx(6.1e12)
        assert facade.item_record(companies[0], companies) is companies[0].raw_data


class TestScoreItems:
    """Category scoring through the facade."""

    def test_scores_every_company(self, facade, companies):
        results = facade.score_items(companies, companies)
        assert {r.item_id for r in results} == {c.id for c in companies}
        assert [r.rank for r in results] == [1, 2, 3]
        totals = [r.total_score for r in results]
        assert totals == sorted(totals, reverse=True)
        assert all(0.0 <= t <= 100.0 for t in totals)

    def test_text_and_sparse_metrics_are_not_scored(self, facade, companies):
        results = facade.score_items(companies, companies)
        scored = {ms.metric_id for r in results for ms in r.metric_scores}
        assert "exchange" not in scored
        assert "employees" not in scored
        assert "peRatio" in scored

    def test_groups_score_alongside_companies(self, facade, mega_caps, companies):
        results = facade.score_items([mega_caps, companies[2]], companies)
        assert {r.item_name for r in results} == {"Mega Caps", "GOOG"}

    def test_fewer_than_two_items(self, facade, companies):
        assert facade.score_items(companies[:1], companies) == []

    def test_items_without_data_do_not_count(self, facade, companies):
        loading = Company(id="company-new", ticker="NEW", is_loading=True)
        assert facade.score_items([companies[0], loading], companies) == []

    def test_priorities_pick_default_metrics(self, facade, companies):
        results = facade.score_items(companies, companies, priorities={"peRatio": 9})
        assert {ms.metric_id for r in results for ms in r.metric_scores} == {"peRatio"}

    def test_zero_priority_hides_metric(self, facade, companies):
        results = facade.score_items(companies, companies, priorities={"peRatio": 0})
        assert "peRatio" not in {ms.metric_id for r in results for ms in r.metric_scores}

    def test_explicit_config(self, facade, companies):
        config = ScoringConfiguration(
            categories=[
                ScoringCategoryConfig(
                    category="Valuation",
                    weight=100.0,
                    metrics=[ScoringMetricConfig(metric_id="peRatio", weight=100.0)],
                )
            ],
            normalization_method="min-max",
        )
        results = facade.score_items(companies, companies, config=config)
        assert [r.item_id for r in results] == ["company-msft", "company-aapl", "company-goog"]
        assert results[0].total_score == pytest.approx(100.0)

    def test_saved_config_is_used(self, facade, companies):
        config = ScoringConfiguration(
            categories=[
                ScoringCategoryConfig(
                    category="Valuation",
                    weight=100.0,
                    metrics=[ScoringMetricConfig(metric_id="peRatio", weight=100.0)],
                )
            ],
        )
        facade.scoring_configs.save(config)
        results = facade.score_items(companies, companies, priorities={"peRatio": 9})
        assert {ms.metric_id for r in results for ms in r.metric_scores} == {"peRatio"}

    def test_custom_metric_direction(self, facade, companies):
        custom = CustomMetric(
            id="c1",
            name="Debt / Income",
            formula="totalDebt / netIncome",
            better_direction=BetterDirection.LOWER,
        )
        config = ScoringConfiguration(
            categories=[
                ScoringCategoryConfig(
                    category="Custom Metrics",
                    weight=100.0,
                    metrics=[ScoringMetricConfig(metric_id="c1", weight=100.0)],
                )
            ],
            normalization_method="min-max",
        )
        results = facade.score_items(companies, companies, custom_metrics=[custom], config=config)
        # MSFT 79/72.4 is below AAPL 111/97; GOOG has no totalDebt
        assert [r.item_id for r in results][:2] == ["company-msft", "company-aapl"]


class TestScoreItemsByPriority:
    def test_flat_scores(self, facade, companies):
        results = facade.score_items_by_priority(companies, companies)
        assert len(results) == 3
        assert [r.rank for r in results] == [1, 2, 3]

    def test_fewer_than_two_items(self, facade, companies):
        assert facade.score_items_by_priority(companies[:1], companies) == []
