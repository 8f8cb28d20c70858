"""Unit tests for domain.metrics: format/category inference and discovery."""

import pytest

from peercompare.domain.metrics import (
    CORE_METRICS,
    detect_time_period,
    format_field_name,
    generate_dynamic_metrics,
    get_all_available_metrics,
    get_core_metric,
    group_metrics_with_subcategories,
    infer_aggregation_method,
    infer_category,
    infer_format,
)
from peercompare.schemas.metric import AggregationMethod, DynamicMetric, MetricFormat


class TestInferFormat:
    """Ordered keyword rules on the lower-cased field name."""

    @pytest.mark.parametrize(
        "field_name, expected",
        [
            ("dividendYield", MetricFormat.PERCENTAGE),
            ("grossMargin", MetricFormat.PERCENTAGE),
            ("payoutPercentage", MetricFormat.PERCENTAGE),
            ("roeRatio", MetricFormat.PERCENTAGE),
            ("peRatio", MetricFormat.RATIO),
            ("totalDebt", MetricFormat.RATIO),
            ("quickRatio", MetricFormat.RATIO),
            ("marketCap", MetricFormat.CURRENCY),
            ("price", MetricFormat.CURRENCY),
            ("netIncome", MetricFormat.CURRENCY),
            ("employees", MetricFormat.NUMBER),
        ],
    )
    def test_numeric_fields(self, field_name, expected):
        """Numeric values are classified by name."""
        assert infer_format(field_name, 1.0) == expected

    @pytest.mark.parametrize("field_name", ["revenue", "totalRevenue", "open", "eps"])
    def test_abbreviations_inside_words_do_not_match(self, field_name):
        """'ev', 'pe' and 'ps' hidden inside a word leave it a currency field."""
        assert infer_format(field_name, 1e9) == MetricFormat.CURRENCY

    @pytest.mark.parametrize(
        "field_name", ["evToEbitda", "ev_to_sales", "trailingPE", "forwardPE", "pb", "peg"]
    )
    def test_abbreviations_as_name_tokens_match(self, field_name):
        assert infer_format(field_name, 12.0) == MetricFormat.RATIO

    def test_text_values(self):
        """Non-numeric strings are text regardless of name."""
        assert infer_format("exchange", "NASDAQ") == MetricFormat.TEXT
        assert infer_format("marketCap", "unknown") == MetricFormat.TEXT

    def test_numeric_strings_are_numbers(self):
        """A string holding a number is classified like the number."""
        assert infer_format("marketCap", "1.75T") == MetricFormat.CURRENCY
        assert infer_format("employees", "161000") == MetricFormat.NUMBER

    def test_booleans_are_text(self):
        assert infer_format("isActivelyTrading", True) == MetricFormat.TEXT


class TestInferCategory:
    """First matching category wins."""

    @pytest.mark.parametrize(
        "field_name, expected",
        [
            ("exchange", "Basic Information"),
            ("sector", "Basic Information"),
            ("marketCap", "Valuation"),
            ("peRatio", "Valuation"),
            ("evToEbitda", "Valuation"),
            ("revenue", "Other"),
            ("open", "Market Data"),
            ("grossMargin", "Profitability"),
            ("netIncome", "Profitability"),
            ("earningsGrowth", "Growth"),
            ("currentRatio", "Financial Health"),
            ("totalDebt", "Financial Health"),
            ("dividendYield", "Dividends"),
            ("volume", "Market Data"),
            ("employees", "Other"),
        ],
    )
    def test_categories(self, field_name, expected):
        assert infer_category(field_name) == expected


class TestInferAggregationMethod:
    """How a field combines across a group."""

    def test_currency_totals_sum(self):
        assert infer_aggregation_method("marketCap", MetricFormat.CURRENCY) == AggregationMethod.SUM
        assert infer_aggregation_method("netIncome", MetricFormat.CURRENCY) == AggregationMethod.SUM

    def test_discovered_revenue_sums(self):
        """Discovery classifies revenue as a currency total."""
        [revenue] = generate_dynamic_metrics({"ticker": "X", "name": "X", "revenue": 1e9})
        assert revenue.format == MetricFormat.CURRENCY
        assert revenue.aggregation_method == AggregationMethod.SUM

    def test_currency_prices_average(self):
        assert (
            infer_aggregation_method("price", MetricFormat.CURRENCY)
            == AggregationMethod.WEIGHTED_AVERAGE
        )

    def test_ratios_and_percentages_average(self):
        assert (
            infer_aggregation_method("peRatio", MetricFormat.RATIO)
            == AggregationMethod.WEIGHTED_AVERAGE
        )
        assert (
            infer_aggregation_method("dividendYield", MetricFormat.PERCENTAGE)
            == AggregationMethod.WEIGHTED_AVERAGE
        )

    def test_other_currency_fields_have_none(self):
        """Currency fields that are neither totals nor prices cannot combine."""
        assert infer_aggregation_method("eps", MetricFormat.CURRENCY) is None

    def test_numbers_and_text_have_none(self):
        assert infer_aggregation_method("employees", MetricFormat.NUMBER) is None
        assert infer_aggregation_method("exchange", MetricFormat.TEXT) is None


class TestFormatFieldName:
    def test_camel_and_snake_case(self):
        assert format_field_name("marketCap") == "Market Cap"
        assert format_field_name("dividend_yield") == "Dividend Yield"
        assert format_field_name("annual_roeTTM") == "Annual Roe T T M"


class TestGenerateDynamicMetrics:
    """Discovery from a single record."""

    def test_skips_ticker_name_and_none(self):
        """Required fields and null values are not metrics."""
        metrics = generate_dynamic_metrics(
            {"ticker": "AAPL", "name": "Apple", "price": 190.5, "beta": None}
        )
        assert [m.id for m in metrics] == ["price"]

    def test_sorted_by_category_then_name(self, provider_records):
        """Catalog order is category, then display name."""
        metrics = generate_dynamic_metrics(provider_records["AAPL"])
        keys = [(m.category, m.name) for m in metrics]
        assert keys == sorted(keys)

    def test_metric_shape(self, provider_records):
        """Each metric carries kind, label, category, format and aggregation."""
        by_id = {m.id: m for m in generate_dynamic_metrics(provider_records["AAPL"])}
        market_cap = by_id["marketCap"]
        assert market_cap.kind == "dynamic"
        assert market_cap.name == "Market Cap"
        assert market_cap.category == "Valuation"
        assert market_cap.format == MetricFormat.CURRENCY
        assert market_cap.aggregation_method == AggregationMethod.SUM


class TestGetAllAvailableMetrics:
    """Union across records."""

    def test_union_includes_fields_only_one_record_has(self, provider_records):
        ids = {m.id for m in get_all_available_metrics(provider_records.values())}
        assert "employees" in ids
        assert "Financials Metric Current Ratio Annual" in ids
        assert "ticker" not in ids

    def test_first_occurrence_wins(self):
        """The first record decides the format of a shared field."""
        metrics = get_all_available_metrics(
            [{"ticker": "A", "name": "A", "peRatio": 12.0}, {"ticker": "B", "name": "B", "peRatio": "n/a"}]
        )
        assert metrics[0].format == MetricFormat.RATIO

    def test_skips_non_mappings(self):
        metrics = get_all_available_metrics([None, "oops", {"ticker": "A", "name": "A", "price": 1}])
        assert [m.id for m in metrics] == ["price"]

    def test_idempotent_and_deterministic(self, provider_records):
        """Same input gives the same catalog every time."""
        records = list(provider_records.values())
        first = get_all_available_metrics(records)
        second = get_all_available_metrics(records)
        assert [m.model_dump() for m in first] == [m.model_dump() for m in second]

    def test_no_duplicate_ids(self, provider_records):
        ids = [m.id for m in get_all_available_metrics(provider_records.values())]
        assert len(ids) == len(set(ids))


class TestCoreMetrics:
    def test_two_core_metrics(self):
        assert [m.id for m in CORE_METRICS] == ["ticker", "name"]
        assert get_core_metric("name").name == "Company Name"
        assert get_core_metric("price") is None

    def test_core_metric_calculate(self):
        assert get_core_metric("ticker").calculate({"ticker": "AAPL"}) == "AAPL"

    def test_calculate_is_not_serialized(self):
        dumped = get_core_metric("ticker").model_dump()
        assert "calculate" not in dumped
        assert dumped["kind"] == "core"


class TestTimePeriods:
    def test_detect_time_period(self):
        assert detect_time_period("annual_roe", "Annual Roe") == (True, False, "Annual")
        assert detect_time_period("quarterly_eps", "Quarterly Eps") == (False, True, "Quarterly")
        assert detect_time_period("peRatio", "Pe Ratio") == (False, False, None)

    def test_group_metrics_with_subcategories(self):
        """Prefixed fields nest under Annual/Quarterly with the prefix stripped."""
        metrics = [
            DynamicMetric(id="annual_roe", name="Annual Roe", category="Profitability", format=MetricFormat.PERCENTAGE),
            DynamicMetric(id="quarterly_roe", name="Quarterly Roe", category="Profitability", format=MetricFormat.PERCENTAGE),
            DynamicMetric(id="grossMargin", name="Gross Margin", category="Profitability", format=MetricFormat.PERCENTAGE),
            DynamicMetric(id="peRatio", name="Pe Ratio", category="Valuation", format=MetricFormat.RATIO),
        ]
        groups = group_metrics_with_subcategories(metrics)

        assert [g.category for g in groups] == ["Profitability", "Valuation"]
        profitability = groups[0]
        assert [m.id for m in profitability.direct_metrics] == ["grossMargin"]
        assert [(m.id, m.name) for m in profitability.subcategories["Annual"]] == [("roe", "Roe")]
        assert [(m.id, m.name) for m in profitability.subcategories["Quarterly"]] == [("roe", "Roe")]
        # Input metrics are untouched
        assert metrics[0].id == "annual_roe"
