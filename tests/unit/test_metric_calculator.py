"""Unit tests for engines.metric_calculator."""

from types import SimpleNamespace

import pytest

from peercompare.domain.metrics import CUSTOM_CATEGORY, get_core_metric
from peercompare.engines.metric_calculator import (
    build_metric_definitions,
    calculate_core_metric,
    calculate_custom_metric,
    calculate_metric,
    calculate_numeric_metric,
    format_metric_value,
)
from peercompare.schemas.metric import (
    BetterDirection,
    CustomMetric,
    DynamicMetric,
    MetricFormat,
)


@pytest.fixture()
def debt_to_income() -> CustomMetric:
    return CustomMetric(
        id="custom-debt-income",
        name="Debt to Income",
        formula="(totalDebt / netIncome) * 100",
        format=MetricFormat.PERCENTAGE,
        better_direction=BetterDirection.LOWER,
    )


class TestCalculateCoreMetric:
    """Fixed functions with fuzzy fallback."""

    def test_core_function(self):
        assert calculate_core_metric("ticker", {"ticker": "AAPL", "name": "Apple"}) == "AAPL"

    def test_core_falls_back_to_fuzzy_match(self):
        """A provider without ``name`` still yields a company name."""
        assert calculate_core_metric("name", {"ticker": "X", "companyName": "Foo Corp"}) == (
            "Foo Corp"
        )

    def test_direct_field(self, provider_records):
        assert calculate_core_metric("peRatio", provider_records["AAPL"]) == 29.5

    def test_direct_field_falls_back_to_fuzzy_match(self, provider_records):
        assert calculate_core_metric("currentRatio", provider_records["MSFT"]) == 1.77

    def test_nothing_found(self, provider_records):
        assert calculate_core_metric("beta", provider_records["AAPL"]) is None


class TestCalculateCustomMetric:
    """Formula evaluation against one record."""

    def test_formula(self, debt_to_income):
        data = {"ticker": "T", "name": "Test", "totalDebt": 200, "netIncome": 50}
        assert calculate_custom_metric(debt_to_income, data) == pytest.approx(400.0)

    def test_caret_raises_to_a_power(self):
        metric = CustomMetric(id="c2", name="Power", formula="a ^ b")
        data = {"ticker": "T", "name": "Test", "a": 2, "b": 3}
        assert calculate_custom_metric(metric, data) == pytest.approx(8.0)

    def test_numeric_strings_are_usable(self, provider_records):
        metric = CustomMetric(id="c1", name="Net Margin", formula="netIncome / revenue * 100")
        result = calculate_custom_metric(metric, provider_records["GOOG"])
        assert result == pytest.approx(73.8 / 307.4 * 100)

    def test_field_names_with_spaces(self, provider_records):
        metric = CustomMetric(
            id="c2", name="Current x 2", formula="Financials Metric Current Ratio Annual * 2"
        )
        assert calculate_custom_metric(metric, provider_records["MSFT"]) == pytest.approx(3.54)

    def test_missing_field_is_none(self, debt_to_income, provider_records):
        """GOOG has no totalDebt."""
        assert calculate_custom_metric(debt_to_income, provider_records["GOOG"]) is None

    def test_non_numeric_field_is_missing(self):
        metric = CustomMetric(id="c3", name="Bad", formula="exchange * 2")
        assert calculate_custom_metric(metric, {"exchange": "NASDAQ"}) is None

    def test_division_by_zero_is_none(self, debt_to_income):
        assert calculate_custom_metric(debt_to_income, {"totalDebt": 1, "netIncome": 0}) is None

    def test_unsafe_formula_is_none(self):
        metric = CustomMetric(id="c4", name="Evil", formula="__import__('os')")
        assert calculate_custom_metric(metric, {"price": 1}) is None


class TestCalculateMetric:
    """Dispatch on the metric kind."""

    def test_core(self, provider_records):
        assert calculate_metric(get_core_metric("ticker"), provider_records["MSFT"]) == "MSFT"

    def test_dynamic_reads_raw_value(self, provider_records):
        metric = DynamicMetric(
            id="marketCap", name="Market Cap", category="Valuation", format=MetricFormat.CURRENCY
        )
        assert calculate_metric(metric, provider_records["GOOG"]) == "1.75T"
        assert calculate_numeric_metric(metric, provider_records["GOOG"]) == pytest.approx(1.75e12)

    def test_custom(self, debt_to_income, provider_records):
        value = calculate_metric(debt_to_income, provider_records["AAPL"])
        assert value == pytest.approx(111 / 97 * 100)

    def test_numeric_of_text_is_none(self, provider_records):
        metric = DynamicMetric(
            id="exchange", name="Exchange", category="Basic Information", format=MetricFormat.TEXT
        )
        assert calculate_numeric_metric(metric, provider_records["AAPL"]) is None

    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError, match="Unknown metric kind"):
            calculate_metric(SimpleNamespace(kind="other", id="x"), {})


class TestFormatMetricValue:
    """Display strings per format."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (2.5e12, "$2.50T"),
            (1.5e9, "$1.50B"),
            (2.5e6, "$2.50M"),
            (190.5, "$190.50"),
            (-3.2e9, "$-3.20B"),
        ],
    )
    def test_currency(self, value, expected):
        assert format_metric_value(value, MetricFormat.CURRENCY) == expected

    def test_percentage_and_ratio(self):
        assert format_metric_value(12.3456, MetricFormat.PERCENTAGE) == "12.35%"
        assert format_metric_value(29.5, MetricFormat.RATIO) == "29.50"

    def test_number(self):
        assert format_metric_value(1234567, MetricFormat.NUMBER) == "1,234,567"
        assert format_metric_value(1234.5, MetricFormat.NUMBER) == "1,234.5"
        assert format_metric_value(0.12345, MetricFormat.NUMBER) == "0.123"

    def test_format_given_as_string(self):
        assert format_metric_value(2.5e12, "currency") == "$2.50T"

    def test_passthrough_and_missing(self):
        assert format_metric_value(None, MetricFormat.NUMBER) is None
        assert format_metric_value("NASDAQ", MetricFormat.CURRENCY) == "NASDAQ"
        assert format_metric_value(float("inf"), MetricFormat.RATIO) is None
        assert format_metric_value(True, MetricFormat.NUMBER) == "True"

    def test_unknown_format(self):
        assert format_metric_value(3.0, "fancy") == "3.0"


class TestBuildMetricDefinitions:
    """The metric registry."""

    def test_core_metrics_first(self, provider_records):
        definitions = build_metric_definitions(provider_records.values())
        assert list(definitions)[:2] == ["ticker", "name"]

    def test_case_insensitive_collisions_skipped(self):
        definitions = build_metric_definitions([{"ticker": "A", "name": "A", "Ticker": "a", "price": 1}])
        assert list(definitions) == ["ticker", "name", "price"]

    def test_dynamic_definition(self, provider_records):
        definitions = build_metric_definitions(provider_records.values())
        pe = definitions["peRatio"]
        assert pe.category == "Valuation"
        assert pe.format == MetricFormat.RATIO
        assert not pe.is_custom
        assert pe.calculate_value(provider_records["MSFT"]) == 35.2

    def test_custom_definitions(self, debt_to_income, provider_records):
        definitions = build_metric_definitions(provider_records.values(), [debt_to_income])
        custom = definitions["custom-debt-income"]
        assert custom.category == CUSTOM_CATEGORY
        assert custom.is_custom
        assert custom.better_direction == BetterDirection.LOWER
        assert custom.calculate_value({"totalDebt": 10, "netIncome": 5}) == pytest.approx(200.0)

    def test_time_period_flags(self):
        definitions = build_metric_definitions([{"ticker": "A", "name": "A", "annual_roe": 12.0}])
        roe = definitions["annual_roe"]
        assert roe.is_annual and not roe.is_quarterly
        assert roe.subcategory == "Annual"

    def test_no_records(self):
        assert list(build_metric_definitions([])) == ["ticker", "name"]
