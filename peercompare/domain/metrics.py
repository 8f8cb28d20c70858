"""Domain model for discovered financial metrics.

Providers do not share a schema, so the catalog of metrics is inferred from
whatever fields the loaded records carry.  This module is the **single
source of truth** for:

- Format inference (currency / percentage / ratio / number / text)
- Category inference
- Group aggregation semantics (sum vs. weighted average)
- Human-readable labels for raw field names

Usage:
    from peercompare.domain.metrics import get_all_available_metrics

    catalog = get_all_available_metrics([aapl_record, msft_record])
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from peercompare.schemas.metric import (
    AggregationMethod,
    BetterDirection,
    CoreMetric,
    DynamicMetric,
    MetricFormat,
    RawFinancialData,
)
from peercompare.utils.value_parsing import parse_numeric_value


# ══════════════════════════════════════════════════════════════════════════
# KEYWORD RULES (ordered, first match wins)
# ══════════════════════════════════════════════════════════════════════════

PERCENTAGE_KEYWORDS = ("percentage", "percent", "yield", "margin")
RATIO_KEYWORDS = ("ratio", "pe", "pb", "ps", "peg", "ev", "debt", "current", "quick")
CURRENCY_KEYWORDS = (
    "cap", "price", "revenue", "income", "cash", "debt", "assets", "equity",
    "value", "ebitda", "book", "eps", "change", "high", "low", "open",
    "close", "avg",
)

CATEGORY_RULES: List[Tuple[str, Tuple[str, ...]]] = [
    ("Basic Information", ("ticker", "symbol", "name", "exchange", "industry", "sector")),
    ("Valuation", ("price", "cap", "value", "pe", "pb", "ps", "peg", "ev")),
    ("Profitability", ("margin", "roe", "roa", "profit", "income")),
    ("Growth", ("growth", "change")),
    ("Financial Health", (
        "ratio", "debt", "cash", "assets", "equity", "current", "quick", "liquidity",
    )),
    ("Dividends", ("dividend", "payout")),
    ("Market Data", ("volume", "timestamp", "date", "high", "low", "open", "close", "avg")),
]
DEFAULT_CATEGORY = "Other"

# Currency fields that are stock/flow totals add up across a group; price-like
# fields are averaged by market cap instead.
SUM_KEYWORDS = ("cap", "revenue", "income", "assets", "debt", "equity", "cash", "value")
AVERAGE_KEYWORDS = ("price", "avg")

# Fields every record carries; never offered as dynamic metrics.
REQUIRED_FIELDS = ("ticker", "name")

CUSTOM_CATEGORY = "Custom Metrics"


# Short abbreviations only match a whole token of the field name
# ("peRatio", "ev_to_sales", "trailingPE"), never part of a word
# ("revenue", "open", "eps").
ABBREVIATIONS = frozenset(("pe", "pb", "ps", "peg", "ev"))

_NAME_TOKEN = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+")


def name_tokens(field_name: str) -> set:
    """Lower-cased camelCase / snake_case / spaced tokens of a field name.

    >>> sorted(name_tokens("evToEBITDA"))
    ['ebitda', 'ev', 'to']
    """
    return {t.lower() for t in _NAME_TOKEN.findall(field_name)}


def _contains_any(field_name: str, keywords: Iterable[str]) -> bool:
    name = field_name.lower()
    tokens = name_tokens(field_name)
    return any(k in tokens if k in ABBREVIATIONS else k in name for k in keywords)


# ══════════════════════════════════════════════════════════════════════════
# INFERENCE
# ══════════════════════════════════════════════════════════════════════════


def infer_format(field_name: str, value: Any) -> MetricFormat:
    """Infer a display format from the field name and its value.

    Strings that hold a number count as numeric; any other string is text.

    Examples:
        >>> infer_format("grossMargin", 0.43)
        <MetricFormat.PERCENTAGE: 'percentage'>
        >>> infer_format("peRatio", 28.1)
        <MetricFormat.RATIO: 'ratio'>
        >>> infer_format("marketCap", 3e12)
        <MetricFormat.CURRENCY: 'currency'>
        >>> infer_format("employees", 161000)
        <MetricFormat.NUMBER: 'number'>
        >>> infer_format("exchange", "NASDAQ")
        <MetricFormat.TEXT: 'text'>
    """
    if isinstance(value, bool):
        return MetricFormat.TEXT
    if isinstance(value, str) and parse_numeric_value(value) is None:
        return MetricFormat.TEXT
    if not isinstance(value, (str, int, float)):
        return MetricFormat.TEXT

    name = field_name.lower()

    if _contains_any(field_name, PERCENTAGE_KEYWORDS) or (
        "ratio" in name and ("roe" in name or "roa" in name)
    ):
        return MetricFormat.PERCENTAGE

    if _contains_any(field_name, RATIO_KEYWORDS):
        return MetricFormat.RATIO

    if _contains_any(field_name, CURRENCY_KEYWORDS):
        return MetricFormat.CURRENCY

    return MetricFormat.NUMBER


def infer_category(field_name: str) -> str:
    """Map a field name to a comparison category (first match wins).

    Examples:
        >>> infer_category("dividendYield")
        'Dividends'
        >>> infer_category("earningsGrowth")
        'Growth'
        >>> infer_category("employees")
        'Other'
    """
    for category, keywords in CATEGORY_RULES:
        if _contains_any(field_name, keywords):
            return category
    return DEFAULT_CATEGORY


def infer_aggregation_method(
    field_name: str, fmt: MetricFormat
) -> Optional[AggregationMethod]:
    """How a field combines across the members of a comparison group.

    Returns None for fields that cannot be combined (counts, text, ...).
    """
    if fmt == MetricFormat.CURRENCY:
        if _contains_any(field_name, SUM_KEYWORDS):
            return AggregationMethod.SUM
        if _contains_any(field_name, AVERAGE_KEYWORDS):
            return AggregationMethod.WEIGHTED_AVERAGE
        return None
    if fmt in (MetricFormat.RATIO, MetricFormat.PERCENTAGE):
        return AggregationMethod.WEIGHTED_AVERAGE
    return None


def format_field_name(field_name: str) -> str:
    """Convert camelCase / snake_case field names to a title-cased label.

    Examples:
        >>> format_field_name("marketCap")
        'Market Cap'
        >>> format_field_name("dividend_yield")
        'Dividend Yield'
    """
    spaced = re.sub(r"([A-Z])", r" \1", field_name).replace("_", " ")
    spaced = re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)
    return re.sub(r"\s+", " ", spaced).strip()


# ══════════════════════════════════════════════════════════════════════════
# CORE METRICS (legacy fixed-function path)
# ══════════════════════════════════════════════════════════════════════════

CORE_METRICS: List[CoreMetric] = [
    CoreMetric(
        id="ticker",
        name="Ticker",
        category="Basic Information",
        format=MetricFormat.TEXT,
        calculate=lambda data: data.get("ticker"),
    ),
    CoreMetric(
        id="name",
        name="Company Name",
        category="Basic Information",
        format=MetricFormat.TEXT,
        calculate=lambda data: data.get("name"),
    ),
]


def get_core_metric(metric_id: str) -> Optional[CoreMetric]:
    return next((m for m in CORE_METRICS if m.id == metric_id), None)


# ══════════════════════════════════════════════════════════════════════════
# DISCOVERY
# ══════════════════════════════════════════════════════════════════════════


def _catalog_sort_key(metric: DynamicMetric) -> Tuple[str, str]:
    return (metric.category, metric.name)


def generate_dynamic_metrics(data: RawFinancialData) -> List[DynamicMetric]:
    """Discover one dynamic metric per populated field of a single record."""
    metrics: List[DynamicMetric] = []
    seen = set(REQUIRED_FIELDS)

    for field_name, value in data.items():
        if field_name in seen or value is None:
            continue
        seen.add(field_name)

        fmt = infer_format(field_name, value)
        metrics.append(
            DynamicMetric(
                id=field_name,
                name=format_field_name(field_name),
                category=infer_category(field_name),
                format=fmt,
                aggregation_method=infer_aggregation_method(field_name, fmt),
            )
        )

    return sorted(metrics, key=_catalog_sort_key)


def get_all_available_metrics(
    data_sources: Iterable[Optional[RawFinancialData]],
) -> List[DynamicMetric]:
    """Union of the metrics discovered across every record.

    A field only one company has is still included.  When the same field
    appears in several records the first occurrence decides format and
    category.
    """
    all_fields: Dict[str, DynamicMetric] = {}
    for data in data_sources:
        if not isinstance(data, dict):
            continue
        for metric in generate_dynamic_metrics(data):
            all_fields.setdefault(metric.id, metric)
    return sorted(all_fields.values(), key=_catalog_sort_key)


# ══════════════════════════════════════════════════════════════════════════
# TIME-PERIOD SUBCATEGORIES
# ══════════════════════════════════════════════════════════════════════════

_PERIOD_PREFIXES = (("annual", "Annual"), ("quarterly", "Quarterly"))


def detect_time_period(metric_id: str, metric_name: str) -> Tuple[bool, bool, Optional[str]]:
    """Return ``(is_annual, is_quarterly, subcategory)`` for a metric."""
    field_name = metric_id.lower()
    name = metric_name.lower()
    if field_name.startswith("annual_") or name.startswith("annual "):
        return True, False, "Annual"
    if field_name.startswith("quarterly_") or name.startswith("quarterly "):
        return False, True, "Quarterly"
    return False, False, None


@dataclass
class NestedMetricGroup:
    """Catalog slice for one category, with Annual/Quarterly split out."""

    category: str
    subcategories: Dict[str, List[DynamicMetric]] = field(default_factory=dict)
    direct_metrics: List[DynamicMetric] = field(default_factory=list)


def group_metrics_with_subcategories(metrics: List[DynamicMetric]) -> List[NestedMetricGroup]:
    """Group a catalog by category, nesting ``annual_``/``quarterly_`` fields.

    Prefixed metrics get the prefix stripped from both the display name and
    the id shown in the subcategory.  Categories keep first-seen order.
    """
    groups: Dict[str, NestedMetricGroup] = {}

    for metric in metrics:
        group = groups.setdefault(metric.category, NestedMetricGroup(category=metric.category))
        field_name = metric.id.lower()

        subcategory = None
        for prefix, label in _PERIOD_PREFIXES:
            if field_name.startswith(f"{prefix}_") or field_name.startswith(f"{prefix} "):
                subcategory = label
                break

        if subcategory is None:
            group.direct_metrics.append(metric)
            continue

        stripped = metric.model_copy(
            update={
                "name": re.sub(rf"^{subcategory}\s+", "", metric.name, flags=re.IGNORECASE),
                "id": re.sub(rf"^{subcategory.lower()}_", "", metric.id),
            }
        )
        group.subcategories.setdefault(subcategory, []).append(stripped)

    return list(groups.values())


# ══════════════════════════════════════════════════════════════════════════
# METRIC REGISTRY ENTRY
# ══════════════════════════════════════════════════════════════════════════


@dataclass
class MetricDefinition:
    """Everything the comparison view needs to show and score one metric."""

    id: str
    name: str
    category: str
    format: MetricFormat
    calculate_value: Callable[[RawFinancialData], Any]
    is_custom: bool = False
    better_direction: Optional[BetterDirection] = None
    is_annual: bool = False
    is_quarterly: bool = False
    subcategory: Optional[str] = None
