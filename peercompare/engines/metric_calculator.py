"""Computes the value of any metric kind for one record.

Every metric is a :data:`~peercompare.schemas.metric.Metric` (core, dynamic
or custom).  :func:`calculate_metric` is the single dispatch point; the
scoring engines only ever call :func:`calculate_numeric_metric`.

None of the public functions raise on bad data.  A value that cannot be
produced is ``None``.
"""

import logging
import math
from typing import Any, Callable, Dict, Iterable, Optional, Union

from peercompare.domain.metrics import (
    CORE_METRICS,
    CUSTOM_CATEGORY,
    MetricDefinition,
    detect_time_period,
    format_field_name,
    get_all_available_metrics,
    get_core_metric,
)
from peercompare.engines.field_matcher import find_matching_field
from peercompare.engines.formula_sanitizer import (
    FormulaError,
    create_field_mapping,
    evaluate_formula,
    replace_field_names_in_formula,
    sanitize_formula,
    validate_formula_fields,
)
from peercompare.schemas.metric import (
    CoreMetric,
    CustomMetric,
    DynamicMetric,
    MetricFormat,
    RawFinancialData,
)
from peercompare.utils.value_parsing import (
    is_valid_value,
    parse_numeric_value,
)

logger = logging.getLogger(__name__)

AnyMetric = Union[CoreMetric, DynamicMetric, CustomMetric]


# ══════════════════════════════════════════════════════════════════════════
# PER-KIND CALCULATION
# ══════════════════════════════════════════════════════════════════════════


def _fuzzy_value(data: RawFinancialData, metric_id: str, metric_name: str) -> Any:
    field_name = find_matching_field(data, metric_id, metric_name)
    if field_name is None:
        return None
    logger.debug("Metric %s resolved to field %r", metric_id, field_name)
    return data[field_name]


def calculate_core_metric(metric_id: str, data: RawFinancialData) -> Any:
    """Value of a core metric, or of an arbitrary field looked up by id.

    The fixed function of a core metric runs first; when it produces nothing
    the record is searched with the fuzzy field matcher.  Ids that are not
    core metrics are looked up directly, again falling back to fuzzy
    matching.
    """
    core = get_core_metric(metric_id)
    if core is not None:
        value = core.calculate(data)
        if is_valid_value(value):
            return value
        return _fuzzy_value(data, metric_id, core.name)

    value = data.get(metric_id)
    if is_valid_value(value):
        return value
    return _fuzzy_value(data, metric_id, format_field_name(metric_id))


def calculate_dynamic_metric(metric: DynamicMetric, data: RawFinancialData) -> Any:
    return data.get(metric.id)


def _numeric_scope(data: RawFinancialData) -> Dict[str, float]:
    scope: Dict[str, float] = {}
    for field_name, raw in data.items():
        value = parse_numeric_value(raw)
        if value is not None:
            scope[field_name] = value
    return scope


def calculate_custom_metric(metric: CustomMetric, data: RawFinancialData) -> Optional[float]:
    """Evaluate a custom metric's formula against one record.

    Every field that parses as a number is available to the formula under
    its sanitized name (or its original name when that is already a valid
    identifier).

    Returns:
        The finite result, or None when the formula is unsafe, references
        a field the record lacks, or does not evaluate to a finite number.
    """
    try:
        formula = sanitize_formula(metric.formula)
        if formula is None:
            logger.warning("Custom metric %s: formula rejected", metric.id)
            return None

        scope = _numeric_scope(data)
        mapping = create_field_mapping(scope.keys())
        expression = replace_field_names_in_formula(formula, mapping)

        check = validate_formula_fields(expression, mapping)
        if not check.valid:
            logger.info(
                "Custom metric %s: missing fields %s for %s",
                metric.id, ", ".join(check.missing_fields), data.get("ticker"),
            )
            return None

        values = {mapping[name]: value for name, value in scope.items()}
        return evaluate_formula(expression, values)
    except FormulaError as exc:
        logger.info("Custom metric %s not computable for %s: %s", metric.id, data.get("ticker"), exc)
        return None
    except Exception:
        logger.exception("Custom metric %s failed unexpectedly", metric.id)
        return None


# ══════════════════════════════════════════════════════════════════════════
# DISPATCH
# ══════════════════════════════════════════════════════════════════════════


def calculate_metric(metric: AnyMetric, data: RawFinancialData) -> Any:
    """Single dispatch on the metric's ``kind`` tag."""
    if metric.kind == "core":
        return calculate_core_metric(metric.id, data)
    if metric.kind == "dynamic":
        return calculate_dynamic_metric(metric, data)
    if metric.kind == "custom":
        return calculate_custom_metric(metric, data)
    raise ValueError(f"Unknown metric kind: {metric.kind!r}")


def calculate_numeric_metric(metric: AnyMetric, data: RawFinancialData) -> Optional[float]:
    """Metric value as a finite number (what scoring consumes)."""
    return parse_numeric_value(calculate_metric(metric, data))


# ══════════════════════════════════════════════════════════════════════════
# DISPLAY FORMATTING
# ══════════════════════════════════════════════════════════════════════════


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def format_metric_value(value: Any, fmt: Union[MetricFormat, str]) -> Optional[str]:
    """Render a metric value for display.

    Examples:
        >>> format_metric_value(2.5e12, MetricFormat.CURRENCY)
        '$2.50T'
        >>> format_metric_value(-3.2e9, "currency")
        '$-3.20B'
        >>> format_metric_value(12.3456, MetricFormat.PERCENTAGE)
        '12.35%'
        >>> format_metric_value(1234567, MetricFormat.NUMBER)
        '1,234,567'
        >>> format_metric_value("NASDAQ", MetricFormat.NUMBER)
        'NASDAQ'
        >>> format_metric_value(float("nan"), MetricFormat.RATIO) is None
        True
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return str(value)
    if not math.isfinite(value):
        return None

    try:
        fmt = MetricFormat(fmt)
    except ValueError:
        return str(value)

    if fmt == MetricFormat.CURRENCY:
        magnitude = abs(value)
        if magnitude >= 1e12:
            return f"${value / 1e12:.2f}T"
        if magnitude >= 1e9:
            return f"${value / 1e9:.2f}B"
        if magnitude >= 1e6:
            return f"${value / 1e6:.2f}M"
        return f"${value:.2f}"
    if fmt == MetricFormat.PERCENTAGE:
        return f"{value:.2f}%"
    if fmt == MetricFormat.RATIO:
        return f"{value:.2f}"
    if fmt == MetricFormat.NUMBER:
        return _format_number(value)
    return str(value)


# ══════════════════════════════════════════════════════════════════════════
# METRIC REGISTRY
# ══════════════════════════════════════════════════════════════════════════


def _value_fn(metric: AnyMetric) -> Callable[[RawFinancialData], Any]:
    return lambda data: calculate_metric(metric, data)


def _definition(metric: AnyMetric, category: str, **extra: Any) -> MetricDefinition:
    is_annual, is_quarterly, subcategory = detect_time_period(metric.id, metric.name)
    return MetricDefinition(
        id=metric.id,
        name=metric.name,
        category=category,
        format=metric.format,
        calculate_value=_value_fn(metric),
        is_annual=is_annual,
        is_quarterly=is_quarterly,
        subcategory=subcategory,
        **extra,
    )


def build_metric_definitions(
    records: Iterable[Optional[RawFinancialData]],
    custom_metrics: Iterable[CustomMetric] = (),
) -> Dict[str, MetricDefinition]:
    """Registry of every metric the comparison view can show.

    Core metrics come first.  A discovered field whose id matches an
    already-registered id case-insensitively is skipped, so ``Ticker`` from
    one provider does not shadow the core ``ticker``.  Custom metrics are
    grouped under their own category.

    Args:
        records: Provider records of the items being compared
        custom_metrics: The user's saved custom metrics

    Returns:
        Ordered mapping metric id -> definition.
    """
    definitions: Dict[str, MetricDefinition] = {}
    taken: set = set()

    for core in CORE_METRICS:
        definitions[core.id] = _definition(core, core.category)
        taken.add(core.id.lower())

    for metric in get_all_available_metrics(records):
        if metric.id.lower() in taken:
            continue
        definitions[metric.id] = _definition(metric, metric.category)
        taken.add(metric.id.lower())

    for custom in custom_metrics:
        definitions[custom.id] = _definition(
            custom,
            CUSTOM_CATEGORY,
            is_custom=True,
            better_direction=custom.better_direction,
        )

    return definitions