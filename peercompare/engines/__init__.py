"""Core computation engines: values, formulas, groups and scores."""

from peercompare.engines.field_matcher import find_matching_field
from peercompare.engines.formula_sanitizer import (
    FormulaError,
    evaluate_formula,
    sanitize_field_name,
    sanitize_formula,
)
from peercompare.engines.group_aggregator import aggregate_group_data
from peercompare.engines.legacy_scorer import LegacyMetricConfig, calculate_overall_scores
from peercompare.engines.metric_calculator import (
    build_metric_definitions,
    calculate_metric,
    calculate_numeric_metric,
    format_metric_value,
)
from peercompare.engines.score_engine import ScoringMetricDefinition, calculate_improved_scores

__all__ = [
    "find_matching_field",
    "FormulaError",
    "evaluate_formula",
    "sanitize_field_name",
    "sanitize_formula",
    "aggregate_group_data",
    "LegacyMetricConfig",
    "calculate_overall_scores",
    "build_metric_definitions",
    "calculate_metric",
    "calculate_numeric_metric",
    "format_metric_value",
    "ScoringMetricDefinition",
    "calculate_improved_scores",
]
