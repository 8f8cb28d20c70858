"""Pydantic schemas for the engine's data model."""

from peercompare.schemas.group import Company, ComparisonGroup
from peercompare.schemas.metric import (
    AggregationMethod,
    BetterDirection,
    CoreMetric,
    CustomMetric,
    DynamicMetric,
    Metric,
    MetricFormat,
    RawFinancialData,
)
from peercompare.schemas.scoring import (
    CategoryScore,
    FieldValidationResult,
    ImprovedItemScore,
    ItemScore,
    MetricContribution,
    MetricScore,
    NormalizationMethod,
    ScoringCategoryConfig,
    ScoringConfiguration,
    ScoringItem,
    ScorableMetric,
    ScoringMetricConfig,
    ValidationResult,
)
from peercompare.schemas.template import ComparisonTemplate

__all__ = [
    "RawFinancialData", "Metric", "MetricFormat", "AggregationMethod", "BetterDirection",
    "CoreMetric", "DynamicMetric", "CustomMetric",
    "Company", "ComparisonGroup",
    "NormalizationMethod", "ScoringMetricConfig", "ScoringCategoryConfig", "ScoringConfiguration",
    "ScorableMetric", "ValidationResult", "FieldValidationResult",
    "ScoringItem", "MetricScore", "MetricContribution", "CategoryScore",
    "ItemScore", "ImprovedItemScore",
    "ComparisonTemplate",
]
