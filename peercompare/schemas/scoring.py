"""Scoring configuration and score result schemas."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from peercompare.schemas.metric import RawFinancialData


class NormalizationMethod(str, Enum):
    MIN_MAX = "min-max"
    PERCENTILE = "percentile"
    Z_SCORE = "z-score"


# ── configuration (persisted) ────────────────────────────────────────


class ScoringMetricConfig(BaseModel):
    metric_id: str
    enabled: bool = True
    weight: float = 0.0  # 0-100, relative weight within category
    category: str = ""


class ScoringCategoryConfig(BaseModel):
    category: str
    enabled: bool = True
    weight: float = 0.0  # 0-100, relative weight among categories
    metrics: List[ScoringMetricConfig] = []


class ScoringConfiguration(BaseModel):
    """User-tunable scoring setup.

    Range checks live in ``validate_scoring_config`` rather than on the
    fields so that an out-of-range saved value is reported, not rejected
    at load time.
    """

    categories: List[ScoringCategoryConfig] = []
    normalization_method: NormalizationMethod = NormalizationMethod.PERCENTILE
    include_missing_data: bool = False
    min_data_completeness: float = 0.5  # 0-1
    max_metrics_per_category: int = 10


class ScorableMetric(BaseModel):
    """A metric offered to the default-configuration builder."""

    id: str
    name: str
    category: str
    priority: int = 5  # 1-10; 0 hides the metric from scoring


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = []


class FieldValidationResult(BaseModel):
    valid: bool
    missing_fields: List[str] = []


# ── inputs / outputs ─────────────────────────────────────────────────


class ScoringItem(BaseModel):
    """One compared item: a company or an aggregated group."""

    id: str
    name: str
    data: RawFinancialData


class MetricScore(BaseModel):
    metric_id: str
    metric_name: str
    score: float  # 0-100
    weight: float
    value: Optional[float] = None
    rank: int = 0  # 1 = best


class MetricContribution(BaseModel):
    metric_id: str
    metric_name: str
    score: float
    weight: float
    value: Optional[float] = None
    contribution: float  # points added to the total score


class CategoryScore(BaseModel):
    category: str
    score: float  # 0-100
    weight: float
    metrics: List[MetricContribution] = []


class ItemScore(BaseModel):
    item_id: str
    item_name: str
    total_score: float  # 0-100
    metric_scores: List[MetricScore] = []
    rank: int = 0  # 1 = best overall


class ImprovedItemScore(ItemScore):
    category_scores: List[CategoryScore] = []
    calculation_breakdown: str = ""
