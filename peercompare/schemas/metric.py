"""Metric schemas: the three metric kinds and their shared enums.

A metric is one of a closed set of kinds, told apart by the ``kind`` tag:

- ``core``: fixed-function legacy metrics (only ticker and name)
- ``dynamic``: discovered from the fields present in provider records
- ``custom``: user-authored arithmetic formulas over record fields
"""

from enum import Enum
from typing import Annotated, Any, Callable, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

# Flat provider record: field name -> scalar.  ``ticker`` and ``name`` are
# always present; everything else depends on the provider.
RawFinancialData = Dict[str, Any]


class MetricFormat(str, Enum):
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    RATIO = "ratio"
    NUMBER = "number"
    TEXT = "text"


class AggregationMethod(str, Enum):
    SUM = "sum"
    WEIGHTED_AVERAGE = "weightedAverage"


class BetterDirection(str, Enum):
    HIGHER = "higher"
    LOWER = "lower"


class CatalogMetric(BaseModel):
    """Fields shared by metrics that live in the discovered catalog."""

    id: str  # field name as delivered by the provider
    name: str  # human-readable label
    category: str
    format: MetricFormat
    aggregation_method: Optional[AggregationMethod] = None


class DynamicMetric(CatalogMetric):
    kind: Literal["dynamic"] = "dynamic"


class CoreMetric(CatalogMetric):
    kind: Literal["core"] = "core"
    calculate: Callable[[RawFinancialData], Any] = Field(exclude=True)


class CustomMetric(BaseModel):
    """User-created formula metric (persisted)."""

    kind: Literal["custom"] = "custom"
    id: str
    name: str
    format: MetricFormat = MetricFormat.NUMBER
    formula: str
    better_direction: Optional[BetterDirection] = None
    priority: Optional[int] = Field(default=None, ge=1, le=10)

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: MetricFormat) -> MetricFormat:
        if v == MetricFormat.TEXT:
            raise ValueError("Custom metrics must produce a numeric format")
        return v


Metric = Annotated[
    Union[CoreMetric, DynamicMetric, CustomMetric],
    Field(discriminator="kind"),
]
