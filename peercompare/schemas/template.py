"""Comparison template schema."""

from typing import Dict, List, Optional

from pydantic import BaseModel


class ComparisonTemplate(BaseModel):
    """Saved selection of metrics and their priorities for the comparison grid."""

    id: str
    name: str
    description: Optional[str] = None
    is_predefined: bool = False
    metric_ids: List[str] = []
    metric_priorities: Dict[str, int] = {}  # metric id -> priority (1-10)
    visible_metrics: List[str] = []
    column_widths: Optional[Dict[str, int]] = None
    categories: Optional[List[str]] = None
