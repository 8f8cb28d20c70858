"""Comparison templates: predefined metric sets plus the user's own."""

import random
import string
import time
from typing import Dict, List, Optional

from pydantic import ValidationError

from peercompare.logging_config import get_logger
from peercompare.repositories.base import KeyValueStore
from peercompare.schemas.template import ComparisonTemplate

logger = get_logger(__name__)

TEMPLATES_KEY = "comparison_templates"

PREDEFINED_TEMPLATES: List[ComparisonTemplate] = [
    ComparisonTemplate(
        id="valuation-overview",
        name="Valuation Overview",
        description="Key valuation metrics for stock comparison",
        is_predefined=True,
        metric_ids=["peRatio", "pbRatio", "psRatio", "pegRatio", "evToRevenue", "evToEbitda"],
        metric_priorities={
            "peRatio": 9, "pbRatio": 8, "psRatio": 7,
            "pegRatio": 9, "evToRevenue": 6, "evToEbitda": 7,
        },
        visible_metrics=["peRatio", "pbRatio", "psRatio", "pegRatio"],
        categories=["Valuation"],
    ),
    ComparisonTemplate(
        id="profitability",
        name="Profitability Analysis",
        description="Compare profitability and efficiency metrics",
        is_predefined=True,
        metric_ids=["roe", "roa", "profitMargin", "operatingMargin", "netMargin", "grossMargin"],
        metric_priorities={
            "roe": 10, "roa": 9, "profitMargin": 9,
            "operatingMargin": 8, "netMargin": 8, "grossMargin": 7,
        },
        visible_metrics=["roe", "roa", "profitMargin", "operatingMargin"],
        categories=["Profitability"],
    ),
    ComparisonTemplate(
        id="financial-health",
        name="Financial Health",
        description="Assess financial stability and leverage",
        is_predefined=True,
        metric_ids=["debtToEquity", "currentRatio", "quickRatio", "debtRatio", "interestCoverage"],
        metric_priorities={
            "debtToEquity": 9, "currentRatio": 8, "quickRatio": 8,
            "debtRatio": 7, "interestCoverage": 9,
        },
        visible_metrics=["debtToEquity", "currentRatio", "quickRatio"],
        categories=["Financial Health"],
    ),
    ComparisonTemplate(
        id="dividend-analysis",
        name="Dividend Analysis",
        description="Compare dividend policies and yields",
        is_predefined=True,
        metric_ids=["dividendYield", "payoutRatio", "dividendPerShare"],
        metric_priorities={"dividendYield": 9, "payoutRatio": 8, "dividendPerShare": 7},
        visible_metrics=["dividendYield", "payoutRatio"],
        categories=["Dividends"],
    ),
    ComparisonTemplate(
        id="comprehensive",
        name="Comprehensive Analysis",
        description="Full comparison with all key metrics",
        is_predefined=True,
        metric_ids=[
            "peRatio", "pbRatio", "roe", "roa", "profitMargin",
            "debtToEquity", "currentRatio", "dividendYield",
            "revenueGrowth", "earningsGrowth",
        ],
        metric_priorities={
            "peRatio": 8, "pbRatio": 7, "roe": 9, "roa": 8, "profitMargin": 9,
            "debtToEquity": 8, "currentRatio": 7, "dividendYield": 7,
            "revenueGrowth": 8, "earningsGrowth": 9,
        },
        visible_metrics=[
            "peRatio", "pbRatio", "roe", "roa", "profitMargin",
            "debtToEquity", "currentRatio", "dividendYield",
        ],
        categories=["Valuation", "Profitability", "Financial Health", "Dividends", "Growth"],
    ),
]

_PREDEFINED_IDS = {t.id for t in PREDEFINED_TEMPLATES}


def _random_suffix(length: int = 9) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(random.choices(alphabet, k=length))


class TemplateService:
    def __init__(self, store: KeyValueStore):
        self.store = store

    def _custom_templates(self) -> List[ComparisonTemplate]:
        templates: List[ComparisonTemplate] = []
        for raw in self.store.get(TEMPLATES_KEY, []) or []:
            try:
                templates.append(ComparisonTemplate.model_validate(raw))
            except ValidationError as exc:
                logger.warning("template_skipped", error=str(exc))
        return templates

    def _write(self, templates: List[ComparisonTemplate]) -> None:
        self.store.set(TEMPLATES_KEY, [t.model_dump(mode="json") for t in templates])

    # ── reads ────────────────────────────────────────────────────────

    def get_all(self) -> List[ComparisonTemplate]:
        """Predefined templates first, then the user's in save order."""
        return [t.model_copy(deep=True) for t in PREDEFINED_TEMPLATES] + self._custom_templates()

    def get_by_id(self, template_id: str) -> Optional[ComparisonTemplate]:
        return next((t for t in self.get_all() if t.id == template_id), None)

    # ── writes ───────────────────────────────────────────────────────

    def save(self, template: ComparisonTemplate) -> ComparisonTemplate:
        """Insert or replace a user template.

        Raises:
            ValueError: If *template* is predefined.
        """
        if template.is_predefined or template.id in _PREDEFINED_IDS:
            raise ValueError("Cannot save predefined templates")

        templates = self._custom_templates()
        index = next((i for i, t in enumerate(templates) if t.id == template.id), None)
        if index is None:
            templates.append(template)
        else:
            templates[index] = template
        self._write(templates)
        logger.info("template_saved", template_id=template.id)
        return template

    def delete(self, template_id: str) -> None:
        """Remove a user template; unknown ids are ignored.

        Raises:
            ValueError: If *template_id* names a predefined template.
        """
        if template_id in _PREDEFINED_IDS:
            raise ValueError("Cannot delete predefined templates")
        templates = self._custom_templates()
        self._write([t for t in templates if t.id != template_id])
        logger.info("template_deleted", template_id=template_id)

    def create_from_grid(
        self,
        name: str,
        description: Optional[str],
        metric_ids: List[str],
        metric_priorities: Dict[str, int],
        visible_metrics: List[str],
        categories: Optional[List[str]] = None,
    ) -> ComparisonTemplate:
        """Build (but do not save) a template from the current grid state."""
        return ComparisonTemplate(
            id=f"custom-{int(time.time() * 1000)}-{_random_suffix()}",
            name=name,
            description=description,
            is_predefined=False,
            metric_ids=list(metric_ids),
            metric_priorities=dict(metric_priorities),
            visible_metrics=list(visible_metrics),
            categories=list(categories) if categories is not None else None,
        )
