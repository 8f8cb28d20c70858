"""Comparison facade: single entry point for presentation layers.

A UI (or any other caller) hands over companies, groups and the user's
choices, and gets back metric catalogs, values, display strings and
scores.  Internal wiring (engines, services, store) stays behind this
class, so consumers are insulated from changes to it.

Usage::

    facade = ComparisonFacade()           # uses Settings() from .env
    catalog = facade.metric_catalog([c.raw_data for c in companies])
    scores = facade.score_items(items, companies)
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from peercompare.config import Settings
from peercompare.domain.metrics import MetricDefinition, get_all_available_metrics
from peercompare.domain.scoring import get_value_indicator
from peercompare.engines.group_aggregator import aggregate_group_data
from peercompare.engines.legacy_scorer import LegacyMetricConfig, calculate_overall_scores
from peercompare.engines.metric_calculator import build_metric_definitions, format_metric_value
from peercompare.engines.score_engine import ScoringMetricDefinition, calculate_improved_scores
from peercompare.logging_config import get_logger
from peercompare.repositories.base import KeyValueStore, build_store
from peercompare.schemas.group import Company, ComparisonGroup
from peercompare.schemas.metric import CustomMetric, DynamicMetric, MetricFormat, RawFinancialData
from peercompare.schemas.scoring import (
    ImprovedItemScore,
    ItemScore,
    ScorableMetric,
    ScoringConfiguration,
    ScoringItem,
)
from peercompare.services.custom_metric_service import CustomMetricService
from peercompare.services.scoring_config_service import ScoringConfigService
from peercompare.services.template_service import TemplateService
from peercompare.utils.value_parsing import parse_numeric_value

logger = get_logger(__name__)

ComparedItem = Union[Company, ComparisonGroup]

DEFAULT_METRIC_PRIORITY = 5

# A record with only ticker and name carries nothing to score.
MIN_RECORD_FIELDS = 3


def _numeric_reader(definition: MetricDefinition):
    return lambda data: parse_numeric_value(definition.calculate_value(data))


class ComparisonFacade:
    """High-level API for metric discovery, values and scoring.

    Returns only pydantic schemas, dataclasses and plain values.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[KeyValueStore] = None,
        scoring_configs: Optional[ScoringConfigService] = None,
        custom_metrics: Optional[CustomMetricService] = None,
        templates: Optional[TemplateService] = None,
    ):
        self._settings = settings or Settings()
        if store is None:
            store = build_store(self._settings.store_path)
        self.scoring_configs = scoring_configs or ScoringConfigService(store, self._settings)
        self.custom_metrics = custom_metrics or CustomMetricService(store)
        self.templates = templates or TemplateService(store)

    # ══════════════════════════════════════════════════════════════════
    # METRICS
    # ══════════════════════════════════════════════════════════════════

    def metric_catalog(self, records: Iterable[Optional[RawFinancialData]]) -> List[DynamicMetric]:
        return get_all_available_metrics(records)

    def metric_definitions(
        self,
        records: Iterable[Optional[RawFinancialData]],
        custom_metrics: Optional[Sequence[CustomMetric]] = None,
    ) -> Dict[str, MetricDefinition]:
        """Registry for *records*; saved custom metrics are used by default."""
        if custom_metrics is None:
            custom_metrics = self.custom_metrics.get_all()
        return build_metric_definitions(records, custom_metrics)

    def item_record(
        self, item: ComparedItem, companies: Sequence[Company]
    ) -> Optional[RawFinancialData]:
        """Record of a company, or the aggregated record of a group."""
        if isinstance(item, ComparisonGroup):
            return aggregate_group_data(item, companies)
        return item.raw_data

    def compute_values(
        self, definition: MetricDefinition, records: Mapping[str, Optional[RawFinancialData]]
    ) -> Dict[str, Any]:
        """Value of one metric for every item id in *records*."""
        return {
            item_id: definition.calculate_value(record) if record else None
            for item_id, record in records.items()
        }

    def formatted_value(
        self, definition: MetricDefinition, record: Optional[RawFinancialData]
    ) -> Optional[str]:
        if not record:
            return None
        return format_metric_value(definition.calculate_value(record), definition.format)

    def value_indicators(
        self, definition: MetricDefinition, records: Mapping[str, Optional[RawFinancialData]]
    ) -> Dict[str, Optional[str]]:
        """best / worst / good / bad marker per item for one metric."""
        values = {
            item_id: parse_numeric_value(value)
            for item_id, value in self.compute_values(definition, records).items()
        }
        peers = list(values.values())
        return {
            item_id: get_value_indicator(value, peers, definition.better_direction)
            for item_id, value in values.items()
        }

    # ══════════════════════════════════════════════════════════════════
    # SCORING
    # ══════════════════════════════════════════════════════════════════

    def resolve_scoring_config(self, available: Sequence[ScorableMetric]) -> ScoringConfiguration:
        return self.scoring_configs.resolve(available)

    def _scoring_items(
        self, items: Sequence[ComparedItem], companies: Sequence[Company]
    ) -> List[ScoringItem]:
        scoring_items: List[ScoringItem] = []
        for item in items:
            record = self.item_record(item, companies) or {}
            if len(record) < MIN_RECORD_FIELDS:
                continue
            name = item.name if isinstance(item, ComparisonGroup) else item.ticker
            scoring_items.append(ScoringItem(id=item.id, name=name, data=record))
        return scoring_items

    def _scored_definitions(
        self,
        scoring_items: List[ScoringItem],
        custom_metrics: Optional[Sequence[CustomMetric]],
        priorities: Optional[Mapping[str, int]],
    ) -> List[tuple]:
        priorities = priorities or {}
        definitions = self.metric_definitions([i.data for i in scoring_items], custom_metrics)
        selected = []
        for metric_id, definition in definitions.items():
            if definition.format == MetricFormat.TEXT:
                continue
            priority = priorities.get(metric_id, DEFAULT_METRIC_PRIORITY)
            if priority > 0:
                selected.append((definition, priority))
        return selected

    def score_items(
        self,
        items: Sequence[ComparedItem],
        companies: Sequence[Company],
        custom_metrics: Optional[Sequence[CustomMetric]] = None,
        priorities: Optional[Mapping[str, int]] = None,
        config: Optional[ScoringConfiguration] = None,
    ) -> List[ImprovedItemScore]:
        """Category-based scores for the compared items, best first.

        Args:
            items: Companies and groups in display order
            companies: All known companies (group members are looked up here)
            custom_metrics: Custom metrics to include; saved ones by default
            priorities: metric id -> 1-10 (0 hides a metric); default 5
            config: Explicit configuration; resolved from storage otherwise

        Returns:
            Scores, or an empty list when fewer than
            ``min_items_for_scoring`` items carry data.
        """
        scoring_items = self._scoring_items(items, companies)
        if len(scoring_items) < self._settings.min_items_for_scoring:
            logger.info("scoring_skipped", items_with_data=len(scoring_items))
            return []

        selected = self._scored_definitions(scoring_items, custom_metrics, priorities)
        if config is None:
            available = [
                ScorableMetric(id=d.id, name=d.name, category=d.category, priority=p)
                for d, p in selected
            ]
            config = self.resolve_scoring_config(available)

        definitions = {
            d.id: ScoringMetricDefinition(
                name=d.name,
                calculate_value=_numeric_reader(d),
                better_direction=d.better_direction,
            )
            for d, _ in selected
        }
        results = calculate_improved_scores(scoring_items, config, definitions)
        logger.info("items_scored", items=len(results), metrics=len(definitions))
        return results

    def score_items_by_priority(
        self,
        items: Sequence[ComparedItem],
        companies: Sequence[Company],
        custom_metrics: Optional[Sequence[CustomMetric]] = None,
        priorities: Optional[Mapping[str, int]] = None,
    ) -> List[ItemScore]:
        """Flat priority-weighted scores (the original scoring mode)."""
        scoring_items = self._scoring_items(items, companies)
        if len(scoring_items) < self._settings.min_items_for_scoring:
            return []

        selected = self._scored_definitions(scoring_items, custom_metrics, priorities)
        configs = [
            LegacyMetricConfig(
                id=d.id,
                name=d.name,
                priority=p,
                calculate_value=_numeric_reader(d),
                better_direction=d.better_direction,
            )
            for d, p in selected
        ]
        return calculate_overall_scores(scoring_items, configs)
