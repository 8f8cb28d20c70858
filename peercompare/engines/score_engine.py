"""Category-based, user-configurable scoring of compared items.

Pipeline, per call:

1. Validate the configuration (invalid → no scores, never an exception)
2. Resolve the enabled metrics that have a definition
3. Compute every item × metric value
4. Drop metrics below the configured data completeness
5. Normalize each metric on its own across the items
6. Invert scores of lower-is-better metrics
7. Fold metric scores into category scores, then into a total score
8. Rank each metric and the totals (stable: input order breaks ties)

Every item also gets a plain-text breakdown of how its total came about.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from peercompare.domain.scoring import (
    NEUTRAL_SCORE,
    apply_direction,
    data_completeness,
    normalize_values,
)
from peercompare.domain.scoring_config import validate_scoring_config
from peercompare.schemas.metric import BetterDirection, RawFinancialData
from peercompare.schemas.scoring import (
    CategoryScore,
    ImprovedItemScore,
    MetricContribution,
    MetricScore,
    ScoringConfiguration,
    ScoringItem,
)
from peercompare.utils.value_parsing import is_finite_number

logger = logging.getLogger(__name__)


@dataclass
class ScoringMetricDefinition:
    """How to read and judge one metric during scoring."""

    name: str
    calculate_value: Callable[[RawFinancialData], Optional[float]]
    better_direction: Optional[BetterDirection] = None


@dataclass
class _EnabledMetric:
    metric_id: str
    name: str
    category: str
    weight: float
    better_direction: Optional[BetterDirection]
    calculate_value: Callable[[RawFinancialData], Any]


def _safe_value(metric: _EnabledMetric, item: ScoringItem) -> Optional[float]:
    try:
        value = metric.calculate_value(item.data)
    except Exception:
        logger.exception("Value of %s failed for item %s", metric.metric_id, item.id)
        return None
    return float(value) if is_finite_number(value) else None


def _resolve_metrics(
    config: ScoringConfiguration, definitions: Mapping[str, ScoringMetricDefinition]
) -> Dict[str, _EnabledMetric]:
    enabled: Dict[str, _EnabledMetric] = {}
    for category in config.categories:
        if not category.enabled:
            continue
        for metric_config in category.metrics:
            if not metric_config.enabled:
                continue
            definition = definitions.get(metric_config.metric_id)
            if definition is None:
                continue
            enabled[metric_config.metric_id] = _EnabledMetric(
                metric_id=metric_config.metric_id,
                name=definition.name,
                category=category.category,
                weight=metric_config.weight,
                better_direction=definition.better_direction,
                calculate_value=definition.calculate_value,
            )
    return enabled


# ══════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════


def calculate_improved_scores(
    items: Sequence[ScoringItem],
    config: Optional[ScoringConfiguration],
    metric_definitions: Mapping[str, ScoringMetricDefinition],
) -> List[ImprovedItemScore]:
    """Score and rank *items* under *config*.

    Args:
        items: Items to compare (companies or aggregated groups)
        config: Scoring configuration; validated first
        metric_definitions: metric id -> how to compute and judge it

    Returns:
        One :class:`ImprovedItemScore` per item, best first.  Empty when
        the configuration is invalid or there are no items.
    """
    validation = validate_scoring_config(config)
    if not validation.valid:
        logger.error("Invalid scoring configuration: %s", "; ".join(validation.errors))
        return []
    if not items:
        return []

    enabled = _resolve_metrics(config, metric_definitions)

    values: Dict[str, List[Optional[float]]] = {
        metric_id: [_safe_value(metric, item) for item in items]
        for metric_id, metric in enabled.items()
    }

    valid_ids = {
        metric_id
        for metric_id, by_item in values.items()
        if data_completeness(by_item) >= config.min_data_completeness
    }
    dropped = set(enabled) - valid_ids
    if dropped:
        logger.info("Metrics below data completeness: %s", ", ".join(sorted(dropped)))

    normalized: Dict[str, Dict[float, float]] = {
        metric_id: normalize_values(
            [v for v in values[metric_id] if v is not None],
            config.normalization_method,
        )
        for metric_id in valid_ids
    }

    results = [
        _score_item(index, item, config, enabled, valid_ids, values, normalized)
        for index, item in enumerate(items)
    ]
    _assign_metric_ranks(results)

    results.sort(key=lambda r: r.total_score, reverse=True)
    for position, result in enumerate(results, start=1):
        result.rank = position

    logger.debug("Scored %d items on %d metrics", len(results), len(valid_ids))
    return results


# ══════════════════════════════════════════════════════════════════════════
# INTERNALS
# ══════════════════════════════════════════════════════════════════════════


def _score_item(
    index: int,
    item: ScoringItem,
    config: ScoringConfiguration,
    enabled: Dict[str, _EnabledMetric],
    valid_ids: set,
    values: Dict[str, List[Optional[float]]],
    normalized: Dict[str, Dict[float, float]],
) -> ImprovedItemScore:
    category_scores: List[CategoryScore] = []
    metric_scores: List[MetricScore] = []

    for category in config.categories:
        if not category.enabled:
            continue
        members = [
            (m, enabled[m.metric_id])
            for m in category.metrics
            if m.enabled and m.metric_id in valid_ids
        ]
        if not members:
            continue

        scored = []
        for metric_config, metric in members:
            value = values[metric.metric_id][index]
            if value is None:
                if not config.include_missing_data:
                    continue
                score = NEUTRAL_SCORE
            else:
                score = normalized[metric.metric_id].get(value, NEUTRAL_SCORE)
                score = apply_direction(score, metric.better_direction)
            scored.append((metric_config.weight, metric, score, value))

        total_weight = sum(weight for weight, _, _, _ in scored)
        weighted = 0.0
        contributions: List[MetricContribution] = []

        for weight, metric, score, value in scored:
            weighted += score * weight
            # Points this metric adds to the item's total score
            share = weight / total_weight if total_weight > 0 else 0.0
            contributions.append(
                MetricContribution(
                    metric_id=metric.metric_id,
                    metric_name=metric.name,
                    score=score,
                    weight=weight,
                    value=value,
                    contribution=score * share * category.weight / 100,
                )
            )
            if value is not None:
                metric_scores.append(
                    MetricScore(
                        metric_id=metric.metric_id,
                        metric_name=metric.name,
                        score=score,
                        weight=weight,
                        value=value,
                    )
                )

        category_scores.append(
            CategoryScore(
                category=category.category,
                score=weighted / total_weight if total_weight > 0 else 0.0,
                weight=category.weight,
                metrics=contributions,
            )
        )

    total = sum(c.score * c.weight / 100 for c in category_scores)
    if not math.isfinite(total):
        logger.warning("Non-finite total score for item %s", item.id)
        total = 0.0

    return ImprovedItemScore(
        item_id=item.id,
        item_name=item.name,
        total_score=total,
        metric_scores=metric_scores,
        category_scores=category_scores,
        calculation_breakdown=generate_calculation_breakdown(category_scores, total),
    )


def _metric_score(result: ImprovedItemScore, metric_id: str) -> float:
    """Adjusted score of one metric; items without it count as 0."""
    return next((ms.score for ms in result.metric_scores if ms.metric_id == metric_id), 0.0)


def _assign_metric_ranks(results: List[ImprovedItemScore]) -> None:
    metric_ids: List[str] = []
    for result in results:
        for ms in result.metric_scores:
            if ms.metric_id not in metric_ids:
                metric_ids.append(ms.metric_id)

    for metric_id in metric_ids:
        scored = [(_metric_score(r, metric_id), position) for position, r in enumerate(results)]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        for rank, (_, position) in enumerate(scored, start=1):
            for ms in results[position].metric_scores:
                if ms.metric_id == metric_id:
                    ms.rank = rank


def generate_calculation_breakdown(category_scores: List[CategoryScore], total_score: float) -> str:
    """Human-readable account of a total score, category by category."""
    lines = [f"Total Score: {total_score:.2f}", "", "Breakdown by Category:"]
    for category in category_scores:
        points = category.score * category.weight / 100
        lines.append(
            f"  {category.category} ({category.weight:.1f}% weight): "
            f"{category.score:.2f} -> {points:.2f} points"
        )
        if category.metrics:
            lines.append("    Metrics:")
            for metric in category.metrics:
                lines.append(
                    f"      - {metric.metric_name}: {metric.score:.2f} "
                    f"(weight: {metric.weight:.1f}%, contribution: {metric.contribution:.3f} points)"
                )
    return "\n".join(lines)
