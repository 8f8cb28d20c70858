"""Priority-weighted scoring, the original flat scoring mode.

Each metric is min-max normalized across items and weighted by its
priority (1-10).  There are no categories and no completeness filter: an
item without a value simply scores 0 on that metric.
"""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, List, Optional, Sequence

from peercompare.domain.scoring import NEUTRAL_SCORE, apply_direction
from peercompare.engines.metric_calculator import calculate_custom_metric
from peercompare.schemas.metric import BetterDirection, CustomMetric, RawFinancialData
from peercompare.schemas.scoring import ItemScore, MetricScore, ScoringItem
from peercompare.utils.value_parsing import is_finite_number

logger = logging.getLogger(__name__)

DEFAULT_CUSTOM_PRIORITY = 5


@dataclass
class LegacyMetricConfig:
    id: str
    name: str
    priority: int
    calculate_value: Callable[[RawFinancialData], Optional[float]]
    better_direction: Optional[BetterDirection] = None


def _custom_config(metric: CustomMetric) -> LegacyMetricConfig:
    return LegacyMetricConfig(
        id=metric.id,
        name=metric.name,
        priority=metric.priority or DEFAULT_CUSTOM_PRIORITY,
        better_direction=metric.better_direction,
        calculate_value=partial(calculate_custom_metric, metric),
    )


def _min_max_scores(
    values: List[Optional[float]], better_direction: Optional[BetterDirection]
) -> List[float]:
    valid = [v for v in values if v is not None]
    if not valid:
        return [0.0] * len(values)

    low, high = min(valid), max(valid)
    scores: List[float] = []
    for value in values:
        if value is None:
            scores.append(0.0)
            continue
        score = NEUTRAL_SCORE if high == low else (value - low) / (high - low) * 100
        scores.append(apply_direction(score, better_direction))
    return scores


def _read(config: LegacyMetricConfig, item: ScoringItem) -> Optional[float]:
    try:
        value = config.calculate_value(item.data)
    except Exception:
        logger.exception("Value of %s failed for item %s", config.id, item.id)
        return None
    return float(value) if is_finite_number(value) else None


def calculate_overall_scores(
    items: Sequence[ScoringItem],
    metrics: Sequence[LegacyMetricConfig],
    custom_metrics: Sequence[CustomMetric] = (),
) -> List[ItemScore]:
    """Score *items* by a priority-weighted average of min-max scores.

    Args:
        items: Items to compare
        metrics: Metric configs carrying a priority (0 = excluded)
        custom_metrics: Custom metrics, priority 5 unless set

    Returns:
        Item scores sorted best first with ranks assigned; empty when
        there is nothing to score.
    """
    if not items or (not metrics and not custom_metrics):
        return []

    configs = [
        c
        for c in list(metrics) + [_custom_config(cm) for cm in custom_metrics]
        if c.priority > 0
    ]
    if not configs:
        return []

    values = {c.id: [_read(c, item) for item in items] for c in configs}
    scores = {c.id: _min_max_scores(values[c.id], c.better_direction) for c in configs}

    ranks = {}
    for config in configs:
        order = sorted(range(len(items)), key=lambda i: scores[config.id][i], reverse=True)
        ranks[config.id] = {position: rank for rank, position in enumerate(order, start=1)}

    results: List[ItemScore] = []
    for position, item in enumerate(items):
        metric_scores: List[MetricScore] = []
        weighted = 0.0
        total_weight = 0
        for config in configs:
            score = scores[config.id][position]
            weighted += score * config.priority
            total_weight += config.priority
            metric_scores.append(
                MetricScore(
                    metric_id=config.id,
                    metric_name=config.name,
                    score=score,
                    weight=config.priority,
                    value=values[config.id][position],
                    rank=ranks[config.id][position],
                )
            )
        results.append(
            ItemScore(
                item_id=item.id,
                item_name=item.name,
                total_score=weighted / total_weight if total_weight > 0 else 0.0,
                metric_scores=metric_scores,
            )
        )

    results.sort(key=lambda r: r.total_score, reverse=True)
    for rank, result in enumerate(results, start=1):
        result.rank = rank
    return results
