"""Rules for scoring configurations: defaults, validation, merge, rebalance.

A configuration is plain data (:class:`ScoringConfiguration`).  Every helper
here returns a new model; none mutates its input.

Usage:
    from peercompare.domain.scoring_config import get_default_scoring_config

    config = get_default_scoring_config([
        ScorableMetric(id="peRatio", name="P/E Ratio", category="Valuation", priority=8),
    ])
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from peercompare.schemas.scoring import (
    ScorableMetric,
    ScoringCategoryConfig,
    ScoringConfiguration,
    ScoringMetricConfig,
    ValidationResult,
)

logger = logging.getLogger(__name__)

DEFAULT_SCORING_CONFIG = ScoringConfiguration()

# Enabled category weights may drift this far from 100 and still validate.
WEIGHT_TOLERANCE = 0.01

# Priority floors tried in order when picking default metrics; None = all.
PRIORITY_TIERS = (7, 5, None)


# ══════════════════════════════════════════════════════════════════════════
# VALIDATION
# ══════════════════════════════════════════════════════════════════════════


def validate_scoring_config(config: Optional[ScoringConfiguration]) -> ValidationResult:
    """Check a configuration before it is used for scoring.

    Examples:
        >>> validate_scoring_config(None).errors
        ['Configuration is missing']
        >>> validate_scoring_config(DEFAULT_SCORING_CONFIG).valid
        False
    """
    if config is None:
        return ValidationResult(valid=False, errors=["Configuration is missing"])

    enabled = [c for c in config.categories if c.enabled]
    if not enabled:
        return ValidationResult(valid=False, errors=["At least one category must be enabled"])

    errors: List[str] = []
    for category in enabled:
        metrics = [m for m in category.metrics if m.enabled]
        if not metrics:
            errors.append(f'Category "{category.category}" has no enabled metrics')
        if sum(m.weight for m in metrics) == 0:
            errors.append(f'Category "{category.category}" has zero total weight')

    total = sum(c.weight for c in enabled)
    if abs(total - 100) > WEIGHT_TOLERANCE:
        errors.append(f"Category weights must sum to 100% (currently {total:.2f}%)")

    if not 0 <= config.min_data_completeness <= 1:
        errors.append("min_data_completeness must be between 0 and 1")
    if config.max_metrics_per_category < 1:
        errors.append("max_metrics_per_category must be at least 1")

    return ValidationResult(valid=not errors, errors=errors)


# ══════════════════════════════════════════════════════════════════════════
# DEFAULTS
# ══════════════════════════════════════════════════════════════════════════


def _group_by_category(available: Iterable[ScorableMetric]) -> Dict[str, List[ScorableMetric]]:
    groups: Dict[str, List[ScorableMetric]] = {}
    for metric in available:
        groups.setdefault(metric.category, []).append(metric)
    return groups


def _category_config(
    category: str, metrics: Sequence[ScorableMetric], floor: Optional[int], limit: int
) -> Optional[ScoringCategoryConfig]:
    picked = [m for m in metrics if floor is None or m.priority >= floor]
    picked = sorted(picked, key=lambda m: m.priority, reverse=True)[:limit]
    if not picked:
        return None

    priorities = [max(m.priority, 1) if floor is None else m.priority for m in picked]
    total = sum(priorities)
    return ScoringCategoryConfig(
        category=category,
        enabled=True,
        weight=100.0,
        metrics=[
            ScoringMetricConfig(
                metric_id=m.id,
                enabled=True,
                weight=(p / total) * 100 if total > 0 else 100 / len(picked),
                category=category,
            )
            for m, p in zip(picked, priorities)
        ],
    )


def get_default_scoring_config(
    available: Iterable[ScorableMetric],
    base: ScoringConfiguration = DEFAULT_SCORING_CONFIG,
) -> ScoringConfiguration:
    """Build a configuration from the metrics currently on offer.

    Per category the highest-priority metrics (priority >= 7) are picked,
    at most ``base.max_metrics_per_category`` of them, weighted by priority.
    When no category has such metrics the floor drops to 5, then to every
    metric.  Category weights are split evenly to total 100.

    Args:
        available: Metrics with their category and priority (1-10)
        base: Supplies normalization, completeness and limit settings

    Returns:
        A new configuration; without any metric it has no categories.
    """
    groups = _group_by_category(available)
    if not groups:
        logger.warning("No metrics available for a default scoring configuration")
        return base.model_copy(update={"categories": []}, deep=True)

    categories: List[ScoringCategoryConfig] = []
    for floor in PRIORITY_TIERS:
        categories = [
            cfg
            for cfg in (
                _category_config(name, metrics, floor, base.max_metrics_per_category)
                for name, metrics in groups.items()
            )
            if cfg is not None
        ]
        if categories:
            if floor is None:
                logger.warning("No high or medium priority metrics; using all metrics")
            break

    share = 100 / len(categories) if categories else 0.0
    categories = [c.model_copy(update={"weight": share}) for c in categories]
    return base.model_copy(update={"categories": categories}, deep=True)


# ══════════════════════════════════════════════════════════════════════════
# MERGE
# ══════════════════════════════════════════════════════════════════════════


def _saved_metric_ids(config: ScoringConfiguration) -> set:
    return {m.metric_id for c in config.categories for m in c.metrics}


def merge_scoring_config(
    saved: Optional[ScoringConfiguration],
    available: Sequence[ScorableMetric],
    base: ScoringConfiguration = DEFAULT_SCORING_CONFIG,
) -> ScoringConfiguration:
    """Reconcile a saved configuration with the metrics available now.

    - Missing or invalid *saved* config: fresh defaults.
    - No new metrics: *saved* unchanged.
    - New metrics: defaults are regenerated and only the missing metrics
      are spliced in.  Saved categories keep their enabled flag, weight
      and metrics; categories the defaults no longer produce are kept.
      Brand-new categories are appended disabled with weight 0 whenever
      the saved config has enabled categories, so saved weights still sum
      to 100.
    - If the merge result does not validate, *saved* is returned as-is.
    """
    if saved is None or not saved.categories:
        return get_default_scoring_config(available, base)

    validation = validate_scoring_config(saved)
    if not validation.valid:
        logger.warning("Saved scoring config invalid, using defaults: %s", validation.errors)
        return get_default_scoring_config(available, base)

    known = _saved_metric_ids(saved)
    if all(m.id in known for m in available):
        return saved

    defaults = get_default_scoring_config(available, base)
    by_name = {c.category: c for c in defaults.categories}
    saved_names = {c.category for c in saved.categories}
    has_enabled = any(c.enabled for c in saved.categories)

    merged: List[ScoringCategoryConfig] = []
    for category in saved.categories:
        fresh = by_name.get(category.category)
        if fresh is None:
            merged.append(category.model_copy(deep=True))
            continue
        existing = {m.metric_id for m in category.metrics}
        added = [m for m in fresh.metrics if m.metric_id not in existing]
        kept = [m.model_copy() for m in category.metrics]
        merged.append(category.model_copy(update={"metrics": kept + added}))

    for category in defaults.categories:
        if category.category in saved_names:
            continue
        if has_enabled:
            category = category.model_copy(update={"enabled": False, "weight": 0.0})
        merged.append(category)

    result = saved.model_copy(update={"categories": merged}, deep=True)
    revalidation = validate_scoring_config(result)
    if not revalidation.valid:
        logger.warning("Merged scoring config invalid, keeping saved: %s", revalidation.errors)
        return saved
    return result


# ══════════════════════════════════════════════════════════════════════════
# REBALANCING
# ══════════════════════════════════════════════════════════════════════════


def _rescaled(weights: List[float]) -> List[float]:
    total = sum(weights)
    if total == 0:
        return [100 / len(weights)] * len(weights)
    return [w / total * 100 for w in weights]


def renormalize_metric_weights(category: ScoringCategoryConfig) -> ScoringCategoryConfig:
    """Rescale the enabled metrics of *category* so their weights total 100.

    Disabled metrics keep their weight.  All-zero weights split evenly.
    """
    enabled = [m for m in category.metrics if m.enabled]
    if not enabled:
        return category.model_copy(deep=True)

    new_weights = iter(_rescaled([m.weight for m in enabled]))
    metrics = [
        m.model_copy(update={"weight": next(new_weights)}) if m.enabled else m.model_copy()
        for m in category.metrics
    ]
    return category.model_copy(update={"metrics": metrics})


def renormalize_category_weights(config: ScoringConfiguration) -> ScoringConfiguration:
    """Rescale enabled category weights of *config* to total 100."""
    enabled = [c for c in config.categories if c.enabled]
    if not enabled:
        return config.model_copy(deep=True)

    new_weights = iter(_rescaled([c.weight for c in enabled]))
    categories = [
        c.model_copy(update={"weight": next(new_weights)}, deep=True)
        if c.enabled
        else c.model_copy(deep=True)
        for c in config.categories
    ]
    return config.model_copy(update={"categories": categories})
