"""All normalization and indicator formulas used by the scoring engines.

Usage:
    from peercompare.domain.scoring import normalize_values

    scores = normalize_values([10.0, 20.0, 30.0], NormalizationMethod.MIN_MAX)
    # {10.0: 0.0, 20.0: 50.0, 30.0: 100.0}

Every function here is pure.  Scores are on a 0-100 scale and a degenerate
input (one value, or all values equal) always lands on the neutral 50.
"""

import math
from bisect import bisect_left
from typing import Dict, List, Optional, Sequence

from peercompare.schemas.metric import BetterDirection
from peercompare.schemas.scoring import NormalizationMethod
from peercompare.utils.value_parsing import is_finite_number

NEUTRAL_SCORE = 50.0

# Three standard deviations either side of the mean span the 0-100 range.
Z_SCORE_SPREAD = 3.0

INDICATOR_TOLERANCE = 1e-4


def data_completeness(values: Sequence[Optional[float]]) -> float:
    """Fraction of *values* that are finite numbers.

    >>> data_completeness([1.0, None, 3.0, float("nan")])
    0.5
    >>> data_completeness([])
    0.0
    """
    if not values:
        return 0.0
    valid = sum(1 for v in values if is_finite_number(v))
    return valid / len(values)


def normalize_min_max(values: Sequence[float]) -> Dict[float, float]:
    """``(v - min) / (max - min) * 100``; all-equal input maps to 50.

    >>> normalize_min_max([10.0, 20.0, 30.0])
    {10.0: 0.0, 20.0: 50.0, 30.0: 100.0}
    """
    low, high = min(values), max(values)
    if high == low:
        return {v: NEUTRAL_SCORE for v in values}
    return {v: (v - low) / (high - low) * 100 for v in values}


def normalize_percentile(values: Sequence[float]) -> Dict[float, float]:
    """Position of the first sorted entry >= v, over ``n - 1``.

    Duplicates share the percentile of their first occurrence.

    >>> normalize_percentile([30.0, 10.0, 20.0])
    {30.0: 100.0, 10.0: 0.0, 20.0: 50.0}
    >>> normalize_percentile([5.0, 5.0, 9.0])
    {5.0: 0.0, 9.0: 100.0}
    """
    ordered = sorted(values)
    last = len(ordered) - 1
    return {v: bisect_left(ordered, v) / last * 100 for v in values}


def normalize_z_score(values: Sequence[float]) -> Dict[float, float]:
    """Population z-score rescaled to ``50 + z/3 * 50`` and clamped to [0, 100].

    >>> normalize_z_score([1.0, 1.0, 1.0])
    {1.0: 50.0}
    """
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    std_dev = math.sqrt(variance)
    if std_dev == 0:
        return {v: NEUTRAL_SCORE for v in values}

    result: Dict[float, float] = {}
    for v in values:
        z = (v - mean) / std_dev
        result[v] = max(0.0, min(100.0, NEUTRAL_SCORE + (z / Z_SCORE_SPREAD) * 50))
    return result


_NORMALIZERS = {
    NormalizationMethod.MIN_MAX: normalize_min_max,
    NormalizationMethod.PERCENTILE: normalize_percentile,
    NormalizationMethod.Z_SCORE: normalize_z_score,
}


def normalize_values(
    values: Sequence[float], method: NormalizationMethod
) -> Dict[float, float]:
    """Rescale one metric's values to 0-100, keyed by raw value.

    Values must already be finite.  Metrics are never mixed: call this once
    per metric.

    Args:
        values: Finite raw values of a single metric across all items
        method: Normalization strategy

    Returns:
        Mapping raw value -> normalized score.  Empty input gives ``{}``;
        a single value, or all-equal values, always map to 50
        regardless of *method*.
    """
    if not values:
        return {}
    if len(set(values)) == 1:
        return {v: NEUTRAL_SCORE for v in values}
    return _NORMALIZERS[NormalizationMethod(method)](values)


def apply_direction(score: float, better_direction: Optional[BetterDirection]) -> float:
    """Invert a normalized score when lower raw values are better.

    >>> apply_direction(80.0, BetterDirection.LOWER)
    20.0
    >>> apply_direction(80.0, None)
    80.0
    """
    if better_direction == BetterDirection.LOWER:
        return 100.0 - score
    return score


def get_value_indicator(
    value: Optional[float],
    all_values: Sequence[Optional[float]],
    better_direction: Optional[BetterDirection] = None,
) -> Optional[str]:
    """Classify *value* against its peers: best / worst / good / bad / None.

    Best and worst are the extremes (swapped when lower is better).  Values
    at or beyond the 30th / 70th positions of the sorted list are good or
    bad depending on direction.

    Examples:
        >>> get_value_indicator(10.0, [1.0, 5.0, 10.0])
        'best'
        >>> get_value_indicator(10.0, [1.0, 5.0, 10.0], BetterDirection.LOWER)
        'worst'
        >>> get_value_indicator(None, [1.0, 2.0]) is None
        True
    """
    if not is_finite_number(value):
        return None

    ordered: List[float] = sorted(v for v in all_values if is_finite_number(v))
    if not ordered:
        return None

    lower_is_better = better_direction == BetterDirection.LOWER
    best = ordered[0] if lower_is_better else ordered[-1]
    worst = ordered[-1] if lower_is_better else ordered[0]

    if abs(value - best) < INDICATOR_TOLERANCE:
        return "best"
    if abs(value - worst) < INDICATOR_TOLERANCE:
        return "worst"

    last = len(ordered) - 1
    threshold_top = ordered[min(math.floor(len(ordered) * 0.3), last)]
    threshold_bottom = ordered[min(math.ceil(len(ordered) * 0.7), last)]

    if lower_is_better:
        if value <= threshold_top:
            return "good"
        if value >= threshold_bottom:
            return "bad"
    else:
        if value >= threshold_bottom:
            return "good"
        if value <= threshold_top:
            return "bad"

    return None
