"""Builds a synthetic record for a comparison group.

A group behaves like one more company in the comparison.  Its record is
computed on demand from the members' records:

- stock/flow totals (market cap, revenue, debt, ...) are **summed**
- prices and ratios are **weighted by market cap**
- everything else (text, counts) is left out
"""

import logging
from typing import Dict, Iterable, List, Optional

from peercompare.domain.metrics import CORE_METRICS, get_all_available_metrics
from peercompare.schemas.group import Company, ComparisonGroup
from peercompare.schemas.metric import AggregationMethod, RawFinancialData
from peercompare.utils.value_parsing import is_finite_number, parse_numeric_value

logger = logging.getLogger(__name__)

MARKET_CAP_FIELD = "marketCap"
PRICE_FIELD = "price"


def _numeric(value) -> Optional[float]:
    """Only native numbers take part in aggregation; strings never do."""
    if not is_finite_number(value):
        return None
    return parse_numeric_value(value)


def _market_cap(data: RawFinancialData) -> float:
    """Weight of a member; a cap that is not a native number weighs nothing."""
    cap = _numeric(data.get(MARKET_CAP_FIELD))
    return cap if cap is not None else 0.0


def sum_field(members: List[RawFinancialData], field_name: str) -> Optional[float]:
    """Sum of the members that have a numeric value; None when nobody does.

    >>> sum_field([{"revenue": 100}, {}, {"revenue": 50}], "revenue")
    150.0
    >>> sum_field([{}, {"revenue": "n/a"}], "revenue") is None
    True
    """
    values = [v for v in (_numeric(m.get(field_name)) for m in members) if v is not None]
    if not values:
        return None
    return float(sum(values))


def weighted_average_field(
    members: List[RawFinancialData], field_name: str, weights: List[float]
) -> Optional[float]:
    """Market-cap weighted mean over members with a value and a positive cap.

    >>> weighted_average_field([{"price": 10}, {"price": 20}], "price", [100, 300])
    17.5
    """
    total = 0.0
    weight_sum = 0.0
    for member, weight in zip(members, weights):
        value = _numeric(member.get(field_name))
        if value is None or weight <= 0:
            continue
        total += value * weight
        weight_sum += weight
    if weight_sum == 0:
        return None
    return total / weight_sum


def _aggregate(
    method: Optional[AggregationMethod],
    members: List[RawFinancialData],
    field_name: str,
    weights: List[float],
) -> Optional[float]:
    if method == AggregationMethod.SUM:
        return sum_field(members, field_name)
    if method == AggregationMethod.WEIGHTED_AVERAGE:
        return weighted_average_field(members, field_name, weights)
    return None


def aggregate_group_data(
    group: ComparisonGroup, companies: Iterable[Company]
) -> RawFinancialData:
    """Compute the record that represents *group* in a comparison.

    Args:
        group: The comparison group
        companies: All known companies; only members with data are used

    Returns:
        A new record with ``ticker`` = group id, ``name`` = group name and
        every aggregatable metric the members carry.  A group without
        members holding data gets just the ticker and name.
    """
    member_ids = set(group.company_ids)
    members: List[RawFinancialData] = [
        c.raw_data for c in companies if c.id in member_ids and c.raw_data
    ]

    if not members:
        logger.debug("Group %s has no members with data", group.id)
        return {"ticker": group.id, "name": group.name}

    weights = [_market_cap(m) for m in members]

    result: Dict[str, object] = {
        "ticker": group.id,
        "name": group.name,
        "industry": f"Group of {len(members)} companies",
    }

    for metric in get_all_available_metrics(members):
        if metric.aggregation_method is None:
            continue
        value = _aggregate(metric.aggregation_method, members, metric.id, weights)
        if value is not None:
            result[metric.id] = value

    for core in CORE_METRICS:
        if core.aggregation_method is None or core.id in result:
            continue
        value = _aggregate(core.aggregation_method, members, core.id, weights)
        if value is not None:
            result[core.id] = value

    total_cap = sum_field(members, MARKET_CAP_FIELD)
    if total_cap is not None:
        result[MARKET_CAP_FIELD] = total_cap
    price = weighted_average_field(members, PRICE_FIELD, weights)
    if price is not None:
        result[PRICE_FIELD] = price

    logger.debug("Aggregated group %s from %d members", group.id, len(members))
    return result
