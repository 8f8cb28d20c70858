"""Maps a metric id/name to the record field that most likely holds it.

Different providers expose the same concept under very different keys:
``currentRatio`` from one, ``Financials Metric Current Ratio Annual`` (a
nested annual-report field flattened with a prefix) from another.  Matching
runs in three explicit stages:

1. exact key
2. normalized exact key (lower-case, alphanumerics only)
3. scored fuzzy match

Stage 3 is approximate by nature: it has no false-positive protection
beyond its scoring, and score ties go to the field that comes first in the
record.
"""

import re
from typing import Iterable, List, Optional, Tuple

from peercompare.domain.metrics import format_field_name
from peercompare.schemas.metric import RawFinancialData
from peercompare.utils.value_parsing import is_valid_value

_NON_ALNUM = re.compile(r"[^a-z0-9]")

# Share of a token-match score that is granted just for containing every
# token; the rest scales with how much of the field the tokens cover.
TOKEN_MATCH_BASE = 0.5


def normalize_key(name: str) -> str:
    """Lower-case and drop everything that is not a letter or digit.

    >>> normalize_key("Financials Metric Current_Ratio")
    'financialsmetriccurrentratio'
    """
    return _NON_ALNUM.sub("", name.lower())


def name_tokens(metric_name: str) -> List[str]:
    """Word tokens of a human-readable metric name.

    >>> name_tokens("Current Ratio (Annual)")
    ['current', 'ratio', 'annual']
    """
    return [t for t in re.split(r"[^a-z0-9]+", metric_name.lower()) if t]


def _candidates(data: RawFinancialData) -> Iterable[str]:
    return (k for k, v in data.items() if is_valid_value(v))


# ── stages ───────────────────────────────────────────────────────────


def find_exact_field(data: RawFinancialData, metric_id: str) -> Optional[str]:
    return metric_id if is_valid_value(data.get(metric_id)) else None


def find_normalized_field(data: RawFinancialData, metric_id: str) -> Optional[str]:
    target = normalize_key(metric_id)
    if not target:
        return None
    for field_name in _candidates(data):
        if normalize_key(field_name) == target:
            return field_name
    return None


def containment_score(pattern: str, candidate: str) -> float:
    """Overlap of two normalized keys when one contains the other.

    The overlap is the shorter key, divided by the longer one rather than
    by the candidate alone.  A short field inside the pattern (``pe`` for
    ``peratio``) therefore scores low instead of a perfect 1.0, and a
    close superset such as ``peRatioTTM`` wins over it.

    >>> containment_score("currentratio", "currentratioannual")
    0.6666666666666666
    >>> containment_score("peratio", "dividendyield")
    0.0
    """
    if not pattern or not candidate:
        return 0.0
    if pattern in candidate or candidate in pattern:
        return min(len(pattern), len(candidate)) / max(len(pattern), len(candidate))
    return 0.0


def token_score(tokens: List[str], candidate: str) -> float:
    """Reward candidates that contain every token of the metric name."""
    if not tokens or not candidate:
        return 0.0
    if not all(t in candidate for t in tokens):
        return 0.0
    coverage = min(1.0, sum(len(t) for t in tokens) / len(candidate))
    return TOKEN_MATCH_BASE + (1 - TOKEN_MATCH_BASE) * coverage


def score_fuzzy_candidates(
    data: RawFinancialData, metric_id: str, metric_name: Optional[str] = None
) -> List[Tuple[str, float]]:
    """Score every populated field of *data*; zero-score fields are omitted.

    Returned in record order so callers can break ties deterministically.
    """
    pattern = normalize_key(metric_id)
    tokens = name_tokens(metric_name or format_field_name(metric_id))

    scored: List[Tuple[str, float]] = []
    for field_name in _candidates(data):
        candidate = normalize_key(field_name)
        score = max(containment_score(pattern, candidate), token_score(tokens, candidate))
        if score > 0:
            scored.append((field_name, score))
    return scored


def find_matching_field(
    data: RawFinancialData, metric_id: str, metric_name: Optional[str] = None
) -> Optional[str]:
    """Return the record field that best matches a metric, or None.

    Args:
        data: Flat provider record
        metric_id: Metric id (usually a field name from another provider)
        metric_name: Human label; defaults to the id formatted as a label

    Returns:
        The matching field name, or None when nothing scores above zero.
    """
    if not metric_id:
        return None

    exact = find_exact_field(data, metric_id)
    if exact is not None:
        return exact

    normalized = find_normalized_field(data, metric_id)
    if normalized is not None:
        return normalized

    best_field: Optional[str] = None
    best_score = 0.0
    for field_name, score in score_fuzzy_candidates(data, metric_id, metric_name):
        if score > best_score:
            best_field, best_score = field_name, score
    return best_field
