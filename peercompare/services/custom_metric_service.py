"""Validation and persistence of user-authored custom metrics."""

from typing import Iterable, List

from pydantic import ValidationError

from peercompare.engines.formula_sanitizer import (
    create_field_mapping,
    replace_field_names_in_formula,
    sanitize_formula,
    validate_formula_fields,
)
from peercompare.logging_config import get_logger
from peercompare.repositories.base import KeyValueStore
from peercompare.schemas.metric import CustomMetric
from peercompare.schemas.scoring import ValidationResult

logger = get_logger(__name__)

CUSTOM_METRICS_KEY = "peercompare_custom_metrics"


def validate_custom_metric(metric: CustomMetric, available_field_ids: Iterable[str]) -> ValidationResult:
    """Check a custom metric before it is saved.

    Args:
        metric: The metric as entered by the user
        available_field_ids: Fields the loaded records offer

    Returns:
        ValidationResult listing every problem found.
    """
    errors: List[str] = []

    if not metric.name.strip():
        errors.append("Name is required")

    if not metric.formula.strip():
        errors.append("Formula is required")
    else:
        formula = sanitize_formula(metric.formula)
        if formula is None:
            errors.append("Formula contains disallowed content")
        else:
            mapping = create_field_mapping(available_field_ids)
            expression = replace_field_names_in_formula(formula, mapping)
            check = validate_formula_fields(expression, mapping)
            if not check.valid:
                errors.append(f"Unknown fields: {', '.join(check.missing_fields)}")

    if metric.priority is not None and not 1 <= metric.priority <= 10:
        errors.append("Priority must be between 1 and 10")

    return ValidationResult(valid=not errors, errors=errors)


class CustomMetricService:
    def __init__(self, store: KeyValueStore):
        self.store = store

    def get_all(self) -> List[CustomMetric]:
        metrics: List[CustomMetric] = []
        for raw in self.store.get(CUSTOM_METRICS_KEY, []) or []:
            try:
                metrics.append(CustomMetric.model_validate(raw))
            except ValidationError as exc:
                logger.warning("custom_metric_skipped", error=str(exc))
        return metrics

    def get(self, metric_id: str) -> CustomMetric | None:
        return next((m for m in self.get_all() if m.id == metric_id), None)

    def save(self, metric: CustomMetric) -> CustomMetric:
        """Insert *metric*, or replace the saved one with the same id."""
        metrics = self.get_all()
        index = next((i for i, m in enumerate(metrics) if m.id == metric.id), None)
        if index is None:
            metrics.append(metric)
        else:
            metrics[index] = metric
        self._write(metrics)
        logger.info("custom_metric_saved", metric_id=metric.id, replaced=index is not None)
        return metric

    def delete(self, metric_id: str) -> bool:
        metrics = self.get_all()
        remaining = [m for m in metrics if m.id != metric_id]
        if len(remaining) == len(metrics):
            return False
        self._write(remaining)
        logger.info("custom_metric_deleted", metric_id=metric_id)
        return True

    def _write(self, metrics: List[CustomMetric]) -> None:
        self.store.set(CUSTOM_METRICS_KEY, [m.model_dump(mode="json") for m in metrics])
