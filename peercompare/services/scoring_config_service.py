"""Persists the user's scoring configuration and resolves the one to use.

The rules themselves (defaults, validation, merge) live in
:mod:`peercompare.domain.scoring_config`; this service adds storage and the
settings-derived base configuration.
"""

from typing import Optional, Sequence

from pydantic import ValidationError

from peercompare.config import Settings
from peercompare.domain.scoring_config import (
    get_default_scoring_config,
    merge_scoring_config,
    validate_scoring_config,
)
from peercompare.logging_config import get_logger
from peercompare.repositories.base import KeyValueStore
from peercompare.schemas.scoring import (
    NormalizationMethod,
    ScorableMetric,
    ScoringConfiguration,
    ValidationResult,
)

logger = get_logger(__name__)

SCORING_CONFIG_KEY = "peercompare_scoring_config"


def base_config_from_settings(settings: Settings) -> ScoringConfiguration:
    """Empty configuration carrying the defaults configured in *settings*."""
    return ScoringConfiguration(
        categories=[],
        normalization_method=NormalizationMethod(settings.default_normalization_method),
        include_missing_data=settings.default_include_missing_data,
        min_data_completeness=settings.default_min_data_completeness,
        max_metrics_per_category=settings.default_max_metrics_per_category,
    )


class ScoringConfigService:
    def __init__(self, store: KeyValueStore, settings: Settings):
        self.store = store
        self.base = base_config_from_settings(settings)

    # ── persistence ──────────────────────────────────────────────────

    def save(self, config: ScoringConfiguration) -> ValidationResult:
        """Store *config*.  Invalid configs are saved too; the result says why."""
        validation = validate_scoring_config(config)
        if not validation.valid:
            logger.warning("scoring_config_saved_invalid", errors=validation.errors)
        self.store.set(SCORING_CONFIG_KEY, config.model_dump(mode="json"))
        logger.info("scoring_config_saved", categories=len(config.categories))
        return validation

    def load(self) -> Optional[ScoringConfiguration]:
        raw = self.store.get(SCORING_CONFIG_KEY)
        if raw is None:
            return None
        try:
            return ScoringConfiguration.model_validate(raw)
        except ValidationError as exc:
            logger.warning("scoring_config_corrupt", error=str(exc))
            return None

    def clear(self) -> None:
        self.store.delete(SCORING_CONFIG_KEY)
        logger.info("scoring_config_cleared")

    # ── resolution ───────────────────────────────────────────────────

    def defaults(self, available: Sequence[ScorableMetric]) -> ScoringConfiguration:
        return get_default_scoring_config(available, self.base)

    def resolve(self, available: Sequence[ScorableMetric]) -> ScoringConfiguration:
        """The configuration scoring should use for the metrics on offer.

        Loads the saved configuration and merges newly available metrics
        into it, falling back to defaults when nothing usable is saved.
        """
        if not available:
            logger.warning("scoring_config_no_metrics")
            return self.base.model_copy(deep=True)

        config = merge_scoring_config(self.load(), available, self.base)
        if not any(c.enabled for c in config.categories):
            logger.warning("scoring_config_no_enabled_categories")
            config = self.defaults(available)
        return config
