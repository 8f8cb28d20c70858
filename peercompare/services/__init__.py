"""Service-layer modules: persistence-backed user settings."""

from peercompare.services.custom_metric_service import CustomMetricService
from peercompare.services.scoring_config_service import ScoringConfigService
from peercompare.services.template_service import TemplateService

__all__ = [
    "ScoringConfigService",
    "CustomMetricService",
    "TemplateService",
]
