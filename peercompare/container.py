"""Dependency Injection Container.

Centralized definition of the engine's dependencies using dependency-injector.

Usage::

    from peercompare.container import AppContainer

    container = AppContainer()
    facade = container.comparison_facade()

    # Tests swap the store for an in-memory one
    container.store.override(providers.Object(InMemoryStore()))
"""

from dependency_injector import containers, providers

from peercompare.config import Settings
from peercompare.facade import ComparisonFacade
from peercompare.repositories.base import build_store
from peercompare.services.custom_metric_service import CustomMetricService
from peercompare.services.scoring_config_service import ScoringConfigService
from peercompare.services.template_service import TemplateService


class AppContainer(containers.DeclarativeContainer):
    """Application Dependency Injection Container.

    - Configuration (Settings)
    - Persistence (key-value store)
    - Services (saved configuration, custom metrics, templates)
    - Facade (single entry point for callers)
    """

    # ══════════════════════════════════════════════════════════════════
    # CONFIGURATION
    # ══════════════════════════════════════════════════════════════════

    settings = providers.Singleton(Settings)

    # ══════════════════════════════════════════════════════════════════
    # PERSISTENCE
    # ══════════════════════════════════════════════════════════════════

    store = providers.Singleton(build_store, store_path=settings.provided.store_path)

    # ══════════════════════════════════════════════════════════════════
    # SERVICES
    # ══════════════════════════════════════════════════════════════════

    scoring_config_service = providers.Factory(
        ScoringConfigService,
        store=store,
        settings=settings,
    )

    custom_metric_service = providers.Factory(
        CustomMetricService,
        store=store,
    )

    template_service = providers.Factory(
        TemplateService,
        store=store,
    )

    # ══════════════════════════════════════════════════════════════════
    # FACADE
    # ══════════════════════════════════════════════════════════════════

    comparison_facade = providers.Factory(
        ComparisonFacade,
        settings=settings,
        store=store,
        scoring_configs=scoring_config_service,
        custom_metrics=custom_metric_service,
        templates=template_service,
    )
