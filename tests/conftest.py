"""Shared test fixtures.

Provider records come from ``fixtures/provider_records.json``: one record in
the native-number style (AAPL), one with a prefixed nested field (MSFT) and
one where every value is a string (GOOG).
"""

from typing import Dict, List

import pytest

from peercompare.config import Settings
from peercompare.repositories.base import InMemoryStore
from peercompare.schemas.group import Company, ComparisonGroup
from peercompare.schemas.metric import RawFinancialData
from tests.fixtures import load_fixture


@pytest.fixture()
def provider_records() -> Dict[str, RawFinancialData]:
    return load_fixture("provider_records.json")


@pytest.fixture()
def companies(provider_records) -> List[Company]:
    return [
        Company(id=f"company-{ticker.lower()}", ticker=ticker, raw_data=record)
        for ticker, record in provider_records.items()
    ]


@pytest.fixture()
def mega_caps(companies) -> ComparisonGroup:
    """Group of the two companies with native numeric records."""
    return ComparisonGroup(
        id="group-mega", name="Mega Caps", company_ids=["company-aapl", "company-msft"]
    )


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None)
