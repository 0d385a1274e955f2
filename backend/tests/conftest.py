"""Pytest configuration and shared fixtures.

This module provides centralized test fixtures for:
- The clinical FHIR bundle fixture and a record source over it
- Date ranges and encounters around the fixture data
- A mocked record source for dispatcher and resolver tests
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from clinical_timeline.repositories.bundle import BundleRecordSource
from clinical_timeline.schemas.series import DateRange, Encounter

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def utc(*args: int) -> datetime:
    """Build an aware UTC datetime."""
    return datetime(*args, tzinfo=timezone.utc)


# =============================================================================
# Bundle Fixtures
# =============================================================================


@pytest.fixture
def clinical_bundle() -> dict:
    """Load the clinical bundle fixture."""
    with open(FIXTURES_DIR / "clinical_bundle.json") as f:
        return json.load(f)


@pytest.fixture
def bundle_source(clinical_bundle) -> BundleRecordSource:
    """Record source serving the clinical bundle fixture."""
    return BundleRecordSource(clinical_bundle)


@pytest.fixture
def bundle_resources(clinical_bundle) -> dict[str, dict]:
    """Fixture resources keyed by id."""
    return {
        entry["resource"]["id"]: entry["resource"]
        for entry in clinical_bundle["entry"]
    }


# =============================================================================
# Time Fixtures
# =============================================================================


@pytest.fixture
def march_1988() -> DateRange:
    """Date range covering the fixture's inpatient stay."""
    return DateRange(start=utc(1988, 3, 20), end=utc(1988, 3, 31, 23, 59))


@pytest.fixture
def encounter() -> Encounter:
    return Encounter(id="enc-1", start=utc(1988, 3, 22), end=utc(1988, 3, 26))


# =============================================================================
# Mock Record Source
# =============================================================================


@pytest.fixture
def mock_source() -> AsyncMock:
    """Record source whose fetches all return empty lists by default."""
    source = AsyncMock()
    source.fetch_observations.return_value = []
    source.fetch_medication_administrations.return_value = []
    source.fetch_medication_orders.return_value = []
    source.fetch_diagnostic_reports.return_value = []
    source.fetch_encounters.return_value = []
    return source
