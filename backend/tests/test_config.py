"""Tests for environment-driven settings."""

import pytest

from clinical_timeline.config import Settings


class TestSettings:
    """Tests for Settings loading and validation warnings."""

    def test_defaults(self):
        settings = Settings()
        assert settings.lab_coding_system == "http://loinc.org"
        assert settings.discrete_series_y == 10.0
        assert settings.administration_cache_ttl_seconds is None

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("TIMELINE_STEP_SERIES_SPACING", "25")
        monkeypatch.setenv("TIMELINE_ADMINISTRATION_CACHE_TTL_SECONDS", "300")
        settings = Settings()
        assert settings.step_series_spacing == 25.0
        assert settings.administration_cache_ttl_seconds == 300.0

    def test_non_positive_ttl_warns(self):
        with pytest.warns(UserWarning, match="disables administration caching"):
            Settings(administration_cache_ttl_seconds=0)

    def test_non_positive_spacing_warns(self):
        with pytest.warns(UserWarning, match="must be positive"):
            Settings(step_series_spacing=0)
