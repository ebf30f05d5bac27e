"""
Tests for Settings defaults, environment overrides and validation.
"""
import pytest
from pydantic import ValidationError

from catrules import config
from catrules.config import Settings, get_settings


class TestDefaults:
    def test_default_values(self):
        settings = Settings()
        assert settings.ENV == "development"
        assert settings.REQUIRE_ABILITY_TRACKER is False
        assert settings.QUADRATURE_POINTS == 61
        assert settings.quadrature_range == (-4.0, 4.0)
        assert settings.RANDOMESQUE_K == 1
        assert settings.SE_THRESHOLD == pytest.approx(0.30)
        assert (settings.MIN_ITEMS, settings.MAX_ITEMS) == (8, 15)

    def test_get_settings_returns_module_instance(self):
        assert get_settings() is config.settings

    def test_get_settings_follows_replacement(self, require_trackers):
        assert get_settings().REQUIRE_ABILITY_TRACKER is True


class TestEnvironmentOverrides:
    """Settings are read from CAT_-prefixed environment variables."""

    def test_prefixed_variables_override_defaults(self, monkeypatch):
        monkeypatch.setenv("CAT_MAX_ITEMS", "25")
        monkeypatch.setenv("CAT_REQUIRE_ABILITY_TRACKER", "true")
        settings = Settings()
        assert settings.MAX_ITEMS == 25
        assert settings.REQUIRE_ABILITY_TRACKER is True

    def test_unprefixed_variables_ignored(self, monkeypatch):
        monkeypatch.setenv("MAX_ITEMS", "25")
        assert Settings().MAX_ITEMS == 15

    def test_keyword_arguments_win(self, monkeypatch):
        monkeypatch.setenv("CAT_RANDOMESQUE_K", "3")
        assert Settings(RANDOMESQUE_K=5).RANDOMESQUE_K == 5


class TestValidation:
    def test_too_few_quadrature_points_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(QUADRATURE_POINTS=1)
        errors = exc_info.value.errors()
        assert len(errors) == 1
        assert errors[0]["loc"] == ("QUADRATURE_POINTS",)

    def test_randomesque_k_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(RANDOMESQUE_K=0)

    def test_inverted_quadrature_range_rejected(self):
        with pytest.raises(ValidationError, match="QUADRATURE_MIN"):
            Settings(QUADRATURE_MIN=2.0, QUADRATURE_MAX=-2.0)

    def test_min_items_above_max_rejected(self):
        with pytest.raises(ValidationError, match="MIN_ITEMS"):
            Settings(MIN_ITEMS=20, MAX_ITEMS=10)

    def test_unknown_environment_rejected(self):
        with pytest.raises(ValidationError):
            Settings(ENV="staging")
