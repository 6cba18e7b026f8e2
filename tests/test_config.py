"""
Tests for process-wide engine configuration.
"""

import pytest
from pydantic import ValidationError

from adaptive_cat import response_models
from adaptive_cat.config import EngineConfig


class TestEngineConfig:
    def test_defaults(self, monkeypatch):
        for name in ("CAT_LOG_LEVEL", "CAT_LOG_FORMAT", "CAT_MLE_MAX_ITERATIONS"):
            monkeypatch.delenv(name, raising=False)
        config = EngineConfig(_env_file=None)
        assert config.LOG_LEVEL == "INFO"
        assert config.LOG_FORMAT == "text"
        assert config.PROBABILITY_EPSILON == 1e-6
        assert config.MLE_MAX_ITERATIONS == 30
        assert config.MLE_TOLERANCE == 1e-4
        assert config.MLE_GRID_POINTS == 121
        assert config.EXPOSURE_ALERT_THRESHOLD == 0.15

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("CAT_LOG_FORMAT", "json")
        monkeypatch.setenv("CAT_MLE_MAX_ITERATIONS", "50")
        config = EngineConfig(_env_file=None)
        assert config.LOG_FORMAT == "json"
        assert config.MLE_MAX_ITERATIONS == 50

    def test_unprefixed_environment_ignored(self, monkeypatch):
        monkeypatch.delenv("CAT_LOG_LEVEL", raising=False)
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        assert EngineConfig(_env_file=None).LOG_LEVEL == "INFO"

    def test_invalid_values_rejected(self, monkeypatch):
        monkeypatch.setenv("CAT_LOG_FORMAT", "xml")
        with pytest.raises(ValidationError):
            EngineConfig(_env_file=None)

    def test_probability_clamp_reads_epsilon(self, monkeypatch):
        monkeypatch.setattr(response_models.engine_config, "PROBABILITY_EPSILON", 1e-3)
        assert response_models.clamp_probability(0.0) == pytest.approx(1e-3)
        assert response_models.clamp_probability(1.0) == pytest.approx(1.0 - 1e-3)

    def test_grid_size_below_three_rejected(self):
        with pytest.raises(ValidationError):
            EngineConfig(_env_file=None, MLE_GRID_POINTS=2)
