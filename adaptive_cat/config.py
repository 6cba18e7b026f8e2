"""
Process-wide engine configuration.

These are numeric tunables and logging options shared by every session in a
process. Per-session options (model, stopping thresholds, exposure control)
live in :class:`adaptive_cat.settings.CATSettings`.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseSettings):
    """Engine configuration loaded from ``CAT_``-prefixed environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["text", "json"] = "text"

    # Probabilities are clamped into (eps, 1 - eps) before any log or division
    PROBABILITY_EPSILON: float = Field(default=1e-6, gt=0.0, lt=0.01)

    # Newton-Raphson ability estimation
    MLE_MAX_ITERATIONS: int = Field(default=30, ge=1)
    MLE_TOLERANCE: float = Field(default=1e-4, gt=0.0)
    # Coarse grid used to locate the global likelihood maximum
    MLE_GRID_POINTS: int = Field(default=121, ge=3)

    # EAP ability estimation
    EAP_QUADRATURE_POINTS: int = Field(default=61, ge=11)

    # Exposure rate above which ExposureMonitor logs an alert
    EXPOSURE_ALERT_THRESHOLD: float = Field(default=0.15, ge=0.0, le=1.0)


engine_config = EngineConfig()
