"""
Per-session settings for adaptive tests.

Settings are validated once when a session is created and are immutable for
the lifetime of the session. Both snake_case names and the host application's
camelCase names (``thetaStart``, ``standardErrorTarget``, ...) are accepted.
"""

from typing import Any, Mapping, Self, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from adaptive_cat.exceptions import ConfigurationError
from adaptive_cat.models import Estimator, IRTModel, ScoringMethod

# Defaults for the stopping rules.
# SE = 0.30 corresponds to reliability ~0.91 (reliability = 1 - SE^2)
SE_THRESHOLD = 0.30
MIN_ITEMS = 8
MAX_ITEMS = 15

# Randomesque exposure control: select randomly from the top-K most
# informative items (Kingsbury & Zara, 1989).
RANDOMESQUE_K = 5

THETA_MIN = -4.0
THETA_MAX = 4.0


class CATSettings(BaseModel):
    """Immutable configuration for one adaptive test session."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    model: IRTModel = IRTModel.TWO_PL
    theta_start: float = 0.0
    theta_min: float = THETA_MIN
    theta_max: float = THETA_MAX
    standard_error_target: float = SE_THRESHOLD
    min_items: int = Field(default=MIN_ITEMS, ge=0)
    max_items: int = Field(default=MAX_ITEMS, ge=1)
    exposure_control: bool = False
    exposure_window: int = Field(default=RANDOMESQUE_K, ge=1)
    content_balancing: bool = False
    estimator: Estimator = Estimator.MLE
    prior_mean: float = 0.0
    prior_sd: float = Field(default=1.0, gt=0.0)
    scoring_method: ScoringMethod = ScoringMethod.THETA
    scaled_score_min: float = 200.0
    scaled_score_max: float = 800.0

    @model_validator(mode="after")
    def _check_ranges(self) -> Self:
        if self.min_items > self.max_items:
            raise ValueError(
                f"min_items ({self.min_items}) must not exceed "
                f"max_items ({self.max_items})"
            )
        if self.theta_min >= self.theta_max:
            raise ValueError(
                f"theta_min ({self.theta_min}) must be below "
                f"theta_max ({self.theta_max})"
            )
        if self.standard_error_target <= 0:
            raise ValueError(
                f"standard_error_target must be positive, "
                f"got {self.standard_error_target}"
            )
        if not (self.theta_min <= self.theta_start <= self.theta_max):
            raise ValueError(
                f"theta_start ({self.theta_start}) must lie within "
                f"[{self.theta_min}, {self.theta_max}]"
            )
        if self.scaled_score_min >= self.scaled_score_max:
            raise ValueError(
                f"scaled_score_min ({self.scaled_score_min}) must be below "
                f"scaled_score_max ({self.scaled_score_max})"
            )
        return self


def load_settings(settings: Union[CATSettings, Mapping[str, Any]]) -> CATSettings:
    """
    Validate raw settings into a ``CATSettings``.

    Args:
        settings: An existing ``CATSettings`` (returned unchanged) or a mapping
            of option names to values.

    Returns:
        Validated, immutable settings.

    Raises:
        ConfigurationError: If any option is unknown, mistyped or out of range.
    """
    if isinstance(settings, CATSettings):
        return settings

    try:
        return CATSettings.model_validate(dict(settings))
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(
            f"Invalid CAT settings: {problems}",
            original_error=e,
        ) from e
