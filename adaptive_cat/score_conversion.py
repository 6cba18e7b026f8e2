"""
Score conversion for final adaptive test reports.

Converts a final theta estimate into the reporting scales hosts ask for.
None of these values gate pass/fail; thresholds are host policy.

Scaled score (linear over a fixed theta window):
    scaled = min + (theta - THETA_LOW) / (THETA_HIGH - THETA_LOW) * (max - min)
    clamped to [min, max]

Percent score:
    percent = 100 * P(correct | theta) on a reference item with a = 1, b = 0

95% Confidence Interval:
    CI = theta ± 1.96 × SE(theta), clamped to the session's theta bounds

Percentile Rank:
    percentile = Φ(θ) × 100, Φ the standard normal CDF
"""

import math
from typing import Tuple

from scipy.stats import norm

from adaptive_cat.models import ScoringMethod
from adaptive_cat.settings import CATSettings

Z_95 = 1.96  # z-score for 95% confidence interval

# Theta window mapped linearly onto the scaled score range
SCALED_THETA_LOW = -3.0
SCALED_THETA_HIGH = 3.0


def confidence_interval(
    theta: float,
    se: float,
    theta_min: float,
    theta_max: float,
    z: float = Z_95,
) -> Tuple[float, float]:
    """
    Confidence interval for theta, clamped to [theta_min, theta_max].

    An infinite SE yields the full clamp range.
    """
    if math.isinf(se):
        return (theta_min, theta_max)
    margin = z * se
    return (max(theta_min, theta - margin), min(theta_max, theta + margin))


def theta_to_percentile(theta: float) -> float:
    """Percentile rank (0-100) of theta under a standard normal population."""
    return float(norm.cdf(theta) * 100)


def theta_to_scaled(theta: float, score_min: float, score_max: float) -> int:
    """Map theta linearly onto [score_min, score_max]."""
    fraction = (theta - SCALED_THETA_LOW) / (SCALED_THETA_HIGH - SCALED_THETA_LOW)
    scaled = score_min + fraction * (score_max - score_min)
    return int(round(max(score_min, min(score_max, scaled))))


def theta_to_percent(theta: float) -> int:
    """Expected percent correct on a reference item (a = 1, b = 0)."""
    return int(round(100.0 / (1.0 + math.exp(-theta))))


def final_score(theta: float, settings: CATSettings) -> float:
    """
    Final score in the session's configured scoring method.

    Args:
        theta: Final ability estimate.
        settings: Session settings (scoring_method and scaled range).

    Returns:
        Theta rounded to 2 decimals, a scaled score, or a percent.
    """
    if settings.scoring_method == ScoringMethod.SCALED:
        return theta_to_scaled(
            theta, settings.scaled_score_min, settings.scaled_score_max
        )
    if settings.scoring_method == ScoringMethod.PERCENT:
        return theta_to_percent(theta)
    return round(theta, 2)


def performance_level(theta: float) -> str:
    """Descriptive performance band for theta."""
    if theta > 2.0:
        return "High"
    if theta > 1.0:
        return "Above Average"
    if theta >= -1.0:
        return "Average"
    if theta >= -2.0:
        return "Below Average"
    return "Low"
