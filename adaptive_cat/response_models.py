"""
IRT response models and item information functions.

Supported models:

    Rasch (1PL):  P(theta) = 1 / (1 + exp(-(theta - b)))
    2PL:          P(theta) = 1 / (1 + exp(-a * (theta - b)))
    3PL:          P(theta) = c + (1 - c) / (1 + exp(-a * (theta - b)))
    Graded:       single-boundary dichotomization of a polytomous item, scored
                  with the 2PL formula using b as the cut point.

Fisher information:

    1PL / 2PL / graded:  I(theta) = a^2 * P * (1 - P)
    3PL:                 I(theta) = a^2 * ((1 - P) / P) * ((P - c) / (1 - c))^2

Every probability is clamped into (eps, 1 - eps) before it is used in an
information or likelihood computation.

References:
    - Lord, F.M. (1980). Applications of Item Response Theory to Practical
      Testing Problems.
    - Baker, F.B., & Kim, S.-H. (2004). Item Response Theory: Parameter
      Estimation Techniques (2nd ed.).
"""

import math
from typing import Optional, Tuple

from adaptive_cat.config import engine_config
from adaptive_cat.models import IRTModel, IRTParameters


def effective_parameters(
    params: IRTParameters, model: IRTModel
) -> Tuple[float, float, float]:
    """
    Resolve the (a, b, c) triple a model actually uses.

    Rasch fixes a = 1; only the 3PL model keeps the guessing parameter.
    """
    if model == IRTModel.RASCH:
        return 1.0, params.difficulty, 0.0
    if model == IRTModel.THREE_PL:
        return params.discrimination, params.difficulty, params.guessing
    return params.discrimination, params.difficulty, 0.0


def _logistic(logit: float) -> float:
    # Numerically stable sigmoid
    if logit >= 0:
        return 1.0 / (1.0 + math.exp(-logit))
    exp_logit = math.exp(logit)
    return exp_logit / (1.0 + exp_logit)


def clamp_probability(prob: float, epsilon: Optional[float] = None) -> float:
    """Clamp a probability into (eps, 1 - eps)."""
    eps = engine_config.PROBABILITY_EPSILON if epsilon is None else epsilon
    return min(max(prob, eps), 1.0 - eps)


def probability(theta: float, params: IRTParameters, model: IRTModel) -> float:
    """
    Probability of a correct response at ability ``theta``.

    Args:
        theta: Ability level.
        params: Item parameters.
        model: Response model.

    Returns:
        Clamped probability in (eps, 1 - eps).
    """
    a, b, c = effective_parameters(params, model)
    prob = c + (1.0 - c) * _logistic(a * (theta - b))
    return clamp_probability(prob)


def information(theta: float, params: IRTParameters, model: IRTModel) -> float:
    """
    Fisher information of an item at ability ``theta``.

    Args:
        theta: Ability level.
        params: Item parameters.
        model: Response model.

    Returns:
        Non-negative information value.
    """
    a, _, c = effective_parameters(params, model)
    prob = probability(theta, params, model)

    if model == IRTModel.THREE_PL:
        # Goes to 0 as P approaches the guessing floor
        floor_ratio = max(prob - c, 0.0) / (1.0 - c)
        return (a**2) * ((1.0 - prob) / prob) * floor_ratio**2

    return (a**2) * prob * (1.0 - prob)


def score_contribution(
    theta: float, params: IRTParameters, model: IRTModel, is_correct: bool
) -> float:
    """
    First derivative of one response's log-likelihood with respect to theta.

        d/dtheta log L_i = a * (u - P) * (P - c) / (P * (1 - c))

    which reduces to a * (u - P) when c = 0.
    """
    a, _, c = effective_parameters(params, model)
    prob = probability(theta, params, model)
    u = 1.0 if is_correct else 0.0
    return a * (u - prob) * max(prob - c, 0.0) / (prob * (1.0 - c))


def log_likelihood(
    theta: float, params: IRTParameters, model: IRTModel, is_correct: bool
) -> float:
    """Log-likelihood of one observed response at ``theta``."""
    prob = probability(theta, params, model)
    return math.log(prob) if is_correct else math.log(1.0 - prob)
