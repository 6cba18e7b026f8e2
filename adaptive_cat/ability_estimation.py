"""
Ability (theta) estimation for Computerized Adaptive Testing.

Two estimators are provided:

Maximum likelihood (MLE), the default. Newton-Raphson in its Fisher-scoring
form on the log-likelihood of the full response history:

    theta_new = theta_old + score(theta_old) / I(theta_old)

where score is the first derivative of the log-likelihood and I is the test
information (the negated expected second derivative). Each iterate is clamped
to [theta_min, theta_max]. Response patterns that are all correct or all
incorrect have no finite maximum and are mapped straight to the bound.
Under 3PL the likelihood can be multimodal, so the Newton result is checked
against a coarse grid search refined with scipy's bounded Brent method.

Expected A Posteriori (EAP). Posterior mean over a quadrature grid spanning
[theta_min, theta_max] with a Gaussian prior. Robust to extreme patterns
(Bock & Mislevy, 1982).

Standard error in both cases is the asymptotic MLE one:

    SE(theta) = 1 / sqrt(sum_i I_i(theta))

and is infinite while the administered items carry no information.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

from scipy.optimize import minimize_scalar

from adaptive_cat.config import engine_config
from adaptive_cat.models import IRTModel, IRTParameters
from adaptive_cat.response_models import information, log_likelihood, score_contribution

logger = logging.getLogger(__name__)

# Largest theta change allowed in one Newton step. Keeps the iteration from
# bouncing between the clamp bounds when the starting point is far away.
MAX_STEP = 1.0

ScoredResponse = Tuple[IRTParameters, bool]


def total_information(
    theta: float, items: Sequence[IRTParameters], model: IRTModel
) -> float:
    """Sum of item information at ``theta``."""
    return sum(information(theta, params, model) for params in items)


def standard_error(
    theta: float, items: Sequence[IRTParameters], model: IRTModel
) -> float:
    """
    Asymptotic standard error of theta.

    Returns:
        ``1 / sqrt(total information)``, or ``math.inf`` if the total is 0.
    """
    total = total_information(theta, items, model)
    if total <= 0.0:
        return math.inf
    return 1.0 / math.sqrt(total)


def estimate_ability_mle(
    responses: Sequence[ScoredResponse],
    model: IRTModel,
    theta_min: float,
    theta_max: float,
    theta_start: float = 0.0,
    max_iterations: Optional[int] = None,
    tolerance: Optional[float] = None,
) -> float:
    """
    Maximum likelihood ability estimate via Newton-Raphson.

    Newton starts from ``theta_start``. Its result is kept only when it
    converged and is at least as likely as the best point of a coarse
    log-likelihood grid over the bounds (refined with a bounded Brent search).
    Otherwise the refined grid maximum is returned. 3PL likelihoods can have
    several local maxima, and non-convergence is never an error.

    Args:
        responses: (item parameters, is_correct) pairs in administration order.
        model: Response model.
        theta_min: Lower clamp bound.
        theta_max: Upper clamp bound.
        theta_start: Starting point, usually the previous estimate.
        max_iterations: Iteration cap. Defaults to ``engine_config.MLE_MAX_ITERATIONS``.
        tolerance: Convergence threshold on ``|theta_new - theta_old|``.
            Defaults to ``engine_config.MLE_TOLERANCE``.

    Returns:
        Theta estimate within [theta_min, theta_max].
    """
    theta = min(max(theta_start, theta_min), theta_max)
    if not responses:
        return theta

    if all(correct for _, correct in responses):
        return theta_max
    if not any(correct for _, correct in responses):
        return theta_min

    max_iterations = max_iterations or engine_config.MLE_MAX_ITERATIONS
    tolerance = tolerance or engine_config.MLE_TOLERANCE

    newton_theta, converged = _newton_raphson(
        responses, model, theta_min, theta_max, theta, max_iterations, tolerance
    )
    grid_theta = _refine_grid_maximum(responses, model, theta_min, theta_max, tolerance)

    if converged and _total_log_likelihood(
        newton_theta, responses, model
    ) >= _total_log_likelihood(grid_theta, responses, model):
        return newton_theta

    logger.debug(
        f"MLE: Newton from theta={theta:.4f} "
        f"{'converged below the grid maximum' if converged else 'did not converge'} "
        f"(theta={newton_theta:.4f}); using grid estimate theta={grid_theta:.4f}"
    )
    return grid_theta


def _total_log_likelihood(
    theta: float, responses: Sequence[ScoredResponse], model: IRTModel
) -> float:
    return sum(
        log_likelihood(theta, params, model, correct) for params, correct in responses
    )


def _newton_raphson(
    responses: Sequence[ScoredResponse],
    model: IRTModel,
    theta_min: float,
    theta_max: float,
    theta: float,
    max_iterations: int,
    tolerance: float,
) -> Tuple[float, bool]:
    """Fisher scoring from ``theta``. Returns (last iterate, converged)."""
    items = [params for params, _ in responses]
    for iteration in range(1, max_iterations + 1):
        score = sum(
            score_contribution(theta, params, model, correct)
            for params, correct in responses
        )
        info = total_information(theta, items, model)
        if info <= 0.0:
            logger.debug(f"MLE stopped at iteration {iteration}: zero information")
            return theta, False

        step = max(-MAX_STEP, min(MAX_STEP, score / info))
        theta_new = min(max(theta + step, theta_min), theta_max)

        if abs(theta_new - theta) < tolerance:
            return theta_new, True
        theta = theta_new

    logger.debug(f"MLE did not converge within {max_iterations} iterations")
    return theta, False


def _refine_grid_maximum(
    responses: Sequence[ScoredResponse],
    model: IRTModel,
    theta_min: float,
    theta_max: float,
    tolerance: float,
) -> float:
    """
    Global log-likelihood maximum: coarse grid, then a bounded Brent search
    between the neighbours of the best grid point.
    """
    n_points = engine_config.MLE_GRID_POINTS
    step = (theta_max - theta_min) / (n_points - 1)
    grid = [theta_min + step * i for i in range(n_points)]
    log_liks = [_total_log_likelihood(t, responses, model) for t in grid]
    best = max(range(n_points), key=log_liks.__getitem__)

    lower = max(theta_min, grid[best] - step)
    upper = min(theta_max, grid[best] + step)
    result = minimize_scalar(
        lambda t: -_total_log_likelihood(t, responses, model),
        bounds=(lower, upper),
        method="bounded",
        options={"xatol": tolerance},
    )
    refined = float(result.x)
    if -float(result.fun) >= log_liks[best]:
        return refined
    return grid[best]


def estimate_ability_eap(
    responses: Sequence[ScoredResponse],
    model: IRTModel,
    theta_min: float,
    theta_max: float,
    prior_mean: float = 0.0,
    prior_sd: float = 1.0,
    quadrature_points: Optional[int] = None,
) -> Tuple[float, float]:
    """
    Estimate ability using Expected A Posteriori (EAP) with numerical quadrature.

    The EAP estimate is the posterior mean:
        theta_hat = E[theta | responses] = sum(theta_i * p(theta_i | responses))

    Args:
        responses: (item parameters, is_correct) pairs.
        model: Response model.
        theta_min: Lower end of the quadrature grid.
        theta_max: Upper end of the quadrature grid.
        prior_mean: Mean of the Gaussian prior on theta.
        prior_sd: Standard deviation of the Gaussian prior on theta.
        quadrature_points: Grid size. Defaults to
            ``engine_config.EAP_QUADRATURE_POINTS``.

    Returns:
        Tuple of (theta_estimate, posterior_sd).

    Raises:
        ValueError: If prior_sd is not positive.
    """
    if prior_sd <= 0:
        raise ValueError(f"prior_sd must be positive, got {prior_sd}")

    if not responses:
        return (min(max(prior_mean, theta_min), theta_max), prior_sd)

    n_points = quadrature_points or engine_config.EAP_QUADRATURE_POINTS
    step = (theta_max - theta_min) / (n_points - 1)
    theta_points = [theta_min + step * i for i in range(n_points)]

    # log N(theta | mu, sigma^2) up to a constant, which cancels on normalizing
    variance = prior_sd**2
    log_posteriors: List[float] = []
    for theta in theta_points:
        log_prior = -((theta - prior_mean) ** 2) / (2.0 * variance)
        log_lik = sum(
            log_likelihood(theta, params, model, correct)
            for params, correct in responses
        )
        log_posteriors.append(log_prior + log_lik)

    # Normalize using log-sum-exp for numerical stability
    max_log_post = max(log_posteriors)
    posteriors = [math.exp(lp - max_log_post) for lp in log_posteriors]
    posterior_sum = sum(posteriors)
    posterior_probs = [p / posterior_sum for p in posteriors]

    theta_hat = sum(theta * prob for theta, prob in zip(theta_points, posterior_probs))
    posterior_variance = sum(
        (theta - theta_hat) ** 2 * prob
        for theta, prob in zip(theta_points, posterior_probs)
    )
    theta_hat = min(max(theta_hat, theta_min), theta_max)

    return (theta_hat, math.sqrt(posterior_variance))
