"""
CAT simulation for validating adaptive testing settings.

Simulates N examinees with known ability taking adaptive tests against a
synthetic item bank, and collects precision and efficiency metrics: test
length, final SE, bias, RMSE, stop reasons and the mean SE after each item
position.

References:
    - Weiss, D. J. (2004). Computerized adaptive testing for effective and
      efficient measurement in counseling and education. Measurement and
      Evaluation in Counseling and Development, 37(2), 70-84.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from adaptive_cat.content_balancing import ContentPolicy
from adaptive_cat.engine import CATSessionManager
from adaptive_cat.models import IRTModel, IRTParameters, Item
from adaptive_cat.response_models import probability
from adaptive_cat.settings import CATSettings
from adaptive_cat.stopping_rules import evaluate_session

logger = logging.getLogger(__name__)

# Parameter distributions for synthetic banks, after Lord (1980)
DISCRIMINATION_LOGNORMAL_MEAN = 0.0
DISCRIMINATION_LOGNORMAL_SD = 0.3
DISCRIMINATION_MIN = 0.5
DISCRIMINATION_MAX = 2.5
DIFFICULTY_NORMAL_MEAN = 0.0
DIFFICULTY_NORMAL_SD = 1.0
DIFFICULTY_MIN = -3.0
DIFFICULTY_MAX = 3.0
GUESSING_MAX = 0.25


@dataclass
class SimulationConfig:
    """Simulated population and seed."""

    n_examinees: int = 500
    theta_mean: float = 0.0
    theta_sd: float = 1.0
    # Fixed true ability for every examinee; overrides theta_mean/theta_sd
    true_theta: Optional[float] = None
    seed: int = 42


@dataclass
class ExamineeResult:
    """Outcome of one simulated session."""

    true_theta: float
    estimated_theta: float
    final_se: float
    bias: float
    items_administered: int
    stop_reason: Optional[str]
    se_trajectory: List[float] = field(default_factory=list)


@dataclass
class SimulationResult:
    """Per-examinee outcomes plus summary statistics."""

    examinee_results: List[ExamineeResult]
    mean_items: float
    mean_se: float
    mean_bias: float
    rmse: float
    stop_reason_counts: Dict[str, int]
    # Mean SE after the n-th item over examinees who reached position n
    mean_se_by_position: List[float]


def generate_item_bank(
    n_items: int = 300,
    model: IRTModel = IRTModel.TWO_PL,
    categories: Optional[List[str]] = None,
    seed: int = 42,
) -> List[Item]:
    """
    Generate a synthetic item bank.

    Parameters follow the usual shape of operational banks:
        - Discrimination (a) ~ LogNormal(0.0, 0.3), clipped to [0.5, 2.5]
        - Difficulty (b) ~ Normal(0.0, 1.0), clipped to [-3.0, 3.0]
        - Guessing (c) ~ Uniform(0, 0.25) for the 3PL model, 0 otherwise

    Args:
        n_items: Number of items.
        model: Response model the bank is calibrated for.
        categories: Content categories assigned round-robin, or None.
        seed: Seed for the numpy generator.

    Returns:
        List of items with ids 1..n_items.
    """
    rng = np.random.default_rng(seed)
    items = []

    for item_id in range(1, n_items + 1):
        a = rng.lognormal(
            mean=DISCRIMINATION_LOGNORMAL_MEAN, sigma=DISCRIMINATION_LOGNORMAL_SD
        )
        b = rng.normal(loc=DIFFICULTY_NORMAL_MEAN, scale=DIFFICULTY_NORMAL_SD)
        c = rng.uniform(0.0, GUESSING_MAX) if model == IRTModel.THREE_PL else 0.0

        items.append(
            Item(
                id=item_id,
                irt_parameters=IRTParameters(
                    difficulty=float(np.clip(b, DIFFICULTY_MIN, DIFFICULTY_MAX)),
                    discrimination=float(
                        np.clip(a, DISCRIMINATION_MIN, DISCRIMINATION_MAX)
                    ),
                    guessing=float(c),
                ),
                content_category=(
                    categories[(item_id - 1) % len(categories)] if categories else None
                ),
            )
        )

    logger.info(f"Generated item bank: {len(items)} items ({model.value})")
    return items


def simulate_response(
    true_theta: float,
    item: Item,
    model: IRTModel,
    rng: random.Random,
) -> bool:
    """Draw a Bernoulli response from the model probability at ``true_theta``."""
    return rng.random() < probability(true_theta, item.irt_parameters, model)


def run_simulation(
    item_bank: List[Item],
    settings: CATSettings,
    config: SimulationConfig,
    content_policy: Optional[ContentPolicy] = None,
) -> SimulationResult:
    """
    Run adaptive sessions for simulated examinees.

    For each examinee:
    1. Draw true_theta (or use config.true_theta)
    2. Loop: next_item -> simulate_response -> record_response until the
       stopping rules fire
    3. Record ExamineeResult

    Args:
        item_bank: Items shared by every simulated session.
        settings: Session settings.
        config: Population, examinee count and seed.
        content_policy: Required when settings enable content balancing.

    Returns:
        SimulationResult covering every examinee.
    """
    rng = random.Random(config.seed)
    np_rng = np.random.default_rng(config.seed)
    manager = CATSessionManager(
        item_bank, settings, content_policy=content_policy, rng=rng
    )
    items = {item.id: item for item in manager.pool}

    if config.true_theta is not None:
        true_thetas = np.full(config.n_examinees, config.true_theta)
    else:
        true_thetas = np_rng.normal(config.theta_mean, config.theta_sd, config.n_examinees)

    results: List[ExamineeResult] = []
    for true_theta in true_thetas:
        true_theta = float(true_theta)
        state = manager.initialize()
        while not manager.should_terminate(state):
            state, item_id = manager.next_item(state)
            if item_id is None:
                continue
            is_correct = simulate_response(true_theta, items[item_id], settings.model, rng)
            state = manager.record_response(state, item_id, is_correct)

        results.append(
            ExamineeResult(
                true_theta=true_theta,
                estimated_theta=state.theta,
                final_se=state.standard_error,
                bias=state.theta - true_theta,
                items_administered=state.item_count,
                stop_reason=evaluate_session(state, settings).reason,
                se_trajectory=[r.standard_error_after for r in state.response_history],
            )
        )

    return _aggregate(results)


def _aggregate(results: List[ExamineeResult]) -> SimulationResult:
    finite_se = [r.final_se for r in results if math.isfinite(r.final_se)]
    biases = np.array([r.bias for r in results])

    stop_reason_counts: Dict[str, int] = {}
    for r in results:
        key = r.stop_reason or "none"
        stop_reason_counts[key] = stop_reason_counts.get(key, 0) + 1

    max_len = max((len(r.se_trajectory) for r in results), default=0)
    mean_se_by_position = []
    for position in range(max_len):
        values = [
            r.se_trajectory[position]
            for r in results
            if len(r.se_trajectory) > position
            and math.isfinite(r.se_trajectory[position])
        ]
        mean_se_by_position.append(float(np.mean(values)) if values else math.inf)

    result = SimulationResult(
        examinee_results=results,
        mean_items=float(np.mean([r.items_administered for r in results])),
        mean_se=float(np.mean(finite_se)) if finite_se else math.inf,
        mean_bias=float(np.mean(biases)),
        rmse=float(np.sqrt(np.mean(biases**2))),
        stop_reason_counts=stop_reason_counts,
        mean_se_by_position=mean_se_by_position,
    )

    logger.info(
        f"Simulation complete: n={len(results)}, mean_items={result.mean_items:.1f}, "
        f"mean_se={result.mean_se:.3f}, bias={result.mean_bias:.3f}, "
        f"rmse={result.rmse:.3f}"
    )
    return result
