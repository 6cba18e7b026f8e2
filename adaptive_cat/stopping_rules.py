"""
When to end an adaptive session.

Rules, first match wins:
    1. ``max_items`` reached: always stop.
    2. Pool exhausted: the last selection had nothing eligible to offer.
    3. Fewer than ``min_items`` administered: keep going, however precise the
       estimate already looks.
    4. SE(theta) <= ``standard_error_target``: the estimate is precise enough.

A short streak of matching responses can shrink the standard error early, so
the precision rule is only consulted once the floor is met.

References:
    - Weiss, D. J., & Kingsbury, G. G. (1984). Application of computerized
      adaptive testing to educational problems. Journal of Educational
      Measurement, 21(4), 361-375.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from adaptive_cat.models import SessionState
from adaptive_cat.settings import (
    MAX_ITEMS,
    MIN_ITEMS,
    SE_THRESHOLD,
    CATSettings,
    load_settings,
)

logger = logging.getLogger(__name__)

REASON_MAX_ITEMS = "max_items"
REASON_POOL_EXHAUSTED = "pool_exhausted"
REASON_SE_THRESHOLD = "se_threshold"


@dataclass(frozen=True)
class StoppingDecision:
    """
    Outcome of the stopping rules for one session state.

    Attributes:
        should_stop: True once no further item should be administered.
        reason: ``max_items``, ``pool_exhausted`` or ``se_threshold`` when
            stopping, else None.
        details: The inputs the rules saw plus which limits were reached.
    """

    should_stop: bool
    reason: Optional[str]
    details: Dict[str, Any]


def check_stopping_criteria(
    se: float,
    num_items: int,
    pool_exhausted: bool = False,
    se_threshold: float = SE_THRESHOLD,
    min_items: int = MIN_ITEMS,
    max_items: int = MAX_ITEMS,
) -> StoppingDecision:
    """
    Apply the stopping rules.

    Args:
        se: Standard error of the current estimate, ``math.inf`` before any
            information has accrued.
        num_items: Items administered so far.
        pool_exhausted: Whether the latest selection came back empty.
        se_threshold: Precision target.
        min_items: Floor below which precision alone never stops the test.
        max_items: Hard ceiling on test length.

    Returns:
        StoppingDecision for these inputs.

    Raises:
        ValueError: If se or num_items is negative.
    """
    if se < 0:
        raise ValueError(f"se must be non-negative, got {se}")
    if num_items < 0:
        raise ValueError(f"num_items must be non-negative, got {num_items}")

    at_ceiling = num_items >= max_items
    floor_met = num_items >= min_items
    details: Dict[str, Any] = {
        "se": se,
        "num_items": num_items,
        "se_threshold": se_threshold,
        "min_items_met": floor_met,
        "at_max_items": at_ceiling,
        "pool_exhausted": pool_exhausted,
    }

    if at_ceiling:
        logger.info(f"Stop: item ceiling hit ({num_items} of {max_items})")
        return StoppingDecision(True, REASON_MAX_ITEMS, details)

    if pool_exhausted:
        logger.info(f"Stop: no eligible items left after {num_items} administered")
        return StoppingDecision(True, REASON_POOL_EXHAUSTED, details)

    if not floor_met:
        logger.debug(f"Continue: {num_items} items, floor is {min_items}")
        return StoppingDecision(False, None, details)

    if se <= se_threshold:
        logger.info(
            f"Stop: SE {se:.4f} within target {se_threshold:.4f} at {num_items} items"
        )
        return StoppingDecision(True, REASON_SE_THRESHOLD, details)

    logger.debug(f"Continue: SE {se:.4f} above target {se_threshold:.4f}")
    return StoppingDecision(False, None, details)


def evaluate_session(
    state: SessionState, settings: Union[CATSettings, Mapping[str, Any]]
) -> StoppingDecision:
    """Apply the stopping rules to a session state."""
    settings = load_settings(settings)
    return check_stopping_criteria(
        se=state.standard_error,
        num_items=state.item_count,
        pool_exhausted=state.pool_exhausted,
        se_threshold=settings.standard_error_target,
        min_items=settings.min_items,
        max_items=settings.max_items,
    )


def should_terminate(
    state: SessionState, settings: Union[CATSettings, Mapping[str, Any]]
) -> bool:
    return evaluate_session(state, settings).should_stop
