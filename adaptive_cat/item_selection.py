"""
Maximum Fisher Information (MFI) item selection for Computerized Adaptive Testing.

Selects the next item from the pool that maximizes Fisher information at the
current ability estimate.

The selection pipeline:
1. Filter out already-administered items
2. Apply the caller's content policy (when content balancing is enabled)
3. Compute Fisher information for each eligible item at current theta
4. Pick the most informative item, or apply randomesque exposure control
   over the top-K items
5. Return the selected item id, or None when nothing is eligible

References:
    - van der Linden, W.J. (1998). Bayesian item selection criteria for
      adaptive testing.
    - Kingsbury, G.G., & Zara, A.R. (1989). Procedures for selecting items for
      computerized adaptive tests.
"""

import logging
import random
from typing import Collection, List, Optional, Sequence, Tuple

from adaptive_cat.content_balancing import ContentPolicy, coverage_from_pool
from adaptive_cat.exceptions import ConfigurationError
from adaptive_cat.exposure_control import (
    ExposureMonitor,
    ItemCandidate,
    apply_randomesque,
)
from adaptive_cat.models import IRTModel, Item, ItemId
from adaptive_cat.response_models import information
from adaptive_cat.settings import CATSettings

logger = logging.getLogger(__name__)

# Information values closer than this are treated as tied
INFORMATION_TIE_TOLERANCE = 1e-12


def _id_order(item_id: ItemId) -> Tuple[str, ItemId]:
    """Sort key that orders a pool mixing int and str ids: ints first."""
    return (type(item_id).__name__, item_id)


def rank_candidates(
    candidates: Sequence[Item], theta: float, model: IRTModel
) -> List[ItemCandidate]:
    """
    Score candidates by Fisher information at ``theta``.

    Returns:
        Candidates sorted by information (descending), ties by item id.
    """
    scored = [
        ItemCandidate(item=item, information=information(theta, item.irt_parameters, model))
        for item in candidates
    ]
    scored.sort(key=lambda c: _id_order(c.item.id))
    scored.sort(key=lambda c: c.information, reverse=True)
    return scored


def _most_informative(ranked: List[ItemCandidate]) -> ItemCandidate:
    best_info = ranked[0].information
    tied = [
        c for c in ranked if best_info - c.information <= INFORMATION_TIE_TOLERANCE
    ]
    return min(tied, key=lambda c: _id_order(c.item.id))


def select_next_item(
    pool: Sequence[Item],
    administered_item_ids: Collection[ItemId],
    theta: float,
    settings: CATSettings,
    content_policy: Optional[ContentPolicy] = None,
    rng: Optional[random.Random] = None,
    monitor: Optional[ExposureMonitor] = None,
) -> Optional[ItemId]:
    """
    Select the next item using Maximum Fisher Information.

    Args:
        pool: Read-only item pool for the session.
        administered_item_ids: Ids already given in this session.
        theta: Current ability estimate.
        settings: Session settings (model, exposure control, content balancing).
        content_policy: Eligibility policy, required when
            ``settings.content_balancing`` is enabled.
        rng: Random source for exposure control. Seed it for reproducible runs.
        monitor: Optional ExposureMonitor recording every selection.

    Returns:
        Id of the item to administer, or None if no eligible items remain.

    Raises:
        ConfigurationError: If content balancing is enabled without a policy.
    """
    if settings.content_balancing and content_policy is None:
        raise ConfigurationError(
            "content_balancing is enabled but no content policy was supplied"
        )

    administered = set(administered_item_ids)
    eligible = [item for item in pool if item.id not in administered]

    if eligible and settings.content_balancing and content_policy is not None:
        eligible = content_policy.filter_eligible(
            eligible,
            coverage_from_pool(pool, administered_item_ids),
            len(administered),
            settings.max_items,
        )

    if not eligible:
        logger.warning(
            "No eligible items remaining after filtering. "
            f"Pool size: {len(pool)}, administered: {len(administered)}"
        )
        return None

    ranked = rank_candidates(eligible, theta, settings.model)

    if settings.exposure_control:
        selected = apply_randomesque(
            ranked, settings.exposure_window, monitor=monitor, rng=rng
        )
    else:
        selected = _most_informative(ranked)
        if monitor is not None:
            monitor.record_selection(selected.item.id)

    params = selected.item.irt_parameters
    logger.debug(
        f"Item selection: theta={theta:.3f}, "
        f"eligible={len(ranked)}, "
        f"selected {selected.item.id} "
        f"(a={params.discrimination:.2f}, "
        f"b={params.difficulty:.2f}, "
        f"info={selected.information:.4f})"
    )

    return selected.item.id
