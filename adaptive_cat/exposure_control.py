"""
Item exposure control for adaptive sessions.

Pure maximum-information selection hands every examinee at a similar ability
the same few items. With ``exposure_control`` enabled the engine draws the
next item uniformly from the ``exposure_window`` most informative candidates
(the randomesque procedure of Kingsbury & Zara, 1989).

``ExposureMonitor`` counts how often each item is chosen across sessions so a
host can spot items that are served too often. It is the one shared mutable
object in the engine and guards its counters with a lock.

References:
    - Kingsbury, G.G., & Zara, A.R. (1989). Procedures for selecting items for
      computerized adaptive tests.
    - Stocking, M.L., & Lewis, C. (1998). Controlling item exposure conditional
      on ability in computerized adaptive testing.
"""

import logging
import random
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from adaptive_cat.config import engine_config
from adaptive_cat.models import Item, ItemId

logger = logging.getLogger(__name__)

# Overexposed items listed individually in an alert
MAX_ALERT_ITEMS = 10


@dataclass(frozen=True)
class ItemCandidate:
    """An item with its Fisher information at the current theta."""

    item: Item
    information: float


def apply_randomesque(
    ranked_items: Sequence[ItemCandidate],
    k: int,
    monitor: Optional["ExposureMonitor"] = None,
    rng: Optional[random.Random] = None,
) -> ItemCandidate:
    """
    Draw one candidate uniformly from the ``k`` most informative.

    Args:
        ranked_items: Candidates, most informative first.
        k: Window size. A window wider than the list uses the whole list.
        monitor: Receives the chosen item id when given.
        rng: Random source; the ``random`` module is used when omitted.

    Returns:
        The chosen candidate.

    Raises:
        ValueError: If there are no candidates or k is not positive.
    """
    if not ranked_items:
        raise ValueError("Cannot apply randomesque selection to an empty candidate list")
    if k <= 0:
        raise ValueError(f"Exposure window k must be positive, got {k}")

    window = list(ranked_items[:k])
    chooser = rng or random
    chosen = window[chooser.randrange(len(window))]

    if monitor is not None:
        monitor.record_selection(chosen.item.id)

    logger.debug(
        f"Randomesque: item {chosen.item.id} drawn from a window of {len(window)} "
        f"(info={chosen.information:.4f})"
    )
    return chosen


class ExposureMonitor:
    """
    Per-item selection counts shared across sessions.

    The exposure rate of an item is its selection count divided by the total
    number of selections recorded.

        monitor = ExposureMonitor(alert_threshold=0.2)
        manager = CATSessionManager(pool, settings, monitor=monitor)
        ...
        monitor.check_and_alert()
    """

    def __init__(self, alert_threshold: Optional[float] = None):
        """
        Args:
            alert_threshold: Rate above which an item counts as overexposed.
                Defaults to ``engine_config.EXPOSURE_ALERT_THRESHOLD``.

        Raises:
            ValueError: If the threshold lies outside [0.0, 1.0].
        """
        threshold = (
            engine_config.EXPOSURE_ALERT_THRESHOLD
            if alert_threshold is None
            else alert_threshold
        )
        if threshold < 0.0 or threshold > 1.0:
            raise ValueError(f"alert_threshold must lie in [0.0, 1.0], got {threshold}")

        self.alert_threshold = threshold
        self._counts: Counter = Counter()
        self._lock = threading.Lock()

    def record_selection(self, item_id: ItemId) -> None:
        with self._lock:
            self._counts[item_id] += 1

    def _snapshot(self) -> Tuple[Dict[ItemId, int], int]:
        with self._lock:
            counts = dict(self._counts)
        return counts, sum(counts.values())

    def get_exposure_rate(self, item_id: ItemId) -> float:
        """Rate for one item; 0.0 for unseen items or an empty monitor."""
        counts, total = self._snapshot()
        return counts.get(item_id, 0) / total if total else 0.0

    def get_exposure_rates(self) -> Dict[ItemId, float]:
        """Rates for every item recorded at least once."""
        counts, total = self._snapshot()
        return {item_id: n / total for item_id, n in counts.items()} if total else {}

    def get_overexposed_items(self) -> List[Tuple[ItemId, float]]:
        """(item_id, rate) pairs strictly above the threshold, highest first."""
        return sorted(
            (
                (item_id, rate)
                for item_id, rate in self.get_exposure_rates().items()
                if rate > self.alert_threshold
            ),
            key=lambda pair: pair[1],
            reverse=True,
        )

    def check_and_alert(self) -> List[Tuple[ItemId, float]]:
        """
        Log a warning for overexposed items and return them.

        At most ``MAX_ALERT_ITEMS`` items are itemized in the log.
        """
        counts, total = self._snapshot()
        if not total:
            return []

        flagged = sorted(
            (
                (item_id, n / total)
                for item_id, n in counts.items()
                if n / total > self.alert_threshold
            ),
            key=lambda pair: pair[1],
            reverse=True,
        )
        if not flagged:
            return flagged

        logger.warning(
            f"Exposure alert: {len(flagged)} item(s) above the "
            f"{self.alert_threshold:.1%} exposure threshold after {total} selections"
        )
        for item_id, rate in flagged[:MAX_ALERT_ITEMS]:
            logger.warning(f"  item {item_id}: {rate:.1%} ({counts[item_id]} selections)")
        if len(flagged) > MAX_ALERT_ITEMS:
            logger.warning(f"  {len(flagged) - MAX_ALERT_ITEMS} further item(s) omitted")

        return flagged

    @property
    def total_selections(self) -> int:
        return self._snapshot()[1]

    def reset(self) -> None:
        """Forget all recorded selections."""
        with self._lock:
            self._counts.clear()
        logger.info("Exposure counters reset")
