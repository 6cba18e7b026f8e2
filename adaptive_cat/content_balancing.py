"""
Content balancing for Computerized Adaptive Testing.

Quota bookkeeping is host policy. The engine only asks a ``ContentPolicy``
which candidates are eligible given the current category coverage, and never
selects anything the policy filtered out.

``CategoryQuotaPolicy`` is a ready-made policy for hosts that describe their
blueprint as per-category quotas:

    Ceiling: a category that already reached its ``max_items`` is ineligible.

    Hard floor: if any category has fewer than ``min_items`` and there are
    enough remaining test slots to fill those deficits, only deficit
    categories are eligible.

    Soft target: once every floor is met, categories more than
    ``tolerance`` below their target proportion are preferred.

References:
    - van der Linden, W.J. (2005). Linear Models for Optimal Test Design.
    - Kingsbury, G.G., & Zara, A.R. (1991). A comparison of procedures for
      content-sensitive item selection in computerized adaptive tests.
"""

import logging
from dataclasses import dataclass
from typing import (
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

from adaptive_cat.models import Item, ItemId, ResponseRecord

logger = logging.getLogger(__name__)

# Soft constraint tolerance: categories below (target - tolerance) are prioritized.
CONTENT_BALANCE_TOLERANCE = 0.10


@runtime_checkable
class ContentPolicy(Protocol):
    """Caller-supplied content eligibility policy."""

    def filter_eligible(
        self,
        candidates: Sequence[Item],
        coverage: Mapping[str, int],
        items_administered: int,
        max_items: int,
    ) -> List[Item]:
        """Return the subset of ``candidates`` that may be administered next."""
        ...


@dataclass(frozen=True)
class CategoryQuota:
    """Blueprint entry for one content category.

    Attributes:
        category: Category tag, matched against ``Item.content_category``.
        min_items: Items required from this category before the quota is met.
        max_items: Ceiling on items from this category, or None for no ceiling.
        target_weight: Target proportion of the test (0.0-1.0), or None.
    """

    category: str
    min_items: int = 0
    max_items: Optional[int] = None
    target_weight: Optional[float] = None

    def __post_init__(self) -> None:
        if self.min_items < 0:
            raise ValueError(
                f"min_items must be non-negative for category '{self.category}'"
            )
        if self.max_items is not None and self.max_items < self.min_items:
            raise ValueError(
                f"max_items ({self.max_items}) below min_items ({self.min_items}) "
                f"for category '{self.category}'"
            )
        if self.target_weight is not None and not (0.0 <= self.target_weight <= 1.0):
            raise ValueError(
                f"target_weight must be in [0.0, 1.0] for category '{self.category}', "
                f"got {self.target_weight}"
            )


def track_category_coverage(records: Iterable[ResponseRecord]) -> Dict[str, int]:
    """
    Count administered items per content category.

    Records without a category are not counted.
    """
    coverage: Dict[str, int] = {}
    for record in records:
        if record.content_category is not None:
            coverage[record.content_category] = (
                coverage.get(record.content_category, 0) + 1
            )
    return coverage


def coverage_from_pool(
    pool: Sequence[Item], administered_item_ids: Iterable[ItemId]
) -> Dict[str, int]:
    """Count administered items per category by looking their ids up in the pool."""
    categories = {item.id: item.content_category for item in pool}
    coverage: Dict[str, int] = {}
    for item_id in administered_item_ids:
        category = categories.get(item_id)
        if category is not None:
            coverage[category] = coverage.get(category, 0) + 1
    return coverage


class CategoryQuotaPolicy:
    """Content policy driven by per-category quotas.

    Items whose category has no quota are always eligible.
    """

    def __init__(
        self,
        quotas: Iterable[CategoryQuota],
        tolerance: float = CONTENT_BALANCE_TOLERANCE,
    ):
        self.quotas: Dict[str, CategoryQuota] = {}
        for quota in quotas:
            if quota.category in self.quotas:
                raise ValueError(f"Duplicate quota for category '{quota.category}'")
            self.quotas[quota.category] = quota

        weights = [q.target_weight for q in self.quotas.values() if q.target_weight]
        if sum(weights) > 1.0 + 1e-6:
            raise ValueError(f"Target weights must not exceed 1.0, got {sum(weights):.3f}")
        self.tolerance = tolerance

    def filter_eligible(
        self,
        candidates: Sequence[Item],
        coverage: Mapping[str, int],
        items_administered: int,
        max_items: int,
    ) -> List[Item]:
        """
        Apply ceiling, hard floor and soft target constraints.

        Args:
            candidates: Unadministered items.
            coverage: Items administered so far per category.
            items_administered: Total items administered so far.
            max_items: Test length ceiling.

        Returns:
            Eligible items. Empty when every candidate's category is full.
        """
        eligible = [item for item in candidates if not self._at_ceiling(item, coverage)]
        if not eligible:
            logger.debug("Content balancing: every remaining category is at its ceiling")
            return []

        items_remaining = max_items - items_administered
        deficits = {
            category: quota.min_items - coverage.get(category, 0)
            for category, quota in self.quotas.items()
            if coverage.get(category, 0) < quota.min_items
        }

        if deficits:
            if sum(deficits.values()) <= items_remaining:
                constrained = [
                    item for item in eligible if item.content_category in deficits
                ]
                if constrained:
                    logger.debug(
                        f"Content balancing: restricting to deficit categories "
                        f"{sorted(deficits)} ({len(constrained)} items available)"
                    )
                    return constrained
            return eligible

        if items_administered > 0:
            underweight = {
                category
                for category, quota in self.quotas.items()
                if quota.target_weight is not None
                and coverage.get(category, 0) / items_administered
                < quota.target_weight - self.tolerance
            }
            if underweight:
                preferred = [
                    item for item in eligible if item.content_category in underweight
                ]
                if preferred:
                    logger.debug(
                        f"Content balancing: preferring underweight categories "
                        f"{sorted(underweight)} ({len(preferred)} items available)"
                    )
                    return preferred

        return eligible

    def is_balanced(self, coverage: Mapping[str, int]) -> bool:
        """Whether every category has reached its ``min_items`` floor."""
        return all(
            coverage.get(category, 0) >= quota.min_items
            for category, quota in self.quotas.items()
        )

    def _at_ceiling(self, item: Item, coverage: Mapping[str, int]) -> bool:
        quota = self.quotas.get(item.content_category) if item.content_category else None
        if quota is None or quota.max_items is None:
            return False
        return coverage.get(quota.category, 0) >= quota.max_items
