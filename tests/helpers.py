"""
Shared builders for engine tests.
"""
import random
from typing import List

from adaptive_cat.models import IRTParameters, Item


def make_item(
    item_id,
    difficulty: float = 0.0,
    discrimination: float = 1.0,
    guessing: float = 0.0,
    category=None,
) -> Item:
    """Build an item with the given parameters."""
    return Item(
        id=item_id,
        irt_parameters=IRTParameters(
            difficulty=difficulty, discrimination=discrimination, guessing=guessing
        ),
        content_category=category,
    )


def build_item_bank(n_items: int = 40, seed: int = 42) -> List[Item]:
    """Item bank with difficulties spread evenly over [-2.5, 2.5]."""
    rng = random.Random(seed)
    return [
        make_item(
            i + 1,
            difficulty=-2.5 + (i / (n_items - 1)) * 5.0,
            discrimination=0.5 + rng.random() * 2.0,
        )
        for i in range(n_items)
    ]
