"""
Pytest configuration and shared fixtures.
"""
from typing import List

import pytest

from adaptive_cat.models import Item
from adaptive_cat.settings import CATSettings
from tests.helpers import build_item_bank, make_item


@pytest.fixture
def three_item_pool() -> List[Item]:
    """Pool of 3 items with difficulties [-1, 0, 1], a = 1, c = 0."""
    return [
        make_item(1, difficulty=-1.0),
        make_item(2, difficulty=0.0),
        make_item(3, difficulty=1.0),
    ]


@pytest.fixture
def item_bank() -> List[Item]:
    return build_item_bank()


@pytest.fixture
def settings() -> CATSettings:
    return CATSettings(model="twoPL", min_items=5, max_items=20)
