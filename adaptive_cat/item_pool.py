"""
Item pool loading.

The host fetches items from its own storage and hands the engine plain
records; this module validates them once per session.
"""

import logging
from typing import Any, Iterable, Mapping, Set, Tuple, Union

from pydantic import ValidationError

from adaptive_cat.exceptions import ItemPoolError
from adaptive_cat.models import Item, ItemId
from adaptive_cat.schemas import ItemSchema

logger = logging.getLogger(__name__)


def load_item_pool(records: Iterable[Union[Item, Mapping[str, Any]]]) -> Tuple[Item, ...]:
    """
    Validate pool records into immutable ``Item`` values.

    Args:
        records: ``Item`` instances or mappings with ``id``, optional
            ``irt_parameters`` / ``irtParameters`` and optional
            ``content_category`` / ``contentCategory``.

    Returns:
        Tuple of items in input order.

    Raises:
        ItemPoolError: If a record is invalid or an id repeats.
    """
    items = []
    seen: Set[ItemId] = set()

    for index, record in enumerate(records):
        if isinstance(record, Item):
            item = record
        else:
            try:
                item = ItemSchema.model_validate(dict(record)).to_item()
            except ValidationError as e:
                raise ItemPoolError(
                    "Invalid item record",
                    original_error=e,
                    context={"index": index, "id": record.get("id")},
                ) from e

        if item.id in seen:
            raise ItemPoolError(
                "Duplicate item id in pool", context={"index": index, "id": item.id}
            )
        seen.add(item.id)
        items.append(item)

    logger.debug(f"Loaded item pool with {len(items)} items")
    return tuple(items)
