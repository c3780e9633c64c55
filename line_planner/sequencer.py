# Sequence production items into a timeline.
# Version: 1.0.0
# Upsert/remove by id, stable start-time ordering, and the suggested next start.

from .calculated_fields import ProductionItem


def sort_by_start(items: list[ProductionItem]) -> list[ProductionItem]:
    """Return items ordered by start time.

    The sort is stable: items with equal start times keep their
    relative order.
    """
    return sorted(items, key=lambda item: item.start_time)


def upsert_item(
    items: list[ProductionItem],
    item: ProductionItem
) -> list[ProductionItem]:
    """Insert a new item or replace the one with the same id.

    A replacement takes the old item's position before sorting, so ties
    on start time resolve the same way they did before the edit.

    Args:
        items: Current collection.
        item: Newly calculated item.

    Returns:
        New collection sorted by start time. The input list is not modified.
    """
    updated = list(items)
    for idx, existing in enumerate(updated):
        if existing.id == item.id:
            updated[idx] = item
            break
    else:
        updated.append(item)

    return sort_by_start(updated)


def remove_item(items: list[ProductionItem], item_id: str) -> list[ProductionItem]:
    """Remove the item with the given id.

    Removing an id that is not present returns the collection unchanged.

    Args:
        items: Current collection.
        item_id: Identifier to remove.

    Returns:
        New collection without the item, in the original order.
    """
    return [item for item in items if item.id != item_id]


def find_item(items: list[ProductionItem], item_id: str) -> ProductionItem | None:
    """Find an item by id.

    Returns:
        ProductionItem if found, None otherwise.
    """
    for item in items:
        if item.id == item_id:
            return item
    return None


def suggested_start_time(items: list[ProductionItem], editing: bool = False) -> str:
    """Suggest the start time of day for the next new order.

    Uses the end time of the last item in stored order, which is not
    necessarily the latest end time.

    Args:
        items: Current collection, in stored order.
        editing: True when the form is editing an existing item.

    Returns:
        "HH:mm" string, or "" when editing or the collection is empty.
    """
    if editing or not items:
        return ""

    last_item = items[-1]
    return f"{last_item.end_time.hour:02d}:{last_item.end_time.minute:02d}"
