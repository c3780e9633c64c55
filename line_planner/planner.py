# Production planner service.
# Version: 1.0.0
# Applies the calculator and sequencing policy around a storage repository.

import logging
import threading
from datetime import datetime
from typing import Callable

from .calculated_fields import (
    IdFactory,
    ProductionItem,
    calculate_all,
    calculate_production,
    new_item_id,
)
from .constants import ProductCatalog
from .data_loader import ProductionInput
from .errors import OrderNotFoundError
from .output_generator import ProductionSummary, summarize_production
from .repository import ProductionRepository, Snapshot, Unsubscribe
from .sequencer import find_item, remove_item, sort_by_start, suggested_start_time, upsert_item
from .validator import OrderForm, validate_order_form


logger = logging.getLogger(__name__)


class ProductionPlanner:
    """Keeps the order collection and routes writes to storage.

    The in-memory collection mirrors the repository. Saves keep it sorted
    by start time; snapshots from the repository replace it wholesale.

    Attributes:
        repository: Storage backend.
        catalog: Product catalog for form validation.
        id_factory: Identifier generator, called only when creating.
        clock: Returns the current wall-clock time.
    """

    def __init__(
        self,
        repository: ProductionRepository,
        catalog: ProductCatalog | None = None,
        id_factory: IdFactory = new_item_id,
        clock: Callable[[], datetime] = datetime.now
    ) -> None:
        self.repository = repository
        self.catalog = catalog if catalog is not None else ProductCatalog()
        self.id_factory = id_factory
        self.clock = clock
        self._items: list[ProductionItem] = []
        self._lock = threading.RLock()
        self._unsubscribe: Unsubscribe | None = None

    @property
    def items(self) -> list[ProductionItem]:
        """Current collection in stored order."""
        with self._lock:
            return list(self._items)

    def refresh(self) -> list[ProductionItem]:
        """Replace the collection with the repository's current contents."""
        self._apply_snapshot(self.repository.load_all())
        return self.items

    def start_sync(self) -> None:
        """Follow repository snapshots until stop_sync is called."""
        if self._unsubscribe is None:
            self._unsubscribe = self.repository.subscribe(self._apply_snapshot)

    def stop_sync(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _apply_snapshot(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._items = list(snapshot.values())
        logger.debug("Applied snapshot with %d orders", len(snapshot))

    def list_orders(self) -> list[ProductionItem]:
        """Orders in display order (ascending start time)."""
        return sort_by_start(self.items)

    def get_order(self, item_id: str) -> ProductionItem | None:
        return find_item(self.items, item_id)

    def suggested_start_time(self, editing_id: str | None = None) -> str:
        """Suggested "HH:mm" for the next new order ("" when editing)."""
        return suggested_start_time(self.items, editing=editing_id is not None)

    def save_order(
        self,
        production_input: ProductionInput,
        editing_id: str | None = None
    ) -> ProductionItem:
        """Calculate an order and store it.

        Args:
            production_input: Order parameters.
            editing_id: Id of the order being edited, or None to create.

        Returns:
            The stored ProductionItem.

        Raises:
            OrderNotFoundError: If editing_id is not in the collection.
            StorageError: If the repository rejects the write.
        """
        with self._lock:
            if editing_id is not None and find_item(self._items, editing_id) is None:
                raise OrderNotFoundError(editing_id)

            if editing_id is None:
                item = calculate_production(production_input, self.id_factory, self.clock())
            else:
                # Derived fields are recomputed; only the id is carried over
                item = calculate_production(
                    production_input, lambda: editing_id, self.clock()
                )

            self._items = upsert_item(self._items, item)

        self.repository.upsert(item)
        logger.info(
            "%s order %s (%s) %s-%s",
            "Updated" if editing_id else "Created",
            item.id, item.product,
            item.start_time.strftime("%H:%M"), item.end_time.strftime("%H:%M")
        )
        return item

    def save_order_form(self, form: OrderForm, editing_id: str | None = None) -> ProductionItem:
        """Validate an order form, then save it.

        Raises:
            ValidationError: If the product code is missing.
        """
        production_input = validate_order_form(form, self.catalog)
        return self.save_order(production_input, editing_id)

    def preview_order_form(self, form: OrderForm, editing_id: str | None = None) -> ProductionItem:
        """Validate and calculate an order form without storing it.

        Returns:
            The calculated item, carrying editing_id (or "" for a new order).

        Raises:
            ValidationError: If the product code is missing.
        """
        production_input = validate_order_form(form, self.catalog)
        return calculate_production(production_input, lambda: editing_id or "", self.clock())

    def import_orders(self, inputs: list[ProductionInput]) -> list[ProductionItem]:
        """Create one order per input, in input order.

        The whole batch is calculated against a single clock reading.

        Raises:
            StorageError: If the repository rejects a write. Orders stored
                before the failure are kept.
        """
        items = calculate_all(inputs, self.id_factory, self.clock())
        for item in items:
            with self._lock:
                self._items = upsert_item(self._items, item)
            self.repository.upsert(item)

        logger.info("Imported %d orders", len(items))
        return items

    def remove_order(self, item_id: str) -> None:
        """Remove an order. Unknown ids are ignored.

        Raises:
            StorageError: If the repository rejects the delete.
        """
        with self._lock:
            existed = find_item(self._items, item_id) is not None
            self._items = remove_item(self._items, item_id)

        self.repository.remove(item_id)
        if existed:
            logger.info("Removed order %s", item_id)

    def summary(self) -> ProductionSummary:
        return summarize_production(self.items)
