"""
Common fixtures for the line planner tests.
"""
import itertools
from datetime import datetime

import pytest

from line_planner.calculated_fields import calculate_production
from line_planner.constants import ProductCatalog, ProductInfo
from line_planner.data_loader import ProductionInput
from line_planner.planner import ProductionPlanner
from line_planner.repository import LocalFileRepository


@pytest.fixture
def now() -> datetime:
    """Fixed wall-clock time: 10 May 2024, 07:30:42."""
    return datetime(2024, 5, 10, 7, 30, 42, 123000)


@pytest.fixture
def id_factory():
    """Deterministic identifiers: order-1, order-2, ..."""
    counter = itertools.count(1)
    return lambda: f"order-{next(counter)}"


@pytest.fixture
def filme_x_input() -> ProductionInput:
    """The reference order: Filme X starting at 08:00."""
    return ProductionInput(
        product="Filme X",
        start_time="08:00",
        speed=150,
        simultaneous_coils=2,
        avg_length=2000,
        total_coils=20,
        pallet_changes=4,
        planned_quantity=5000,
    )


@pytest.fixture
def make_item(now, id_factory):
    """Build a calculated item with a given start time and coil count."""
    def _make(start_time: str, total_coils: float = 10, product: str = "Produto"):
        return calculate_production(
            ProductionInput(
                product=product,
                start_time=start_time,
                speed=100,
                simultaneous_coils=2,
                avg_length=500,
                total_coils=total_coils,
            ),
            id_factory=id_factory,
            now=now,
        )
    return _make


@pytest.fixture
def catalog() -> ProductCatalog:
    return ProductCatalog.from_list([
        ProductInfo(code="FX-100", description="Filme X 100mm"),
        ProductInfo(code="FX-150", description="Filme X 150mm"),
        ProductInfo(code="FS-200", description="Filme Stretch 200mm"),
    ])


@pytest.fixture
def local_repository(tmp_path) -> LocalFileRepository:
    return LocalFileRepository(tmp_path / "data" / "production_items.json")


@pytest.fixture
def planner(local_repository, catalog, id_factory, now) -> ProductionPlanner:
    return ProductionPlanner(
        local_repository,
        catalog=catalog,
        id_factory=id_factory,
        clock=lambda: now,
    )
