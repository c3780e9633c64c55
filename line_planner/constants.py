# Load and structure planner settings from YAML config file.
# Version: 1.0.0
# Provides the fixed line timings, storage settings, and the product catalog.

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml

from .errors import ConfigurationError, FileLoadError


# Type aliases for clarity
StorageBackend = Literal["local", "remote"]

# All valid storage backends
STORAGE_BACKENDS: tuple[StorageBackend, ...] = ("local", "remote")

# Fixed line timings (minutes)
SETUP_MINUTES_PER_CYCLE = 10    # One winding setup/changeover
PALLET_CHANGE_MINUTES = 3       # One pallet change

# Form defaults
DEFAULT_PRODUCT_DESCRIPTION = "Produto Sem Descrição"

# Default storage locations
DEFAULT_LOCAL_PATH = "data/production_items.json"
DEFAULT_COLLECTION = "productionItems"


@dataclass(frozen=True)
class ProductInfo:
    """A product in the catalog used by the order form autocomplete.

    Attributes:
        code: Product code typed by the operator (e.g., "FX-100").
        description: Product description stored on the order.
    """
    code: str
    description: str


@dataclass
class ProductCatalog:
    """Lookup table of product codes to descriptions.

    Attributes:
        products: Dict mapping normalized code to ProductInfo.
    """
    products: dict[str, ProductInfo] = field(default_factory=dict)

    @classmethod
    def from_list(cls, products: list[ProductInfo]) -> "ProductCatalog":
        """Build a catalog from a list, keyed by normalized code."""
        return cls(products={_normalize_code(p.code): p for p in products})

    def __len__(self) -> int:
        """Return number of products."""
        return len(self.products)

    def __iter__(self):
        """Iterate over products."""
        return iter(self.products.values())

    def add(self, product: ProductInfo) -> None:
        """Add a product, replacing any entry with the same code."""
        self.products[_normalize_code(product.code)] = product

    def get_description(self, code: str) -> str | None:
        """Get the description for an exact product code.

        Args:
            code: Product code, case and surrounding whitespace ignored.

        Returns:
            Description if the code is known, None otherwise.
        """
        product = self.products.get(_normalize_code(code))
        return product.description if product else None

    def search(self, query: str, limit: int = 10) -> list[ProductInfo]:
        """Find products whose code or description contains the query.

        Args:
            query: Text typed by the operator.
            limit: Maximum number of matches to return.

        Returns:
            Matching products in catalog order. Empty for a blank query.
        """
        needle = (query or "").strip().lower()
        if not needle:
            return []

        matches = [
            p for p in self.products.values()
            if needle in p.code.lower() or needle in p.description.lower()
        ]
        return matches[:limit]


@dataclass
class StorageSettings:
    """Where production items are persisted.

    Attributes:
        backend: "local" (JSON file) or "remote" (HTTP document collection).
        local_path: JSON file used by the local backend.
        remote_url: Base URL of the remote document store.
        collection: Remote collection name.
        timeout_seconds: HTTP timeout for remote calls.
        poll_interval_seconds: Snapshot polling interval for subscriptions.
    """
    backend: StorageBackend = "local"
    local_path: str = DEFAULT_LOCAL_PATH
    remote_url: str = ""
    collection: str = DEFAULT_COLLECTION
    timeout_seconds: float = 10.0
    poll_interval_seconds: float = 5.0


@dataclass
class PlannerSettings:
    """Container for all settings loaded from YAML.

    Attributes:
        storage: Storage backend settings.
        catalog: Product catalog for the order form.
    """
    storage: StorageSettings = field(default_factory=StorageSettings)
    catalog: ProductCatalog = field(default_factory=ProductCatalog)


def _normalize_code(code: str) -> str:
    return str(code or "").strip().upper()


def load_settings_from_yaml(yaml_path: str | Path) -> PlannerSettings:
    """Load planner settings from YAML file.

    Args:
        yaml_path: Path to the YAML config file.

    Returns:
        PlannerSettings object with all loaded data.

    Raises:
        FileLoadError: If file cannot be read.
        ConfigurationError: If file format is invalid.
    """
    yaml_path = Path(yaml_path)

    if not yaml_path.exists():
        raise FileLoadError(str(yaml_path), FileNotFoundError("Config file not found"))

    try:
        with open(yaml_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise FileLoadError(str(yaml_path), e)

    if not isinstance(data, dict):
        raise ConfigurationError(yaml_path.name, "Top level must be a mapping")

    storage = _parse_storage(data.get('storage') or {})
    catalog = _parse_products(data.get('products') or [])

    return PlannerSettings(storage=storage, catalog=catalog)


def _parse_storage(section: dict) -> StorageSettings:
    if not isinstance(section, dict):
        raise ConfigurationError("storage", "Section must be a mapping")

    backend = str(section.get('backend', 'local')).strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise ConfigurationError(
            "storage",
            f"Unknown backend {backend!r}. Must be one of: {', '.join(STORAGE_BACKENDS)}"
        )

    remote_url = str(section.get('remote_url') or '').rstrip('/')
    if backend == "remote" and not remote_url:
        raise ConfigurationError("storage", "remote_url is required for the remote backend")

    try:
        timeout = float(section.get('timeout_seconds', 10.0))
        poll_interval = float(section.get('poll_interval_seconds', 5.0))
    except (TypeError, ValueError) as e:
        raise ConfigurationError("storage", f"Timeouts must be numbers: {e}")

    return StorageSettings(
        backend=backend,
        local_path=str(section.get('local_path') or DEFAULT_LOCAL_PATH),
        remote_url=remote_url,
        collection=str(section.get('collection') or DEFAULT_COLLECTION),
        timeout_seconds=timeout,
        poll_interval_seconds=poll_interval,
    )


def _parse_products(entries: list) -> ProductCatalog:
    if not isinstance(entries, list):
        raise ConfigurationError("products", "Section must be a list")

    products = []
    for idx, p in enumerate(entries):
        if not isinstance(p, dict) or 'code' not in p:
            raise ConfigurationError("products", f"Entry {idx + 1} needs a code")
        products.append(ProductInfo(
            code=str(p['code']).strip(),
            description=str(p.get('description') or '').strip(),
        ))

    return ProductCatalog.from_list(products)


def save_settings_to_yaml(settings: PlannerSettings, yaml_path: str | Path) -> None:
    """Save planner settings to YAML file.

    Args:
        settings: PlannerSettings object to save.
        yaml_path: Path to save the YAML config file.
    """
    data = {
        'storage': {
            'backend': settings.storage.backend,
            'local_path': settings.storage.local_path,
            'remote_url': settings.storage.remote_url,
            'collection': settings.storage.collection,
            'timeout_seconds': settings.storage.timeout_seconds,
            'poll_interval_seconds': settings.storage.poll_interval_seconds,
        },
        'products': [
            {'code': p.code, 'description': p.description}
            for p in settings.catalog
        ],
    }

    yaml_path = Path(yaml_path)
    yaml_path.parent.mkdir(parents=True, exist_ok=True)
    with open(yaml_path, 'w', encoding='utf-8') as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
