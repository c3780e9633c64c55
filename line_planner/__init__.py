# Production Line Planner - Core Package
# Version: 1.0.0

"""
Production order planner for a coil winding line.

Calculates setup, run, and pallet-change times for each order and chains
orders into a timeline, with local-file or remote document storage.
"""

__version__ = "1.0.0"

from .errors import (
    PlannerError,
    ValidationError,
    ConfigurationError,
    FileLoadError,
    StorageError,
    OrderNotFoundError,
)

from .constants import (
    SETUP_MINUTES_PER_CYCLE,
    PALLET_CHANGE_MINUTES,
    ProductInfo,
    ProductCatalog,
    StorageSettings,
    PlannerSettings,
    load_settings_from_yaml,
    save_settings_to_yaml,
)

from .data_loader import (
    ProductionInput,
    parse_number,
    load_orders_file,
)

from .calculated_fields import (
    ProductionItem,
    calculate_production,
    calculate_all,
    finite_or_default,
    new_item_id,
)

from .sequencer import (
    sort_by_start,
    upsert_item,
    remove_item,
    find_item,
    suggested_start_time,
)

from .validator import (
    OrderForm,
    validate_order_form,
    initial_form_state,
)

from .repository import (
    ProductionRepository,
    LocalFileRepository,
    RemoteDocumentRepository,
    create_repository,
)

from .output_generator import (
    ProductionSummary,
    format_time,
    format_date,
    format_duration,
    summarize_production,
    export_schedule_to_dataframe,
    export_schedule_to_excel,
    export_to_json,
    generate_schedule_report,
)

from .planner import ProductionPlanner
