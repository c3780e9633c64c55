# Load production order inputs for the line planner.
# Version: 1.0.0
# Parses order parameters from forms, records, Excel/CSV spreadsheets, and JSON exports.

import json
import math
import re
from dataclasses import dataclass
from datetime import datetime, time
from pathlib import Path
from typing import Any

import pandas as pd

from .errors import FileLoadError, ValidationError


# Spreadsheet column -> ProductionInput numeric field
NUMERIC_COLUMNS: dict[str, str] = {
    "SPEED": "speed",
    "SIMULTANEOUS_COILS": "simultaneous_coils",
    "AVG_LENGTH": "avg_length",
    "TOTAL_COILS": "total_coils",
    "PALLET_CHANGES": "pallet_changes",
    "PLANNED_QUANTITY": "planned_quantity",
}

REQUIRED_COLUMNS: frozenset[str] = frozenset({"PRODUCT", "START_TIME"})

SUPPORTED_EXTENSIONS: tuple[str, ...] = (".xlsx", ".xls", ".csv", ".json")

# "H:MM:SS" as written by spreadsheet tools for time cells
_CLOCK_WITH_SECONDS = re.compile(r"^(\d{1,2}):(\d{2}):\d{2}(?:\.\d+)?$")


@dataclass
class ProductionInput:
    """Order parameters entered by the operator for one production run.

    Attributes:
        product: Product description.
        start_time: Start time of day as "HH:mm" (local). Blank means "now".
        speed: Line speed in length units per minute.
        simultaneous_coils: Number of coils wound in parallel.
        avg_length: Average length per coil.
        total_coils: Number of coils to produce.
        pallet_changes: Number of pallet changes during the run.
        planned_quantity: Target output count.
    """
    product: str = ""
    start_time: str = ""
    speed: float = 0
    simultaneous_coils: float = 0
    avg_length: float = 0
    total_coils: float = 0
    pallet_changes: float = 0
    planned_quantity: float = 0

    def __post_init__(self) -> None:
        """Coerce every numeric field, defaulting to 0 when unparseable."""
        self.product = "" if self.product is None else str(self.product)
        self.start_time = "" if self.start_time is None else str(self.start_time).strip()
        for name in NUMERIC_COLUMNS.values():
            setattr(self, name, parse_number(getattr(self, name)))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProductionInput":
        """Build an input from a record using camelCase or snake_case keys.

        Args:
            data: Flat record, e.g. a stored item or a JSON request body.

        Returns:
            ProductionInput with absent fields defaulted.
        """
        def pick(snake: str, camel: str, default: Any = None) -> Any:
            if snake in data:
                return data[snake]
            return data.get(camel, default)

        return cls(
            product=pick("product", "product", ""),
            start_time=pick("start_time", "startTime", ""),
            speed=pick("speed", "speed"),
            simultaneous_coils=pick("simultaneous_coils", "simultaneousCoils"),
            avg_length=pick("avg_length", "avgLength"),
            total_coils=pick("total_coils", "totalCoils"),
            pallet_changes=pick("pallet_changes", "palletChanges"),
            planned_quantity=pick("planned_quantity", "plannedQuantity"),
        )


def parse_number(value: Any) -> float:
    """Parse a value into a finite number, defaulting to 0.

    Blank strings, None, NaN, infinities, and anything float() rejects
    all become 0. Whole numbers come back as int.

    Args:
        value: Value to parse.

    Returns:
        Parsed number, or 0.
    """
    if value is None or isinstance(value, bool):
        return 0

    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return 0

    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0

    if not math.isfinite(number):
        return 0
    if number.is_integer():
        return int(number)
    return number


def load_orders_file(filepath: str | Path) -> list[ProductionInput]:
    """Load production order inputs from an Excel, CSV, or JSON file.

    JSON files hold a list of order records, or a schedule export with
    the records under "items".

    Args:
        filepath: Path to an .xlsx, .xls, .csv, or .json file.

    Returns:
        List of ProductionInput in file order.

    Raises:
        FileLoadError: If file cannot be read.
        ValidationError: If required columns are missing or a product is blank.
    """
    filepath = Path(filepath)
    suffix = filepath.suffix.lower()

    if suffix not in SUPPORTED_EXTENSIONS:
        raise FileLoadError(
            str(filepath),
            ValueError(f"Unsupported file type. Must be one of: {', '.join(SUPPORTED_EXTENSIONS)}")
        )

    if suffix == ".json":
        return _load_orders_json(filepath)

    try:
        if suffix == ".csv":
            df = pd.read_csv(filepath, dtype=str)
        else:
            df = pd.read_excel(filepath)
    except Exception as e:
        raise FileLoadError(str(filepath), e)

    df.columns = [str(c).strip().upper() for c in df.columns]

    available_columns = set(df.columns)
    missing_columns = REQUIRED_COLUMNS - available_columns
    if missing_columns:
        raise ValidationError(
            field="columns",
            value=sorted(available_columns),
            reason=f"Missing required columns: {', '.join(sorted(missing_columns))}"
        )

    orders = []
    for idx, row in df.iterrows():
        row_num = idx + 2  # Spreadsheet rows are 1-indexed, plus header
        orders.append(_parse_order_row(row, row_num))

    return orders


def _load_orders_json(filepath: Path) -> list[ProductionInput]:
    """Load order records from a JSON file.

    Raises:
        FileLoadError: If the file cannot be read or is not JSON.
        ValidationError: If the records are not a list or a product is blank.
    """
    try:
        with open(filepath, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise FileLoadError(str(filepath), e)

    records = data.get("items") if isinstance(data, dict) else data
    if not isinstance(records, list):
        raise ValidationError(
            field="items",
            value=type(records).__name__,
            reason="Expected a list of order records"
        )

    orders = []
    for row_num, record in enumerate(records, start=1):
        if not isinstance(record, dict):
            raise ValidationError(
                field="record",
                value=record,
                reason="Expected an object",
                row=row_num
            )

        production_input = ProductionInput.from_dict(record)
        if not production_input.product.strip():
            raise ValidationError(
                field="product",
                value=record.get("product"),
                reason="Product cannot be empty",
                row=row_num
            )
        production_input.start_time = _parse_time_cell(production_input.start_time)
        orders.append(production_input)

    return orders


def _parse_order_row(row: pd.Series, row_number: int) -> ProductionInput:
    """Parse a single spreadsheet row into a ProductionInput.

    Raises:
        ValidationError: If the product is blank.
    """
    product = str(row["PRODUCT"]).strip() if pd.notna(row["PRODUCT"]) else ""
    if not product:
        raise ValidationError(
            field="PRODUCT",
            value=row["PRODUCT"],
            reason="Product cannot be empty",
            row=row_number
        )

    numbers = {
        attr: (row[column] if column in row.index and pd.notna(row[column]) else 0)
        for column, attr in NUMERIC_COLUMNS.items()
    }

    return ProductionInput(
        product=product,
        start_time=_parse_time_cell(row["START_TIME"]),
        **numbers
    )


def _parse_time_cell(value: Any) -> str:
    """Render a time cell as "HH:mm".

    Handles datetime/time objects, "H:MM:SS" strings, and ISO timestamps
    (offset timestamps are converted to local time). Anything else is
    passed through for the calculator to resolve. Blank cells become "".
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    if isinstance(value, (datetime, pd.Timestamp, time)):
        return f"{value.hour:02d}:{value.minute:02d}"

    text = str(value).strip()
    match = _CLOCK_WITH_SECONDS.match(text)
    if match:
        return f"{int(match.group(1)):02d}:{match.group(2)}"

    if "T" in text or "-" in text:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return text
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone().replace(tzinfo=None)
        return f"{parsed.hour:02d}:{parsed.minute:02d}"

    return text
