# Output Generation for the line planner.
# Version: 1.0.0
# Display formatting, summary totals, reports, and exports in various formats.

import json
import math
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path

from .calculated_fields import ProductionItem, parse_timestamp


EXPORT_COLUMNS = [
    "PRODUCT",
    "START",
    "END",
    "DATE",
    "SPEED",
    "SIMULTANEOUS_COILS",
    "AVG_LENGTH",
    "TOTAL_COILS",
    "PALLET_CHANGES",
    "PLANNED_QUANTITY",
    "SETUP_COUNT",
    "SETUP_MIN",
    "RUN_MIN",
    "PALLET_MIN",
    "TOTAL_MIN",
    "DURATION",
]


def _as_datetime(value: datetime | str | None) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError):
        return None


def format_time(value: datetime | str | None) -> str:
    """Format a timestamp as local "HH:mm", or "--:--" if invalid."""
    moment = _as_datetime(value)
    if moment is None:
        return "--:--"
    return moment.strftime("%H:%M")


def format_date(value: datetime | str | None) -> str:
    """Format a timestamp as local "DD/MM", or "--/--" if invalid."""
    moment = _as_datetime(value)
    if moment is None:
        return "--/--"
    return moment.strftime("%d/%m")


def format_duration(minutes: float) -> str:
    """Format minutes as "<H>h <M>m".

    Both parts are truncated. Non-finite and negative values give "0h 0m".
    """
    try:
        if not math.isfinite(minutes):
            return "0h 0m"
    except (TypeError, OverflowError):
        return "0h 0m"

    minutes = max(minutes, 0)
    hours = math.floor(minutes / 60)
    remainder = math.floor(minutes % 60)
    return f"{hours}h {remainder}m"


@dataclass
class ProductionSummary:
    """Dashboard totals over a collection of items.

    Attributes:
        order_count: Number of orders.
        total_coils: Sum of coils.
        total_duration_minutes: Sum of total durations.
        total_planned_quantity: Sum of planned quantities.
        average_speed: Mean speed rounded to an integer, 0 when empty.
    """
    order_count: int = 0
    total_coils: float = 0
    total_duration_minutes: float = 0
    total_planned_quantity: float = 0
    average_speed: int = 0

    @property
    def total_duration_label(self) -> str:
        return format_duration(self.total_duration_minutes)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["total_duration_label"] = self.total_duration_label
        return data


def summarize_production(items: list[ProductionItem]) -> ProductionSummary:
    """Reduce a collection of items to dashboard totals.

    Args:
        items: Production items, in any order.

    Returns:
        ProductionSummary. All zeros for an empty collection.
    """
    if not items:
        return ProductionSummary()

    total_speed = sum(item.speed for item in items)
    return ProductionSummary(
        order_count=len(items),
        total_coils=sum(item.total_coils for item in items),
        total_duration_minutes=sum(item.total_duration_minutes for item in items),
        total_planned_quantity=sum(item.planned_quantity for item in items),
        # Half rounds up, matching the dashboard's Math.round
        average_speed=math.floor(total_speed / len(items) + 0.5),
    )


def item_display_dict(item: ProductionItem) -> dict:
    """Export an item with its formatted display fields added.

    Returns:
        Interchange record plus startLabel, endLabel, startDate, endDate
        and durationLabel.
    """
    data = item.to_dict()
    data.update({
        "startLabel": format_time(item.start_time),
        "startDate": format_date(item.start_time),
        "endLabel": format_time(item.end_time),
        "endDate": format_date(item.end_time),
        "durationLabel": format_duration(item.total_duration_minutes),
    })
    return data


def _export_row(item: ProductionItem) -> dict:
    return {
        "PRODUCT": item.product,
        "START": format_time(item.start_time),
        "END": format_time(item.end_time),
        "DATE": format_date(item.start_time),
        "SPEED": item.speed,
        "SIMULTANEOUS_COILS": item.simultaneous_coils,
        "AVG_LENGTH": item.avg_length,
        "TOTAL_COILS": item.total_coils,
        "PALLET_CHANGES": item.pallet_changes,
        "PLANNED_QUANTITY": item.planned_quantity,
        "SETUP_COUNT": item.setup_count,
        "SETUP_MIN": item.setup_time_total,
        "RUN_MIN": round(item.run_time_minutes, 2),
        "PALLET_MIN": item.pallet_time_total,
        "TOTAL_MIN": round(item.total_duration_minutes, 2),
        "DURATION": format_duration(item.total_duration_minutes),
    }


def export_schedule_to_dataframe(items: list[ProductionItem]):
    """Export items to a pandas DataFrame, one row per order.

    Args:
        items: Production items, already in display order.

    Returns:
        pandas DataFrame with EXPORT_COLUMNS.
    """
    import pandas as pd

    return pd.DataFrame([_export_row(item) for item in items], columns=EXPORT_COLUMNS)


def export_schedule_to_excel(
    items: list[ProductionItem],
    output_path: str | Path,
    sheet_name: str = "Schedule"
) -> Path:
    """Write items to an Excel workbook.

    Args:
        items: Production items, already in display order.
        output_path: Path to save the .xlsx file.
        sheet_name: Worksheet title.

    Returns:
        Path to generated Excel file.
    """
    import pandas as pd
    from openpyxl.styles import Font
    from openpyxl.utils import get_column_letter

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = export_schedule_to_dataframe(items)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)

        ws = writer.sheets[sheet_name]
        for cell in ws[1]:
            cell.font = Font(bold=True)

        # Widen columns to fit the longest value
        for col_idx, column in enumerate(df.columns, start=1):
            values = [str(column)] + [str(v) for v in df[column].tolist()]
            width = min(max(len(v) for v in values) + 2, 50)
            ws.column_dimensions[get_column_letter(col_idx)].width = width

    return output_path


def export_to_json(items: list[ProductionItem], pretty: bool = True) -> str:
    """Export items and their summary to JSON.

    Args:
        items: Production items, already in display order.
        pretty: Whether to format with indentation.

    Returns:
        JSON string.
    """
    data = {
        "generated_at": datetime.now().isoformat(timespec="seconds"),
        "summary": summarize_production(items).to_dict(),
        "items": [item.to_dict() for item in items],
    }
    return json.dumps(data, indent=2 if pretty else None, ensure_ascii=False)


def generate_schedule_report(items: list[ProductionItem]) -> str:
    """Generate a plain-text schedule report.

    Args:
        items: Production items, already in display order.

    Returns:
        Multi-line report string.
    """
    lines = []

    # Header
    lines.append("=" * 80)
    lines.append("PRODUCTION LINE PLANNER - SCHEDULE REPORT")
    lines.append("=" * 80)
    lines.append("")

    if not items:
        lines.append("No orders scheduled.")
        return "\n".join(lines)

    lines.append(
        f"{'#':>3}  {'Product':<28} {'Date':<6} {'Start':<6} {'End':<6} "
        f"{'Setups':>6} {'Run':>8} {'Total':>9}"
    )
    lines.append("-" * 80)

    for idx, item in enumerate(items, start=1):
        product = item.product if len(item.product) <= 28 else item.product[:25] + "..."
        lines.append(
            f"{idx:>3}  {product:<28} {format_date(item.start_time):<6} "
            f"{format_time(item.start_time):<6} {format_time(item.end_time):<6} "
            f"{item.setup_count:>6} {format_duration(item.run_time_minutes):>8} "
            f"{format_duration(item.total_duration_minutes):>9}"
        )

    summary = summarize_production(items)
    lines.append("-" * 80)
    lines.append(f"Orders: {summary.order_count}")
    lines.append(f"Total Coils: {summary.total_coils}")
    lines.append(f"Planned Quantity: {summary.total_planned_quantity}")
    lines.append(f"Average Speed: {summary.average_speed}")
    lines.append(f"Total Duration: {summary.total_duration_label}")

    return "\n".join(lines)
