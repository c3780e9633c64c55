# Calculate derived schedule fields for production orders.
# Version: 1.0.0
# Computes SETUP_COUNT, SETUP_TIME, RUN_TIME, PALLET_TIME, TOTAL_DURATION, START and END.

import math
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from math import ceil
from typing import Any, Callable

from .constants import SETUP_MINUTES_PER_CYCLE, PALLET_CHANGE_MINUTES
from .data_loader import ProductionInput, parse_number


IdFactory = Callable[[], str]


def new_item_id() -> str:
    """Generate a random globally unique item identifier."""
    return str(uuid.uuid4())


@dataclass
class ProductionItem:
    """A production order with its computed schedule fields.

    The input fields are copied from the ProductionInput; everything else
    is derived by calculate_production and never edited directly.

    Attributes:
        id: Unique identifier, assigned on creation and kept across edits.
        product: Product description.
        start_time: Absolute local start timestamp.
        end_time: Absolute local end timestamp (start + total duration).
        speed: Line speed in length units per minute.
        simultaneous_coils: Number of coils wound in parallel.
        avg_length: Average length per coil.
        total_coils: Number of coils to produce.
        pallet_changes: Number of pallet changes.
        planned_quantity: Target output count.
        setup_count: Number of sequential winding setups.
        setup_time_total: Setup minutes (setup_count × 10).
        run_time_minutes: Pure winding minutes.
        pallet_time_total: Pallet change minutes (pallet_changes × 3).
        total_duration_minutes: Run + setup + pallet minutes.
    """
    id: str
    product: str
    start_time: datetime
    end_time: datetime
    speed: float
    simultaneous_coils: float
    avg_length: float
    total_coils: float
    pallet_changes: float
    planned_quantity: float
    setup_count: int
    setup_time_total: float
    run_time_minutes: float
    pallet_time_total: float
    total_duration_minutes: float

    def with_id(self, item_id: str) -> "ProductionItem":
        """Return a copy carrying another identifier (used for edits)."""
        return replace(self, id=item_id)

    def to_input(self) -> ProductionInput:
        """Recover the operator inputs, with the start time as "HH:mm"."""
        return ProductionInput(
            product=self.product,
            start_time=self.start_time.strftime("%H:%M"),
            speed=self.speed,
            simultaneous_coils=self.simultaneous_coils,
            avg_length=self.avg_length,
            total_coils=self.total_coils,
            pallet_changes=self.pallet_changes,
            planned_quantity=self.planned_quantity,
        )

    def to_dict(self) -> dict[str, Any]:
        """Export to the flat interchange record (camelCase, ISO timestamps)."""
        return {
            "id": self.id,
            "product": self.product,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "speed": self.speed,
            "simultaneousCoils": self.simultaneous_coils,
            "avgLength": self.avg_length,
            "totalCoils": self.total_coils,
            "palletChanges": self.pallet_changes,
            "plannedQuantity": self.planned_quantity,
            "setupCount": self.setup_count,
            "setupTimeTotal": self.setup_time_total,
            "runTimeMinutes": self.run_time_minutes,
            "palletTimeTotal": self.pallet_time_total,
            "totalDurationMinutes": self.total_duration_minutes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProductionItem":
        """Rebuild an item from a stored interchange record.

        Stored derived fields are taken as-is; numeric fields that are
        missing or not finite read back as 0.

        Raises:
            KeyError: If the record has no id.
            ValueError: If a timestamp is not ISO-8601.
        """
        start_time = parse_timestamp(data["startTime"])
        end_time = parse_timestamp(data.get("endTime") or data["startTime"])
        return cls(
            id=str(data["id"]),
            product=str(data.get("product") or ""),
            start_time=start_time,
            end_time=end_time,
            speed=parse_number(data.get("speed")),
            simultaneous_coils=parse_number(data.get("simultaneousCoils")),
            avg_length=parse_number(data.get("avgLength")),
            total_coils=parse_number(data.get("totalCoils")),
            pallet_changes=parse_number(data.get("palletChanges")),
            planned_quantity=parse_number(data.get("plannedQuantity")),
            setup_count=int(parse_number(data.get("setupCount"))),
            setup_time_total=parse_number(data.get("setupTimeTotal")),
            run_time_minutes=parse_number(data.get("runTimeMinutes")),
            pallet_time_total=parse_number(data.get("palletTimeTotal")),
            total_duration_minutes=parse_number(data.get("totalDurationMinutes")),
        )


def finite_or_default(value: float, default: float = 0) -> float:
    """Return value if it is a finite number, otherwise default."""
    try:
        return value if math.isfinite(value) else default
    except (TypeError, OverflowError):
        return default


def _finite_ratio(numerator: float, denominator: float) -> float:
    """Divide, mapping a zero denominator or a non-finite result to 0."""
    try:
        return finite_or_default(numerator / denominator)
    except (ZeroDivisionError, OverflowError):
        return 0.0


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp into a naive local datetime.

    UTC or offset timestamps (e.g. "2024-05-01T11:00:00.000Z") are
    converted to local time.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_time_of_day(value: str | None) -> tuple[int, int] | None:
    """Parse an "HH:mm" string into (hour, minute).

    A blank component counts as 0, so "08:" is 08:00 and ":30" is 00:30.

    Returns:
        (hour, minute), or None when the value is blank, does not have
        exactly two components, or either component is not a finite number.
        Fractional components are truncated.
    """
    if not value or not isinstance(value, str) or ":" not in value:
        return None

    parts = value.split(":")
    if len(parts) != 2:
        return None

    numbers = []
    for part in parts:
        part = part.strip()
        if not part:
            numbers.append(0)
            continue
        try:
            number = float(part)
        except ValueError:
            return None
        if not math.isfinite(number):
            return None
        numbers.append(int(number))

    return numbers[0], numbers[1]


def resolve_start_time(value: str | None, now: datetime) -> datetime:
    """Resolve an "HH:mm" string to an absolute timestamp on now's date.

    Unparseable values use now's hour and minute. Hours and minutes
    beyond their range roll over (25:00 is 01:00 the next day); a
    timestamp that cannot be represented falls back to now.

    Args:
        value: Start time of day typed by the operator.
        now: Current wall-clock time.

    Returns:
        Start timestamp with seconds truncated.
    """
    parsed = parse_time_of_day(value)
    hours, minutes = parsed if parsed else (now.hour, now.minute)

    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    try:
        return midnight + timedelta(hours=hours, minutes=minutes)
    except OverflowError:
        return now


def calculate_production(
    production_input: ProductionInput,
    id_factory: IdFactory = new_item_id,
    now: datetime | None = None
) -> ProductionItem:
    """Calculate all derived schedule fields for a single order.

    Never raises: zero or negative speed/capacity count as 1, an
    unparseable start time uses the current time, and a non-finite
    duration collapses to a zero-length run.

    Args:
        production_input: Order parameters from the operator.
        id_factory: Identifier generator for the new item.
        now: Current wall-clock time (defaults to datetime.now()).

    Returns:
        ProductionItem with a fresh id and every derived field computed.
    """
    if now is None:
        now = datetime.now()

    speed = production_input.speed
    simultaneous_coils = production_input.simultaneous_coils

    # Zero/negative rates degrade to 1 instead of dividing by zero
    safe_speed = float(speed) if speed > 0 else 1.0
    safe_coils = float(simultaneous_coils) if simultaneous_coils > 0 else 1.0

    # Negative amounts contribute no time
    avg_length = max(float(production_input.avg_length), 0.0)
    total_coils = max(float(production_input.total_coils), 0.0)
    pallet_changes = max(float(production_input.pallet_changes), 0.0)

    # RUN_TIME: AVG_LENGTH × TOTAL_COILS ÷ (SPEED × SIMULTANEOUS_COILS)
    run_time_minutes = _finite_ratio(avg_length * total_coils, safe_speed * safe_coils)

    # SETUP_COUNT: one setup per parallel batch, partial batches round up
    setup_count = ceil(_finite_ratio(total_coils, safe_coils))
    setup_time_total = finite_or_default(setup_count * float(SETUP_MINUTES_PER_CYCLE))

    pallet_time_total = finite_or_default(pallet_changes * PALLET_CHANGE_MINUTES)

    total_duration_minutes = finite_or_default(
        run_time_minutes + setup_time_total + pallet_time_total
    )

    start_time = resolve_start_time(production_input.start_time, now)
    try:
        end_time = start_time + timedelta(minutes=total_duration_minutes)
    except OverflowError:
        end_time = start_time

    return ProductionItem(
        id=id_factory(),
        product=production_input.product,
        start_time=start_time,
        end_time=end_time,
        speed=speed,
        simultaneous_coils=simultaneous_coils,
        avg_length=production_input.avg_length,
        total_coils=production_input.total_coils,
        pallet_changes=production_input.pallet_changes,
        planned_quantity=production_input.planned_quantity,
        setup_count=setup_count,
        setup_time_total=setup_time_total,
        run_time_minutes=run_time_minutes,
        pallet_time_total=pallet_time_total,
        total_duration_minutes=total_duration_minutes,
    )


def calculate_all(
    inputs: list[ProductionInput],
    id_factory: IdFactory = new_item_id,
    now: datetime | None = None
) -> list[ProductionItem]:
    """Calculate derived fields for a batch of orders.

    Args:
        inputs: Order parameters, e.g. from load_orders_file.
        id_factory: Identifier generator, called once per order.
        now: Current wall-clock time shared by the whole batch.

    Returns:
        List of ProductionItem in input order.
    """
    if now is None:
        now = datetime.now()
    return [calculate_production(i, id_factory, now) for i in inputs]
