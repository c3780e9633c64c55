# Order form validation for the line planner.
# Version: 1.0.0
# Checks the required product code and converts raw form fields into a ProductionInput.

from dataclasses import dataclass, fields

from .calculated_fields import ProductionItem
from .constants import DEFAULT_PRODUCT_DESCRIPTION, ProductCatalog
from .data_loader import ProductionInput, parse_number
from .errors import ValidationError


@dataclass
class OrderForm:
    """Raw order form fields as typed by the operator.

    Every field is a string so blank inputs can be told apart from zero.

    Attributes:
        code: Product code (required).
        product: Product description; filled from the catalog when blank.
        start_time: Start time of day "HH:mm".
        speed: Line speed.
        simultaneous_coils: Coils wound in parallel.
        avg_length: Average length per coil.
        total_coils: Number of coils.
        planned_quantity: Target output count.
        pallet_changes: Number of pallet changes.
    """
    code: str = ""
    product: str = ""
    start_time: str = ""
    speed: str = ""
    simultaneous_coils: str = ""
    avg_length: str = ""
    total_coils: str = ""
    planned_quantity: str = ""
    pallet_changes: str = ""

    def to_dict(self) -> dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def validate_order_form(
    form: OrderForm,
    catalog: ProductCatalog | None = None
) -> ProductionInput:
    """Validate an order form and convert it for the calculator.

    Args:
        form: Raw form fields.
        catalog: Product catalog used to fill a blank description.

    Returns:
        ProductionInput with numbers parsed (0 when blank or unparseable).

    Raises:
        ValidationError: If the product code is missing.
    """
    code = (form.code or "").strip()
    if not code:
        raise ValidationError(
            field="code",
            value=form.code,
            reason="Product code is required"
        )

    product = (form.product or "").strip()
    if not product and catalog is not None:
        product = catalog.get_description(code) or ""

    return ProductionInput(
        product=product or DEFAULT_PRODUCT_DESCRIPTION,
        start_time=(form.start_time or "").strip(),
        speed=parse_number(form.speed),
        simultaneous_coils=parse_number(form.simultaneous_coils),
        avg_length=parse_number(form.avg_length),
        total_coils=parse_number(form.total_coils),
        planned_quantity=parse_number(form.planned_quantity),
        pallet_changes=parse_number(form.pallet_changes),
    )


def initial_form_state(
    item: ProductionItem | None = None,
    suggested_start: str = ""
) -> OrderForm:
    """Build the form shown when the order dialog opens.

    Editing pre-fills every field from the item; numbers that are not
    positive are left blank. The code is not stored on items, so it
    starts blank. A new order only gets the suggested start time.

    Args:
        item: Item being edited, or None for a new order.
        suggested_start: Suggested "HH:mm" for a new order.

    Returns:
        OrderForm with the initial values.
    """
    if item is None:
        return OrderForm(start_time=suggested_start)

    def blank_if_not_positive(value: float) -> str:
        return str(value) if value > 0 else ""

    stored = item.to_input()
    return OrderForm(
        code="",
        product=stored.product,
        start_time=stored.start_time,
        speed=blank_if_not_positive(stored.speed),
        simultaneous_coils=blank_if_not_positive(stored.simultaneous_coils),
        avg_length=blank_if_not_positive(stored.avg_length),
        total_coils=blank_if_not_positive(stored.total_coils),
        planned_quantity=blank_if_not_positive(stored.planned_quantity),
        pallet_changes=blank_if_not_positive(stored.pallet_changes),
    )
